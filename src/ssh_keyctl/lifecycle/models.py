"""Data models for the lifecycle module."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..identity.resolver import DEFAULT_PORT, IdentityFilePair, Target


class Operation(Enum):
    INIT = "init"
    REVOKE = "revoke"
    RENEW = "renew"


class LifecycleState(Enum):
    """Where an operation currently is; the value doubles as the error phase."""
    IDLE = "idle"
    RESOLVING = "resolving"
    GENERATING = "generating"
    READING = "reading"
    PERSISTING = "persisting"
    REMOTE_ACTING = "remote"
    CLEANING_UP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InitRequest:
    """Generate a keypair for `target`, store it, and deploy the public half."""

    target: str
    key_type: str = "ed25519"
    comment: Optional[str] = None
    port: int = DEFAULT_PORT
    passphrase: Optional[str] = None
    force: bool = False
    identity_name: Optional[str] = None  # defaults to the host


@dataclass
class RevokeRequest:
    """Remove a deployed key from `target`, optionally deleting it locally."""

    target: str
    identity_name: Optional[str] = None
    port: int = DEFAULT_PORT
    delete_identity_file: bool = False


@dataclass
class RenewRequest:
    """Revoke the current key for `target`, then initialize a fresh one."""

    target: str
    key_type: str = "ed25519"
    comment: Optional[str] = None
    port: int = DEFAULT_PORT
    passphrase: Optional[str] = None
    identity_name: Optional[str] = None
    delete_identity_file: bool = False

    def to_revoke(self) -> RevokeRequest:
        return RevokeRequest(
            target=self.target,
            identity_name=self.identity_name,
            port=self.port,
            delete_identity_file=self.delete_identity_file,
        )

    def to_init(self) -> InitRequest:
        # The slot exists by definition of being renewed
        return InitRequest(
            target=self.target,
            key_type=self.key_type,
            comment=self.comment,
            port=self.port,
            passphrase=self.passphrase,
            force=True,
            identity_name=self.identity_name,
        )


@dataclass
class OperationResult:
    """Summary of a completed init or revoke."""

    operation: Operation
    target: Target
    identity: IdentityFilePair
    fingerprint: Optional[str] = None
    removed_lines: Optional[int] = None
    deleted_local: bool = False


@dataclass
class RenewResult:
    revoked: OperationResult
    initialized: OperationResult
