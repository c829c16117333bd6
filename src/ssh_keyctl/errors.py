"""Error taxonomy shared by every lifecycle phase."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class KeyCtlError(RuntimeError):
    """Base class for failures surfaced by ssh-keyctl.

    ``phase`` is filled in by the lifecycle orchestrator so the CLI can say
    which step (resolving, persisting, remote, ...) went wrong.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.phase: Optional[str] = None


class InvalidTargetError(KeyCtlError):
    """Raised when a ``[user@]host`` target or port cannot be parsed."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Invalid target {target!r}: {reason}")


class AlreadyExistsError(KeyCtlError):
    """Raised when a key file exists and overwrite was not requested."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path} already exists (use --force to overwrite)")


class StoreIOError(KeyCtlError):
    """Raised when the local identity store cannot be read or written."""

    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = cause.strerror or str(cause)
        super().__init__(f"I/O error on {self.path}: {detail}")


class LocalCleanupError(StoreIOError):
    """Raised when local key files cannot be removed after a remote revoke."""

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(path, cause)
        self.message = (
            f"{self.message} (remote revocation already succeeded and was not undone)"
        )
        self.args = (self.message,)


class KeyGenerationError(KeyCtlError):
    """Raised when a keypair cannot be generated."""


class SerializationError(KeyCtlError):
    """Raised when a keypair cannot be encoded to OpenSSH format."""


class DeploymentFailedError(KeyCtlError):
    """Raised when the key-copy utility exits non-zero or cannot be started."""

    def __init__(self, target: str, status: Optional[int], detail: str = "") -> None:
        self.target = target
        self.status = status
        self.detail = detail
        if status is None:
            message = f"Could not deploy key to {target}: {detail}"
        else:
            message = f"Deploying key to {target} failed with exit status {status}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


class RevocationFailedError(KeyCtlError):
    """Raised when removing a key from the remote authorized-keys list fails."""

    def __init__(self, target: str, status: Optional[int], detail: str = "") -> None:
        self.target = target
        self.status = status
        self.detail = detail
        if status is None:
            message = f"Could not revoke key on {target}: {detail}"
        else:
            message = f"Revoking key on {target} failed with exit status {status}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)
