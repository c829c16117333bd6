"""Removes public keys from a remote host's authorized_keys list."""

from __future__ import annotations

import shlex
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import paramiko

from ..config import RemoteConfig
from ..errors import RevocationFailedError
from ..identity.resolver import Target
from ..paths import REMOTE_AUTHORIZED_KEYS
from ..ssh import RemoteProbe, SSHConnectionError, SSHCredentials, SSHSession
from ..utils.logging import get_logger
from .authorized_keys import filter_authorized_keys, sed_address

logger = get_logger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]
SessionFactory = Callable[[Target, Optional[Path]], SSHSession]


@dataclass
class RemovalReport:
    """Outcome of one remote removal. ``removed`` is None when unknown."""

    strategy: str
    removed: Optional[int] = None


class LineRemover(ABC):
    """Deletes the lines holding one public key from a remote authorized_keys."""

    name = "abstract"

    @abstractmethod
    def remove(
        self, target: Target, key_text: str, identity_path: Optional[Path] = None
    ) -> RemovalReport:
        """
        Remove every authorized_keys entry for `key_text` on `target`.

        Args:
            target: Remote host (and optional login user) to act on
            key_text: The public key line as stored locally
            identity_path: Local private key that may authenticate the session

        Raises:
            RevocationFailedError: If the remote step could not complete
        """


class StreamEditRemover(LineRemover):
    """Runs ``sed -i '/<type> <base64>/d'`` through the ssh binary.

    Any line containing the key type and body is deleted, whatever its
    options or comment, including comment lines quoting the key.
    ``sed -i`` without a suffix assumes GNU sed.
    """

    name = "sed"

    def __init__(self, ssh_binary: str = "ssh", runner: Runner | None = None) -> None:
        self.ssh_binary = ssh_binary
        self._runner = runner or subprocess.run

    def build_command(self, target: Target, key_text: str) -> List[str]:
        expression = f"/{sed_address(key_text)}/d"
        remote = f"sed -i {shlex.quote(expression)} {REMOTE_AUTHORIZED_KEYS}"
        return [self.ssh_binary, "-p", str(target.port), target.spec, remote]

    def remove(
        self, target: Target, key_text: str, identity_path: Optional[Path] = None
    ) -> RemovalReport:
        try:
            command = self.build_command(target, key_text)
        except ValueError as exc:
            raise RevocationFailedError(target.spec, None, f"invalid public key: {exc}") from exc
        logger.debug("Running %s", " ".join(command[:4]))
        try:
            process = self._runner(command, check=False)
        except OSError as exc:
            raise RevocationFailedError(target.spec, None, str(exc)) from exc
        if process.returncode != 0:
            raise RevocationFailedError(target.spec, process.returncode)
        return RemovalReport(strategy=self.name)


class RewriteRemover(LineRemover):
    """Fetches authorized_keys over SFTP, filters it, and writes it back.

    Entries are matched on their decoded key blob, so options prefixes and
    comments never cause false matches. Nothing is written when no entry
    matches or the file does not exist.
    """

    name = "rewrite"

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def remove(
        self, target: Target, key_text: str, identity_path: Optional[Path] = None
    ) -> RemovalReport:
        session = self._session_factory(target, identity_path)
        try:
            with session:
                content = session.read_text(REMOTE_AUTHORIZED_KEYS)
                if content is None:
                    logger.info("%s has no %s; nothing to revoke", target.host, REMOTE_AUTHORIZED_KEYS)
                    return RemovalReport(strategy=self.name, removed=0)
                filtered, removed = filter_authorized_keys(content, key_text)
                if removed:
                    session.replace_text(REMOTE_AUTHORIZED_KEYS, filtered)
        except SSHConnectionError as exc:
            raise RevocationFailedError(target.spec, None, str(exc)) from exc
        except UnicodeError as exc:
            raise RevocationFailedError(target.spec, None, f"unreadable {REMOTE_AUTHORIZED_KEYS}: {exc}") from exc
        except ValueError as exc:
            raise RevocationFailedError(target.spec, None, f"invalid public key: {exc}") from exc
        except (OSError, paramiko.SSHException) as exc:
            raise RevocationFailedError(target.spec, None, str(exc)) from exc
        return RemovalReport(strategy=self.name, removed=removed)


class ProbingRemover(LineRemover):
    """Picks the sed strategy on GNU sed hosts and the rewrite strategy elsewhere."""

    name = "auto"

    def __init__(
        self,
        stream_edit: StreamEditRemover,
        rewrite: RewriteRemover,
        session_factory: SessionFactory,
        probe: Optional[RemoteProbe] = None,
    ) -> None:
        self.stream_edit = stream_edit
        self.rewrite = rewrite
        self._session_factory = session_factory
        self.probe = probe or RemoteProbe()

    def remove(
        self, target: Target, key_text: str, identity_path: Optional[Path] = None
    ) -> RemovalReport:
        try:
            with self._session_factory(target, identity_path) as session:
                facts = self.probe.collect(session)
        except (SSHConnectionError, paramiko.SSHException) as exc:
            raise RevocationFailedError(target.spec, None, str(exc)) from exc
        chosen: LineRemover = self.stream_edit if facts.gnu_sed else self.rewrite
        logger.info("Remote %s (%s): using %s strategy", target.host, facts.kernel, chosen.name)
        return chosen.remove(target, key_text, identity_path)


class RemoteRevoker:
    """Reads a local public key and removes it from the remote host."""

    def __init__(self, remover: LineRemover) -> None:
        self.remover = remover

    def revoke(
        self, target: Target, public_key: bytes, identity_path: Optional[Path] = None
    ) -> RemovalReport:
        try:
            key_text = public_key.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise RevocationFailedError(target.spec, None, f"local public key is not UTF-8: {exc}") from exc
        if not key_text:
            raise RevocationFailedError(target.spec, None, "local public key is empty")
        logger.info("Revoking key on %s:%d (%s strategy)", target.spec, target.port, self.remover.name)
        report = self.remover.remove(target, key_text, identity_path)
        if report.removed is not None:
            logger.info("Removed %d matching line(s) on %s", report.removed, target.host)
        return report


def build_remover(config: RemoteConfig) -> LineRemover:
    """Create the line remover selected by configuration."""

    def session_factory(target: Target, identity_path: Optional[Path]) -> SSHSession:
        credentials = SSHCredentials.for_target(
            target,
            identity_path=identity_path,
            ssh_config_path=config.ssh_config_path,
            timeout=config.connect_timeout,
        )
        return SSHSession(credentials, host_key_policy=config.host_key_policy)

    stream_edit = StreamEditRemover(config.ssh_binary)
    rewrite = RewriteRemover(session_factory)
    if config.revoke_strategy == "sed":
        return stream_edit
    if config.revoke_strategy == "rewrite":
        return rewrite
    if config.revoke_strategy == "auto":
        return ProbingRemover(stream_edit, rewrite, session_factory)
    raise ValueError(f"Unsupported revoke strategy: {config.revoke_strategy}")
