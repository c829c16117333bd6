"""SSH session management built on Paramiko."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from typing import Callable, Optional

import paramiko

from .credentials import SSHCredentials

_HOST_KEY_POLICIES = {
    "reject": paramiko.RejectPolicy,
    "warn": paramiko.WarningPolicy,
    "auto-add": paramiko.AutoAddPolicy,
}


class SSHConnectionError(RuntimeError):
    """Raised when an SSH connection cannot be established."""

    pass


@dataclass
class SSHCommandResult:
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class SSHSession:
    """High-level wrapper around paramiko.SSHClient.

    Besides running commands it exposes the two SFTP primitives the
    authorized-keys rewrite needs: read a remote text file and atomically
    replace one.
    """

    def __init__(
        self,
        credentials: SSHCredentials,
        *,
        host_key_policy: str = "warn",
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        if host_key_policy not in _HOST_KEY_POLICIES:
            raise ValueError(f"Unknown host key policy: {host_key_policy}")
        self.credentials = credentials
        self.host_key_policy = host_key_policy
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(_HOST_KEY_POLICIES[self.host_key_policy]())
        try:
            connect_kwargs = {
                "hostname": self.credentials.host,
                "port": self.credentials.port,
                "username": self.credentials.username,
                "timeout": self.credentials.timeout,
                "look_for_keys": True,
                "allow_agent": True,
            }
            if self.credentials.key_paths:
                connect_kwargs["key_filename"] = list(self.credentials.key_paths)
            client.connect(**connect_kwargs)
        except Exception as exc:  # pragma: no cover - network errors hard to simulate
            client.close()
            raise SSHConnectionError(str(exc)) from exc
        self._client = client

    def close(self) -> None:
        if self._sftp:
            self._sftp.close()
            self._sftp = None
        if self._client:
            self._client.close()
            self._client = None

    def run(self, command: str) -> SSHCommandResult:
        """Execute a command on the remote server and wait for it to finish."""
        if not self._client:
            self.connect()
        assert self._client is not None

        _, stdout, stderr = self._client.exec_command(command)
        exit_status = stdout.channel.recv_exit_status()
        stdout_text = stdout.read().decode("utf-8", errors="replace")
        stderr_text = stderr.read().decode("utf-8", errors="replace")
        return SSHCommandResult(
            command=command,
            stdout=stdout_text.strip(),
            stderr=stderr_text.strip(),
            exit_status=exit_status,
        )

    def read_text(self, path: str) -> Optional[str]:
        """Return the content of a remote file, or None if it does not exist.

        Bytes that are not UTF-8 decode to surrogates and are restored
        unchanged by :meth:`replace_text`.
        """
        sftp = self._open_sftp()
        try:
            with sftp.open(path, "r") as handle:
                data = handle.read()
        except FileNotFoundError:
            return None
        except IOError as exc:
            if exc.errno == errno.ENOENT:
                return None
            raise
        return data.decode("utf-8", errors="surrogateescape")

    def replace_text(self, path: str, content: str, mode: int = 0o600) -> None:
        """Write `content` to a sibling temp file and rename it over `path`."""
        sftp = self._open_sftp()
        temp_path = f"{path}.keyctl-tmp"
        with sftp.open(temp_path, "w") as handle:
            handle.write(content.encode("utf-8", errors="surrogateescape"))
        sftp.chmod(temp_path, mode)
        sftp.posix_rename(temp_path, path)

    def _open_sftp(self) -> paramiko.SFTPClient:
        if not self._client:
            self.connect()
        assert self._client is not None
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp
