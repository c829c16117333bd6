"""SSH credential helpers."""

from __future__ import annotations

import getpass
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import paramiko

from ..identity.resolver import Target

DEFAULT_SSH_CONFIG = Path.home() / ".ssh" / "config"


@dataclass
class SSHCredentials:
    """Connection parameters resolved for one target."""

    host: str
    username: str
    port: int = 22
    key_paths: List[str] = field(default_factory=list)
    timeout: Optional[int] = None

    @classmethod
    def for_target(
        cls,
        target: Target,
        *,
        identity_path: Optional[Path] = None,
        ssh_config_path: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> "SSHCredentials":
        """Resolve the login the way the ssh client would.

        Precedence for the user: the target's own ``user@``, then a ``User``
        entry in ssh_config, then the local user. ``HostName``, ``Port`` and
        ``IdentityFile`` entries are honoured, and the identity being worked
        on is offered first when it exists locally.
        """
        host_config = _lookup_ssh_config(target.host, ssh_config_path)

        username = target.user or host_config.get("user") or getpass.getuser()
        hostname = host_config.get("hostname") or target.host
        port = target.port
        if port == 22 and host_config.get("port"):
            port = int(host_config["port"])

        key_paths: List[str] = []
        if identity_path is not None and Path(identity_path).is_file():
            key_paths.append(str(identity_path))
        for candidate in host_config.get("identityfile", []):
            expanded = str(Path(candidate).expanduser())
            if expanded not in key_paths and Path(expanded).is_file():
                key_paths.append(expanded)

        return cls(
            host=hostname,
            username=username,
            port=port,
            key_paths=key_paths,
            timeout=timeout,
        )


def _lookup_ssh_config(host: str, ssh_config_path: Optional[str]) -> dict:
    path = Path(ssh_config_path).expanduser() if ssh_config_path else DEFAULT_SSH_CONFIG
    if not path.is_file():
        return {}
    config = paramiko.SSHConfig.from_path(str(path))
    return dict(config.lookup(host))
