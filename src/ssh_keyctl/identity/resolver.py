"""Target parsing and identity file path resolution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import InvalidTargetError

DEFAULT_PORT = 22


@dataclass(frozen=True)
class Target:
    """A remote host parsed from ``[user@]host``.

    The user is informational: it is passed through to the external tools
    as written, otherwise the SSH client picks its default login.
    """

    host: str
    user: Optional[str] = None
    port: int = DEFAULT_PORT

    @classmethod
    def parse(cls, text: str, port: int = DEFAULT_PORT) -> "Target":
        parts = text.split("@")
        if len(parts) == 1:
            user, host = None, parts[0]
        elif len(parts) == 2:
            user, host = parts
            if not user:
                raise InvalidTargetError(text, "user before '@' is empty")
        else:
            raise InvalidTargetError(text, "expected [user@]host")
        if not host:
            raise InvalidTargetError(text, "host is empty")
        if not 0 < port < 65536:
            raise InvalidTargetError(text, f"port {port} is out of range")
        return cls(host=host, user=user, port=port)

    @property
    def spec(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def __str__(self) -> str:
        return self.spec


@dataclass(frozen=True)
class IdentityFilePair:
    """Private and public key locations for one identity."""

    private_path: Path
    public_path: Path

    @property
    def name(self) -> str:
        return self.private_path.name

    def existing(self) -> list[Path]:
        return [p for p in (self.private_path, self.public_path) if p.exists()]


class IdentityPathResolver:
    """Maps targets and identity names to files in the identity store."""

    def __init__(self, store_dir: Path) -> None:
        self.store_dir = Path(store_dir)

    def resolve(self, target: Target, identity_name: Optional[str] = None) -> IdentityFilePair:
        name = identity_name if identity_name else target.host
        if name in (".", "..") or "/" in name or "\\" in name:
            raise InvalidTargetError(name, "identity name must be a plain file name")
        private_path = self.store_dir / name
        public_path = private_path.with_name(f"{name}.pub")
        return IdentityFilePair(private_path=private_path, public_path=public_path)

    def resolve_spec(
        self, target: str, identity_name: Optional[str] = None, port: int = DEFAULT_PORT
    ) -> IdentityFilePair:
        return self.resolve(Target.parse(target, port), identity_name)
