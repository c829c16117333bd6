"""Remote host probing utilities."""

from __future__ import annotations

from dataclasses import dataclass

from .session import SSHSession


@dataclass
class RemoteHostFacts:
    kernel: str
    gnu_sed: bool = False


class RemoteProbe:
    """Collects the remote facts that decide how keys are removed."""

    def collect(self, session: SSHSession) -> RemoteHostFacts:
        kernel = self._safe_run(session, "uname -s")
        return RemoteHostFacts(
            kernel=kernel or "unknown",
            gnu_sed=self._detect_gnu_sed(session),
        )

    def _safe_run(self, session: SSHSession, command: str) -> str:
        result = session.run(command)
        return result.stdout or result.stderr

    def _detect_gnu_sed(self, session: SSHSession) -> bool:
        # BSD and busybox sed reject --version or print no "GNU" banner
        result = session.run("sed --version 2>/dev/null | head -n 1")
        return result.ok and "GNU" in result.stdout
