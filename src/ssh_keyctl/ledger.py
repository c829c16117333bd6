"""Append-only diagnostic log of deployments and revocations.

The ledger is never consulted to decide what an operation does; it only
records what was attempted and what was confirmed so drift (for example a
renew interrupted between its two phases) can be spotted afterwards.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional

from .utils.logging import get_logger

logger = get_logger(__name__)

ATTEMPTED = "attempted"
CONFIRMED = "confirmed"
FAILED = "failed"


@dataclass
class LedgerEntry:
    timestamp: float
    operation: str
    event: str
    target: str
    host: str
    port: int
    identity: str
    fingerprint: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerEntry":
        return cls(
            timestamp=float(data.get("timestamp", 0)),
            operation=data.get("operation", "?"),
            event=data.get("event", "?"),
            target=data.get("target", ""),
            host=data.get("host", ""),
            port=int(data.get("port", 22)),
            identity=data.get("identity", ""),
            fingerprint=data.get("fingerprint"),
            detail=data.get("detail"),
        )


class DeploymentLedger:
    """JSON-lines ledger stored next to the tool configuration."""

    def __init__(self, path: Path, *, enabled: bool = True) -> None:
        self.path = Path(path).expanduser()
        self.enabled = enabled

    def record(
        self,
        operation: str,
        event: str,
        *,
        target: str,
        host: str,
        port: int,
        identity: str,
        fingerprint: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        if not self.enabled:
            return
        entry = LedgerEntry(
            timestamp=time.time(),
            operation=operation,
            event=event,
            target=target,
            host=host,
            port=port,
            identity=identity,
            fingerprint=fingerprint,
            detail=detail,
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.warning("Could not write ledger entry to %s: %s", self.path, exc)

    def entries(self, host: Optional[str] = None) -> List[LedgerEntry]:
        if not self.path.exists():
            return []
        results: List[LedgerEntry] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, 1):
                if not line.strip():
                    continue
                try:
                    entry = LedgerEntry.from_dict(json.loads(line))
                except (ValueError, TypeError) as exc:
                    logger.debug("Skipping malformed ledger line %d: %s", line_number, exc)
                    continue
                if host is None or entry.host == host:
                    results.append(entry)
        return results
