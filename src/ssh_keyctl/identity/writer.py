"""Collision-safe writes into the identity store."""

from __future__ import annotations

import os
from pathlib import Path

from ..errors import AlreadyExistsError, StoreIOError
from ..utils.logging import get_logger

logger = get_logger(__name__)

PRIVATE_MODE = 0o600
DEFAULT_MODE = 0o666


class SafeFileWriter:
    """Writes key files with exclusive-create-or-force semantics.

    Private files are created with mode 0600 and re-chmodded through the open
    descriptor before any content is written, so neither the umask nor a
    previously looser mode on a forced overwrite can expose the key.
    The exists check and the create are one ``O_EXCL`` open; nothing is
    written when it fails.
    """

    def write(self, path: Path, data: bytes, *, is_private: bool, force: bool) -> None:
        path = Path(path)
        flags = os.O_WRONLY | os.O_CREAT | getattr(os, "O_BINARY", 0)
        flags |= os.O_TRUNC if force else os.O_EXCL
        mode = PRIVATE_MODE if is_private else DEFAULT_MODE

        try:
            fd = os.open(path, flags, mode)
        except FileExistsError:
            raise AlreadyExistsError(path) from None
        except OSError as exc:
            raise StoreIOError(path, exc) from exc

        try:
            if is_private and hasattr(os, "fchmod"):
                os.fchmod(fd, PRIVATE_MODE)
            with os.fdopen(fd, "wb") as handle:
                fd = -1
                handle.write(data)
        except OSError as exc:
            if fd >= 0:
                os.close(fd)
            raise StoreIOError(path, exc) from exc

        logger.debug("Wrote %d bytes to %s (private=%s)", len(data), path, is_private)
