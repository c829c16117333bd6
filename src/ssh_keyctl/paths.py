"""Unified path constants for ssh-keyctl.

Tool state lives under ~/.ssh-keyctl:
- ~/.ssh-keyctl/config.json     # Optional user configuration
- ~/.ssh-keyctl/ledger.jsonl    # Diagnostic deployment ledger

Identity files themselves live in the identity store (~/.ssh by default).
"""

from pathlib import Path

BASE_DIR = Path.home() / ".ssh-keyctl"

CONFIG_FILE = BASE_DIR / "config.json"
LEDGER_FILE = BASE_DIR / "ledger.jsonl"
DEFAULT_STORE_DIR = Path.home() / ".ssh"

# Relative to the remote login user's home directory.
REMOTE_AUTHORIZED_KEYS = ".ssh/authorized_keys"


def ensure_store_dir(store_dir: Path) -> Path:
    """Create the identity store with owner-only permissions if it is missing."""
    if not store_dir.exists():
        store_dir.mkdir(mode=0o700, parents=True)
    return store_dir
