"""Configuration loading utilities for ssh-keyctl."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .paths import CONFIG_FILE, DEFAULT_STORE_DIR, LEDGER_FILE

# Load .env file if it exists
load_dotenv()

REVOKE_STRATEGIES = ("rewrite", "sed", "auto")
HOST_KEY_POLICIES = ("reject", "warn", "auto-add")
KEY_TYPES = ("rsa", "dsa", "ecdsa", "ed25519")


@dataclass
class StoreConfig:
    """Where identity files are kept."""

    directory: str = str(DEFAULT_STORE_DIR)


@dataclass
class KeyConfig:
    """Defaults for newly generated keys."""

    default_type: str = "ed25519"
    rsa_bits: int = 2048
    ecdsa_bits: int = 256


@dataclass
class RemoteConfig:
    """Settings for talking to remote hosts."""

    ssh_binary: str = "ssh"
    copy_id_binary: str = "ssh-copy-id"
    revoke_strategy: str = "rewrite"  # "rewrite" | "sed" | "auto"
    host_key_policy: str = "warn"     # "reject" | "warn" | "auto-add"
    ssh_config_path: Optional[str] = None
    connect_timeout: Optional[int] = None


@dataclass
class LedgerConfig:
    """Diagnostic log of attempted and confirmed deployments."""

    enabled: bool = True
    path: str = str(LEDGER_FILE)


@dataclass
class AppConfig:
    """Top-level configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    keys: KeyConfig = field(default_factory=KeyConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    @property
    def store_dir(self) -> Path:
        return Path(self.store.directory).expanduser()

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        def section(name: str) -> Dict[str, Any]:
            data = payload.get(name, {}) or {}
            # Keys starting with "_" are comments
            return {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(
            store=StoreConfig(**{**StoreConfig().__dict__, **section("store")}),
            keys=KeyConfig(**{**KeyConfig().__dict__, **section("keys")}),
            remote=RemoteConfig(**{**RemoteConfig().__dict__, **section("remote")}),
            ledger=LedgerConfig(**{**LedgerConfig().__dict__, **section("ledger")}),
        )

    def validate(self) -> None:
        if self.remote.revoke_strategy not in REVOKE_STRATEGIES:
            raise ValueError(
                f"Unsupported revoke strategy: {self.remote.revoke_strategy}. "
                f"Supported strategies: {', '.join(REVOKE_STRATEGIES)}"
            )
        if self.remote.host_key_policy not in HOST_KEY_POLICIES:
            raise ValueError(
                f"Unsupported host key policy: {self.remote.host_key_policy}. "
                f"Supported policies: {', '.join(HOST_KEY_POLICIES)}"
            )
        if self.keys.default_type not in KEY_TYPES:
            raise ValueError(
                f"Unsupported default key type: {self.keys.default_type}. "
                f"Supported types: {', '.join(KEY_TYPES)}"
            )


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Expected a boolean value, got {value!r}")


def _apply_env(config: AppConfig) -> None:
    env_store = os.getenv("SSH_KEYCTL_STORE_DIR")
    if env_store:
        config.store.directory = env_store

    env_strategy = os.getenv("SSH_KEYCTL_REVOKE_STRATEGY")
    if env_strategy:
        config.remote.revoke_strategy = env_strategy.lower()

    env_ssh = os.getenv("SSH_KEYCTL_SSH_BINARY")
    if env_ssh:
        config.remote.ssh_binary = env_ssh

    env_copy_id = os.getenv("SSH_KEYCTL_COPY_ID_BINARY")
    if env_copy_id:
        config.remote.copy_id_binary = env_copy_id

    env_policy = os.getenv("SSH_KEYCTL_HOST_KEY_POLICY")
    if env_policy:
        config.remote.host_key_policy = env_policy.lower()

    env_ledger = os.getenv("SSH_KEYCTL_LEDGER")
    if env_ledger:
        config.ledger.enabled = _parse_bool(env_ledger)

    env_ledger_path = os.getenv("SSH_KEYCTL_LEDGER_PATH")
    if env_ledger_path:
        config.ledger.path = env_ledger_path


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path`, the user config file, or defaults.

    An explicitly requested `path` must exist. Environment variables take
    precedence over file values:
    - SSH_KEYCTL_STORE_DIR: Identity store directory
    - SSH_KEYCTL_REVOKE_STRATEGY: rewrite | sed | auto
    - SSH_KEYCTL_SSH_BINARY / SSH_KEYCTL_COPY_ID_BINARY: External tools
    - SSH_KEYCTL_HOST_KEY_POLICY: reject | warn | auto-add
    - SSH_KEYCTL_LEDGER: Enable or disable the deployment ledger
    - SSH_KEYCTL_LEDGER_PATH: Ledger file location
    """

    if path and not Path(path).is_file():
        raise FileNotFoundError(f"Could not find configuration file: {path}")

    candidate = Path(path) if path else CONFIG_FILE
    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = AppConfig.from_dict(data)
    else:
        config = AppConfig()

    _apply_env(config)
    config.validate()
    return config
