"""Command-line interface for ssh-keyctl."""

from __future__ import annotations

import argparse
import getpass
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import KEY_TYPES, AppConfig, load_config
from .errors import KeyCtlError
from .ledger import DeploymentLedger
from .lifecycle import InitRequest, LifecycleOrchestrator, RenewRequest, RevokeRequest
from .utils.logging import get_logger, set_verbose

logger = get_logger(__name__)


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig


def _key_type(value: str) -> str:
    lowered = value.lower()
    if lowered not in KEY_TYPES:
        raise argparse.ArgumentTypeError("Must be one of rsa, dsa, ecdsa, or ed25519")
    return lowered


def _add_key_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t", "--type", dest="key_type", type=_key_type, default=None,
        help="Key type: rsa, dsa, ecdsa or ed25519 (default: ed25519)",
    )
    parser.add_argument(
        "-c", "--comment", default=None,
        help="Comment for the key. Generally `username@hostname` of the "
             "computer that generated it (the default).",
    )
    passphrase = parser.add_mutually_exclusive_group()
    passphrase.add_argument("-P", "--passphrase", default=None, help="Encrypt the private key")
    passphrase.add_argument(
        "--prompt-passphrase", action="store_true",
        help="Prompt for the private key passphrase",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ssh-keyctl",
        description="Generate, deploy, revoke and renew per-host SSH identities.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init", help="Create a keypair for a host and copy it there"
    )
    init_parser.add_argument("target", help="[user@]host")
    init_parser.add_argument("-p", "--port", type=int, default=22, help="SSH port")
    init_parser.add_argument(
        "-i", "--identity", default=None,
        help="Identity file name in the store (default: the host)",
    )
    init_parser.add_argument(
        "-f", "--force", action="store_true",
        help="Overwrite existing identity files",
    )
    _add_key_options(init_parser)

    revoke_parser = subparsers.add_parser(
        "revoke", help="Remove a host's key from its authorized_keys"
    )
    revoke_parser.add_argument("target", help="[user@]host")
    revoke_parser.add_argument(
        "identity", nargs="?", default=None,
        help="Identity file name in the store (default: the host)",
    )
    revoke_parser.add_argument("-p", "--port", type=int, default=22, help="SSH port")
    revoke_parser.add_argument(
        "-d", "--delete-identity-file", action="store_true",
        help="Delete the local key files after a successful revoke",
    )

    renew_parser = subparsers.add_parser(
        "renew", help="Revoke the current key, then create and deploy a new one"
    )
    renew_parser.add_argument("target", help="[user@]host")
    renew_parser.add_argument(
        "identity", nargs="?", default=None,
        help="Identity file name in the store (default: the host)",
    )
    renew_parser.add_argument("-p", "--port", type=int, default=22, help="SSH port")
    renew_parser.add_argument(
        "-d", "--delete-identity-file", action="store_true",
        help="Delete the old key files before writing the new ones",
    )
    renew_parser.add_argument(
        "-f", "--force", action="store_true",
        help="Accepted for compatibility; renew always overwrites its own identity files",
    )
    _add_key_options(renew_parser)

    history_parser = subparsers.add_parser(
        "history", help="Show the deployment ledger"
    )
    history_parser.add_argument("host", nargs="?", default=None, help="Only show this host")
    history_parser.add_argument(
        "--limit", "-n", type=int, default=20,
        help="Number of most recent entries to show (0 for all)",
    )

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    return CLIContext(config=load_config(args.config))


def _read_passphrase(args: argparse.Namespace) -> Optional[str]:
    if args.passphrase:
        return args.passphrase
    if not args.prompt_passphrase:
        return None
    first = getpass.getpass("Enter passphrase (empty for no passphrase): ")
    second = getpass.getpass("Enter same passphrase again: ")
    if first != second:
        raise ValueError("Passphrases do not match")
    return first or None


def handle_history_command(args: argparse.Namespace, context: CLIContext) -> int:
    """Handle the history subcommand."""
    ledger = DeploymentLedger(context.config.ledger.path)
    entries = ledger.entries(host=args.host)
    if not entries:
        print("No ledger entries found.")
        return 0
    if args.limit > 0:
        entries = entries[-args.limit:]

    print(f"{'Time':<20} {'Operation':<10} {'Event':<10} {'Target':<30} {'Identity':<20} Fingerprint")
    print("-" * 120)
    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        target = f"{entry.target}:{entry.port}"
        print(
            f"{when:<20} {entry.operation:<10} {entry.event:<10} {target:<30} "
            f"{entry.identity:<20} {entry.fingerprint or '-'}"
        )
        if entry.detail:
            print(f"{'':<20} {entry.detail}")
    return 0


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)

    if args.command == "history":
        return handle_history_command(args, context)

    orchestrator = LifecycleOrchestrator(context.config)
    default_type = context.config.keys.default_type

    if args.command == "init":
        result = orchestrator.init(
            InitRequest(
                target=args.target,
                key_type=args.key_type or default_type,
                comment=args.comment,
                port=args.port,
                passphrase=_read_passphrase(args),
                force=args.force,
                identity_name=args.identity,
            )
        )
        print(f"Initialized {result.identity.private_path} for {result.target} ({result.fingerprint})")
        return 0

    if args.command == "revoke":
        result = orchestrator.revoke(
            RevokeRequest(
                target=args.target,
                identity_name=args.identity,
                port=args.port,
                delete_identity_file=args.delete_identity_file,
            )
        )
        print(f"Revoked {result.identity.public_path} on {result.target}")
        return 0

    if args.command == "renew":
        renewed = orchestrator.renew(
            RenewRequest(
                target=args.target,
                key_type=args.key_type or default_type,
                comment=args.comment,
                port=args.port,
                passphrase=_read_passphrase(args),
                identity_name=args.identity,
                delete_identity_file=args.delete_identity_file,
            )
        )
        print(
            f"Renewed {renewed.initialized.identity.private_path} for "
            f"{renewed.initialized.target} ({renewed.initialized.fingerprint})"
        )
        return 0

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbose(args.verbose)
    try:
        return dispatch_command(args)
    except KeyCtlError as exc:
        phase = exc.phase or "unknown"
        print(f"error [{phase}]: {exc}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
