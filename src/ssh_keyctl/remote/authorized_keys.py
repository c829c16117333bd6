"""Parsing and filtering of authorized_keys content."""

from __future__ import annotations

import base64
import binascii
import re
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

_KEY_TYPE_RE = re.compile(r"^(ssh-|ecdsa-|sk-)[A-Za-z0-9@.\-]+$")


@dataclass(frozen=True)
class AuthorizedKey:
    """One parsed authorized_keys entry."""

    key_type: str
    blob: bytes
    options: str = ""
    comment: str = ""


_SED_SPECIAL = frozenset("\\.*[]^$/")


def escape_for_sed(text: str) -> str:
    """Trim `text` and escape it for a ``/pattern/d`` address (basic regex)."""
    return "".join("\\" + char if char in _SED_SPECIAL else char for char in text.strip())


def _split_fields(line: str) -> List[str]:
    """Split on whitespace, keeping double-quoted option values intact."""
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\" and in_quotes:
            current.append(char)
            escaped = True
        elif char == '"':
            current.append(char)
            in_quotes = not in_quotes
        elif char.isspace() and not in_quotes:
            if current:
                fields.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        fields.append("".join(current))
    return fields


def _decode_blob(key_type: str, encoded: str) -> Optional[bytes]:
    try:
        blob = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
    # The blob starts with its own length-prefixed key type string
    if len(blob) < 4:
        return None
    (length,) = struct.unpack(">I", blob[:4])
    if blob[4:4 + length] != key_type.encode("ascii"):
        return None
    return blob


def parse_key_line(line: str) -> Optional[AuthorizedKey]:
    """Parse a public key or authorized_keys line; None for comments and junk."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    fields = _split_fields(stripped)
    for index, field in enumerate(fields[:-1]):
        if not _KEY_TYPE_RE.match(field):
            continue
        blob = _decode_blob(field, fields[index + 1])
        if blob is None:
            continue
        return AuthorizedKey(
            key_type=field,
            blob=blob,
            options=" ".join(fields[:index]),
            comment=" ".join(fields[index + 2:]),
        )
    return None


def sed_address(key_line: str) -> str:
    """Escaped ``<type> <base64>`` of a public key line.

    Options and comments are left out so they can neither break the
    pattern nor keep a copy of the key with another comment from matching.
    """
    entry = parse_key_line(key_line)
    if entry is None:
        raise ValueError("public key line could not be parsed")
    encoded = base64.b64encode(entry.blob).decode("ascii")
    return escape_for_sed(f"{entry.key_type} {encoded}")


def filter_authorized_keys(content: str, key_line: str) -> Tuple[str, int]:
    """Drop every entry whose decoded key blob equals the one in `key_line`.

    Options prefixes and comments do not affect matching; comment lines,
    blank lines and entries that do not parse are kept verbatim.

    Returns:
        The filtered content and the number of removed lines.
    """
    revoked = parse_key_line(key_line)
    if revoked is None:
        raise ValueError("public key line could not be parsed")

    kept: List[str] = []
    removed = 0
    for line in content.splitlines(keepends=True):
        entry = parse_key_line(line)
        if entry is not None and entry.blob == revoked.blob:
            removed += 1
            continue
        kept.append(line)
    return "".join(kept), removed
