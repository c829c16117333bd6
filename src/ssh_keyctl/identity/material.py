"""Keypair generation and OpenSSH serialization built on cryptography."""

from __future__ import annotations

import base64
import getpass
import hashlib
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed25519, rsa

from ..errors import KeyGenerationError, SerializationError

PrivateKey = Union[
    rsa.RSAPrivateKey,
    dsa.DSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
]

_CURVES = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
    521: ec.SECP521R1,
}


class KeyAlgorithm(Enum):
    RSA = "rsa"
    DSA = "dsa"
    ECDSA = "ecdsa"
    ED25519 = "ed25519"

    @classmethod
    def parse(cls, name: str) -> "KeyAlgorithm":
        try:
            return cls(name.lower())
        except ValueError:
            raise KeyGenerationError(
                f"Unknown key type {name!r}. Must be one of rsa, dsa, ecdsa, or ed25519"
            ) from None


@dataclass
class KeyPairHandle:
    """A freshly generated keypair plus the comment to embed in it."""

    algorithm: KeyAlgorithm
    private_key: PrivateKey
    comment: str = ""


@dataclass(frozen=True)
class KeyMaterial:
    """Serialized halves of one keypair, ready to be persisted."""

    algorithm: KeyAlgorithm
    comment: str
    private_blob: bytes
    public_blob: bytes
    encrypted: bool = False

    @property
    def fingerprint(self) -> str:
        return public_key_fingerprint(self.public_blob.decode("ascii"))


def default_comment() -> str:
    """``user@hostname`` of the machine generating the key."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "user"
    return f"{user}@{socket.gethostname()}"


def public_key_fingerprint(public_line: str) -> str:
    """OpenSSH-style SHA256 fingerprint of a public key line."""
    parts = public_line.split()
    if len(parts) < 2:
        raise ValueError("not an OpenSSH public key line")
    digest = hashlib.sha256(base64.b64decode(parts[1])).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


class KeyMaterialProvider:
    """Generates keypairs and encodes them the way ssh-keygen would.

    Passphrase-protected private keys use ``BestAvailableEncryption``, which
    for the OpenSSH format means a bcrypt KDF with aes256-ctr.
    """

    def __init__(self, rsa_bits: int = 2048, dsa_bits: int = 1024, ecdsa_bits: int = 256) -> None:
        if ecdsa_bits not in _CURVES:
            raise KeyGenerationError(f"Unsupported ECDSA key size: {ecdsa_bits}")
        self.rsa_bits = rsa_bits
        self.dsa_bits = dsa_bits
        self.ecdsa_bits = ecdsa_bits

    def generate(self, algorithm: KeyAlgorithm) -> KeyPairHandle:
        try:
            if algorithm is KeyAlgorithm.RSA:
                key: PrivateKey = rsa.generate_private_key(
                    public_exponent=65537, key_size=self.rsa_bits
                )
            elif algorithm is KeyAlgorithm.DSA:
                key = dsa.generate_private_key(key_size=self.dsa_bits)
            elif algorithm is KeyAlgorithm.ECDSA:
                key = ec.generate_private_key(_CURVES[self.ecdsa_bits]())
            else:
                key = ed25519.Ed25519PrivateKey.generate()
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeyGenerationError(
                f"Could not generate {algorithm.value} key: {exc}"
            ) from exc
        return KeyPairHandle(algorithm=algorithm, private_key=key)

    def set_comment(self, handle: KeyPairHandle, text: str) -> None:
        handle.comment = text

    def serialize_private(self, handle: KeyPairHandle, passphrase: Optional[bytes] = None) -> bytes:
        if passphrase:
            encryption: serialization.KeySerializationEncryption = (
                serialization.BestAvailableEncryption(passphrase)
            )
        else:
            encryption = serialization.NoEncryption()
        try:
            return handle.private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.OpenSSH,
                encryption_algorithm=encryption,
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SerializationError(
                f"Could not serialize {handle.algorithm.value} private key: {exc}"
            ) from exc

    def serialize_public(self, handle: KeyPairHandle) -> bytes:
        try:
            body = handle.private_key.public_key().public_bytes(
                encoding=serialization.Encoding.OpenSSH,
                format=serialization.PublicFormat.OpenSSH,
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SerializationError(
                f"Could not serialize {handle.algorithm.value} public key: {exc}"
            ) from exc
        if handle.comment:
            body += b" " + handle.comment.encode("utf-8")
        return body + b"\n"

    def create(
        self,
        algorithm: KeyAlgorithm,
        comment: str,
        passphrase: Optional[bytes] = None,
    ) -> KeyMaterial:
        """Generate, comment and serialize a keypair in one call."""
        handle = self.generate(algorithm)
        self.set_comment(handle, comment)
        return KeyMaterial(
            algorithm=algorithm,
            comment=comment,
            private_blob=self.serialize_private(handle, passphrase),
            public_blob=self.serialize_public(handle),
            encrypted=bool(passphrase),
        )
