"""Account keypair generation and key encoding helpers."""

import base64
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from vault_identity.exceptions import CryptoError


@dataclass(frozen=True, kw_only=True)
class Keypair:
    """
    Attributes:
        public_key: Base64-encoded raw X25519 public key.
        private_key: Base64-encoded raw X25519 private key.
    """

    public_key: str
    private_key: str


def generate_keypair() -> Keypair:
    private = X25519PrivateKey.generate()
    private_raw = private.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_raw = private.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return Keypair(
        public_key=base64.b64encode(public_raw).decode("ascii"),
        private_key=base64.b64encode(private_raw).decode("ascii"),
    )


def key_to_string(key: bytes) -> str:
    """Reversible text form of a symmetric key, for the session record."""
    return base64.urlsafe_b64encode(key).decode("ascii")


def key_from_string(encoded: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(encoded.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        raise CryptoError("Encoded key is not valid base64") from e
