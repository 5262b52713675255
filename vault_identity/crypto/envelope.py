"""
Sealing of private profile data under the master key.

Format: urlsafe-base64(version byte || 12-byte random nonce || ChaCha20-Poly1305 ciphertext).
"""

import base64
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from vault_identity.exceptions import CryptoError, IntegrityError

_FORMAT_VERSION = 1
_NONCE_LENGTH = 12


def seal(key: bytes, plaintext: bytes) -> str:
    nonce = os.urandom(_NONCE_LENGTH)
    ciphertext = ChaCha20Poly1305(key).encrypt(nonce, plaintext, None)
    return base64.urlsafe_b64encode(bytes([_FORMAT_VERSION]) + nonce + ciphertext).decode("ascii")


def unseal(key: bytes, sealed: str) -> bytes:
    """
    Raises:
        CryptoError: If the blob is malformed or of an unknown format.
        IntegrityError: If authentication fails (wrong key or tampered data).
    """
    try:
        raw = base64.urlsafe_b64decode(sealed.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        raise CryptoError("Sealed data is not valid base64") from e

    if len(raw) < 1 + _NONCE_LENGTH:
        raise CryptoError("Sealed data too short")
    if raw[0] != _FORMAT_VERSION:
        raise CryptoError(f"Unsupported sealed data format: {raw[0]}")

    nonce = raw[1 : 1 + _NONCE_LENGTH]
    try:
        return ChaCha20Poly1305(key).decrypt(nonce, raw[1 + _NONCE_LENGTH :], None)
    except InvalidTag as e:
        raise IntegrityError("Sealed data failed authentication") from e


def seal_json(key: bytes, data: dict[str, Any]) -> str:
    return seal(key, json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8"))


def unseal_json(key: bytes, sealed: str) -> dict[str, Any]:
    data = json.loads(unseal(key, sealed))
    if not isinstance(data, dict):
        raise CryptoError("Sealed payload is not an object")
    return data
