"""
Cryptographic operations for vault_identity.

This module provides:
- Versioned master key derivation (PBKDF2-HMAC-SHA256)
- Deterministic auth token generation (ChaCha20-Poly1305)
- Sealing of private profile fields
- Account keypair generation
- Zeroable key storage
"""

from vault_identity.crypto.auth_token import TokenGenerator, compute_token
from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.crypto.envelope import seal, seal_json, unseal, unseal_json
from vault_identity.crypto.key_derivation import (
    CURRENT_VERSION,
    KeyDeriver,
    stretch_password,
)
from vault_identity.crypto.keypair import Keypair, generate_keypair, key_from_string, key_to_string
from vault_identity.crypto.secure_bytes import SecureBytes

__all__ = [
    "CURRENT_VERSION",
    "CredentialCache",
    "KeyDeriver",
    "Keypair",
    "SecureBytes",
    "TokenGenerator",
    "compute_token",
    "generate_keypair",
    "key_from_string",
    "key_to_string",
    "seal",
    "seal_json",
    "stretch_password",
    "unseal",
    "unseal_json",
]
