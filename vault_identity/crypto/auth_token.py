"""
Authentication token generation.

The token is the encryption of a fixed transform of the password under the
master key, with a nonce taken from the username. Nonce, plaintext and key
are all fixed for a given (username, password, version), so the token can be
regenerated offline and the server, which holds the same password hash, can
verify it. The nonce must stay deterministic.
"""

import hashlib

import structlog
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.crypto.key_derivation import CURRENT_VERSION, KeyDeriver, check_version
from vault_identity.exceptions import MissingCredentialsError

logger = structlog.get_logger(__name__)

NONCE_LENGTH = 12


def username_nonce(username: str) -> bytes:
    return hashlib.sha512(username.encode("utf-8")).digest()[:NONCE_LENGTH]


def password_record(password: str) -> bytes:
    """Hex sha512 of the password; the value the server also holds."""
    return hashlib.sha512(password.encode("utf-8")).hexdigest().encode("ascii")


def compute_token(key: bytes, username: str, password: str) -> str:
    ciphertext = ChaCha20Poly1305(key).encrypt(
        username_nonce(username), password_record(password), None
    )
    return ciphertext.hex()


class TokenGenerator:
    """Builds auth tokens on top of a KeyDeriver sharing the same cache."""

    def __init__(self, key_deriver: KeyDeriver, cache: CredentialCache) -> None:
        self._key_deriver = key_deriver
        self._cache = cache

    async def derive_token(
        self,
        username: str | None,
        password: str | None,
        version: int = CURRENT_VERSION,
        *,
        use_cache: bool = True,
    ) -> str:
        """
        Derive (or return the cached) auth token.

        Raises:
            MissingCredentialsError: If username or password is empty and no
                token is cached.
            UnsupportedAlgorithmVersionError: If `version` is not implemented.
        """
        check_version(version)
        if use_cache and self._cache.token is not None:
            return self._cache.token

        if not username or not password:
            raise MissingCredentialsError("No username/password given for auth token")

        key = await self._key_deriver.derive_key(username, password, version, use_cache=use_cache)
        if key is None:
            raise MissingCredentialsError("No username/password given for auth token")

        token = compute_token(key, username, password)
        logger.debug("Derived auth token", version=version, cached=use_cache)

        if use_cache:
            self._cache.token = token
        return token
