"""
Versioned master key derivation.

The master key never leaves the client. It is derived from the username and
password and is the only place where password stretching cost is paid.
"""

import asyncio
import hashlib

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.exceptions import UnsupportedAlgorithmVersionError

logger = structlog.get_logger(__name__)

CURRENT_VERSION = 0
SUPPORTED_VERSIONS = frozenset({0})

KEY_LENGTH = 32
SALT_LENGTH = 16
DEFAULT_ITERATIONS = 100_000


def check_version(version: int) -> None:
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedAlgorithmVersionError(version)


def username_salt(username: str, version: int = CURRENT_VERSION) -> bytes:
    """Salt for `username`: prefix of sha512("v<version>/<username>")."""
    tagged = f"v{version}/{username}"
    return hashlib.sha512(tagged.encode("utf-8")).digest()[:SALT_LENGTH]


def stretch_password(
    username: str,
    password: str,
    version: int = CURRENT_VERSION,
    *,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    """
    Derive the raw master key. Blocking and deliberately slow.

    Raises:
        UnsupportedAlgorithmVersionError: For any version other than 0.
    """
    check_version(version)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=username_salt(username, version),
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


class KeyDeriver:
    """Derives master keys and caches the session's key in a CredentialCache."""

    def __init__(self, cache: CredentialCache, *, iterations: int = DEFAULT_ITERATIONS) -> None:
        self._cache = cache
        self._iterations = iterations

    async def derive_key(
        self,
        username: str | None,
        password: str | None,
        version: int = CURRENT_VERSION,
        *,
        use_cache: bool = True,
    ) -> bytes | None:
        """
        Derive (or return the cached) master key.

        Args:
            username: Account username.
            password: Account password.
            version: Derivation algorithm version.
            use_cache: Return the cached key if present and cache the result.
                Pass False to test credentials without touching the session.

        Returns:
            The 32-byte key, or None when username or password is missing
            and nothing is cached. None means "cannot authenticate", not failure.

        Raises:
            UnsupportedAlgorithmVersionError: If `version` is not implemented.
        """
        check_version(version)

        if use_cache:
            cached = self._cache.key
            if cached is not None:
                return cached

        if not username or not password:
            return None

        key = await asyncio.to_thread(
            stretch_password, username, password, version, iterations=self._iterations
        )
        logger.debug("Derived master key", version=version, cached=use_cache)

        if use_cache:
            self._cache.key = key
        return key
