"""
Session-scoped cache for the derived master key and auth token.

Both values are expensive (key stretching) or sensitive, so they are kept for
the lifetime of an authenticated session and wiped exactly at logout.
"""

from vault_identity.crypto.secure_bytes import SecureBytes


class CredentialCache:
    """
    Holds at most one key and one token.

    Only SessionManager (directly, or through the key deriver and token
    generator it owns) writes here; every write is undone by clear().
    """

    def __init__(self) -> None:
        self._key: SecureBytes | None = None
        self._token: str | None = None

    @property
    def key(self) -> bytes | None:
        """Cached key, or None."""
        if not self._key:
            return None
        return bytes(self._key)

    @key.setter
    def key(self, value: bytes | None) -> None:
        if self._key is not None:
            self._key.clear()
        self._key = SecureBytes(value) if value is not None else None

    @property
    def token(self) -> str | None:
        return self._token

    @token.setter
    def token(self, value: str | None) -> None:
        self._token = value

    @property
    def is_empty(self) -> bool:
        return self._key is None and self._token is None

    def clear(self) -> None:
        """Zero the key and drop the token."""
        self.key = None
        self._token = None
