"""
vault_identity exception hierarchy.

All exceptions inherit from VaultIdentityError for easy catching.
"""

from typing import Any


class VaultIdentityError(Exception):
    """Base exception for all vault_identity errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class AuthenticationError(VaultIdentityError):
    """Authentication failed."""


class MissingCredentialsError(AuthenticationError):
    """No username or password was supplied to a derivation call."""

    def __init__(self, message: str = "Username and password required") -> None:
        super().__init__(message)


class RemoteAuthRejectedError(AuthenticationError):
    """The server refused the authentication token."""


class NotAuthenticatedError(AuthenticationError):
    """Operation requires a logged-in session."""

    def __init__(self, message: str = "Not logged in") -> None:
        super().__init__(message)


class CryptoError(VaultIdentityError):
    """Cryptographic operation failed."""


class UnsupportedAlgorithmVersionError(CryptoError):
    """Requested key derivation version is not implemented."""

    def __init__(self, version: int) -> None:
        super().__init__(f"Key derivation version {version} not implemented", version=version)
        self.version = version


class IntegrityError(CryptoError):
    """Sealed data failed authentication (wrong key or tampered)."""


class ProfileFetchFailedError(VaultIdentityError):
    """
    The profile could not be fetched after the token was accepted.

    The session stays logged in with a stale or partial profile; callers
    should retry the fetch.
    """


class ProfileNotLoadedError(VaultIdentityError):
    """
    The private part of the profile has not been loaded yet.

    Sealing it now would overwrite the stored private key and settings with
    empty values. Fetch the profile first.
    """

    def __init__(self, message: str = "Profile not loaded", **context: Any) -> None:
        super().__init__(message, **context)


class RegistrationError(VaultIdentityError):
    """Account registration failed."""


class RegistrationInProgressError(RegistrationError):
    """Another registration is already running in this process."""

    def __init__(self, message: str = "A registration is already in progress") -> None:
        super().__init__(message)


class LocalStoreUnavailableError(RegistrationError):
    """The local store did not become ready before the reconciliation deadline."""

    def __init__(self, message: str, *, waited: float | None = None) -> None:
        super().__init__(message, waited=waited)
        self.waited = waited


class APIError(VaultIdentityError):
    """API request failed."""

    def __init__(self, message: str, *, code: int, endpoint: str | None = None) -> None:
        super().__init__(message, code=code, endpoint=endpoint)
        self.code = code
        self.endpoint = endpoint


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message, code=404, endpoint=endpoint)


class RateLimitError(APIError):
    """Rate limited by API."""

    def __init__(
        self, message: str = "Rate limit exceeded", *, retry_after: int | None = None
    ) -> None:
        super().__init__(message, code=429)
        self.retry_after = retry_after


class ServerError(APIError):
    """Server-side error (5xx)."""

    def __init__(self, message: str, *, code: int = 500, endpoint: str | None = None) -> None:
        super().__init__(message, code=code, endpoint=endpoint)


class NetworkError(VaultIdentityError):
    """Network-level error (connection failed, timeout)."""
