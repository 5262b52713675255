"""
vault_identity: client-side identity and session management.

Turns a username/password pair into a master key that never leaves the
client and an auth token the server can verify, and manages the session that
results from it.

Example:
    ```python
    from vault_identity import VaultIdentityClient

    async with VaultIdentityClient() as client:
        if not client.restore_session():
            await client.login("alice", "hunter2")

        client.settings.set("editor.font", "mono")
        print(client.settings.get("editor.font"))

        await client.logout()
    ```
"""

from vault_identity.client import VaultIdentityClient
from vault_identity.config import VaultIdentityConfig
from vault_identity.exceptions import (
    APIError,
    AuthenticationError,
    CryptoError,
    IntegrityError,
    LocalStoreUnavailableError,
    MissingCredentialsError,
    NetworkError,
    NotAuthenticatedError,
    NotFoundError,
    ProfileFetchFailedError,
    ProfileNotLoadedError,
    RateLimitError,
    RegistrationError,
    RegistrationInProgressError,
    RemoteAuthRejectedError,
    ServerError,
    UnsupportedAlgorithmVersionError,
    VaultIdentityError,
)
from vault_identity.models.account import KeychainEntry, UserProfile
from vault_identity.models.auth import AuthBundle, CredentialCheck, SessionRecord, SessionState

__version__ = "0.1.0"

__all__ = [
    # Main client
    "VaultIdentityClient",
    "VaultIdentityConfig",
    # Models
    "AuthBundle",
    "CredentialCheck",
    "KeychainEntry",
    "SessionRecord",
    "SessionState",
    "UserProfile",
    # Exceptions
    "VaultIdentityError",
    "AuthenticationError",
    "MissingCredentialsError",
    "RemoteAuthRejectedError",
    "NotAuthenticatedError",
    "CryptoError",
    "UnsupportedAlgorithmVersionError",
    "IntegrityError",
    "ProfileFetchFailedError",
    "ProfileNotLoadedError",
    "RegistrationError",
    "RegistrationInProgressError",
    "LocalStoreUnavailableError",
    "APIError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "NetworkError",
]
