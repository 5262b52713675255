"""
Domain models for vault_identity.

Value objects are immutable (frozen) dataclasses; UserProfile is the one
mutable, observable model.
"""

from vault_identity.models.account import KeychainEntry, UserProfile
from vault_identity.models.auth import (
    AuthBundle,
    CredentialCheck,
    SessionRecord,
    SessionState,
)

__all__ = [
    # Auth
    "SessionState",
    "SessionRecord",
    "AuthBundle",
    "CredentialCheck",
    # Account
    "UserProfile",
    "KeychainEntry",
]
