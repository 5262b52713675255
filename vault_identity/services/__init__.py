"""
Business logic services for vault_identity.
"""

from vault_identity.services.local_store import InMemoryLocalStore, LocalStore
from vault_identity.services.profile_sync import ApiProfileSaver, ProfileSaver, ProfileSync
from vault_identity.services.registration import RegistrationFlow
from vault_identity.services.session_manager import SessionManager
from vault_identity.services.session_store import SessionStore
from vault_identity.services.settings_store import SettingsStore

__all__ = [
    "ApiProfileSaver",
    "InMemoryLocalStore",
    "LocalStore",
    "ProfileSaver",
    "ProfileSync",
    "RegistrationFlow",
    "SessionManager",
    "SessionStore",
    "SettingsStore",
]
