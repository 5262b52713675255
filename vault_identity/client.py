"""
vault_identity client facade.

This is the main entry point for users of the library. It owns the one
session of the process and wires the services together.
"""

from collections.abc import Iterable
from typing import Any, Self

import httpx
import structlog

from vault_identity.api.http_client import AsyncHttpClient
from vault_identity.config import VaultIdentityConfig
from vault_identity.core.events import EventEmitter, Handler, Subscription
from vault_identity.models.account import KeychainEntry, UserProfile
from vault_identity.models.auth import AuthBundle, CredentialCheck, SessionState
from vault_identity.services.local_store import InMemoryLocalStore, LocalStore
from vault_identity.services.profile_sync import ApiProfileSaver, ProfileSaver, ProfileSync
from vault_identity.services.registration import RegistrationFlow
from vault_identity.services.session_manager import SessionManager
from vault_identity.services.session_store import SessionStore
from vault_identity.services.settings_store import SettingsStore

logger = structlog.get_logger(__name__)


class VaultIdentityClient:
    """
    Async client for account identity and session management.

    Example:
        ```python
        async with VaultIdentityClient(local_store=db) as client:
            if not client.restore_session():
                check = await client.test_credentials("alice", "hunter2")
                await client.login("alice", "hunter2", user_id=check.user_id)

            client.settings.set("theme", "dark")
            await client.logout()
        ```

    Args:
        config: Client configuration. Uses defaults if not provided.
        transport: Optional httpx transport for testing (mock transport).
        local_store: Local database. An uninitialized in-memory store if not provided.
        profile_saver: Save path for the sealed profile. Saves to the API and
            the local store if not provided.
    """

    def __init__(
        self,
        config: VaultIdentityConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        local_store: LocalStore | None = None,
        profile_saver: ProfileSaver | None = None,
    ) -> None:
        self._config = config or VaultIdentityConfig()

        self._http = AsyncHttpClient(self._config, transport=transport)
        self._local_store = local_store if local_store is not None else InMemoryLocalStore()
        self._session_store = SessionStore(
            self._config.session_dir,
            self._config.session_slot_name,
            self._config.session_passphrase,
        )

        self._session = SessionManager(
            self._http, self._config, self._session_store, self._local_store
        )
        self._registration = RegistrationFlow(self._http, self._session, self._config)
        self._settings = SettingsStore(self._session.profile)
        self._profile_sync = ProfileSync(
            self._session.profile,
            self._session.cache,
            profile_saver or ApiProfileSaver(self._http, self._local_store),
            self._session.events,
        )
        self._profile_sync.start()

    async def __aenter__(self) -> Self:
        """Enter async context."""
        await self._http.__aenter__()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        """Wait for pending saves and release resources. The session is kept."""
        self._registration.cancel()
        await self._profile_sync.wait_idle()
        await self._http.close()
        logger.debug("Client closed")

    @property
    def config(self) -> VaultIdentityConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def is_logged_in(self) -> bool:
        return self._session.is_logged_in

    @property
    def profile(self) -> UserProfile:
        return self._session.profile

    @property
    def settings(self) -> SettingsStore:
        return self._settings

    @property
    def events(self) -> EventEmitter:
        """Session events: login, logout, password_changed, saved, error."""
        return self._session.events

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def registration(self) -> RegistrationFlow:
        return self._registration

    def on(self, event: str, handler: Handler) -> Subscription:
        return self._session.events.on(event, handler)

    async def login(
        self,
        username: str,
        password: str,
        *,
        user_id: str | None = None,
        silent: bool = False,
    ) -> UserProfile:
        """
        Log in with a username and password.

        Raises:
            MissingCredentialsError: If username or password is empty.
            RemoteAuthRejectedError: If the server refuses the credentials.
            ProfileFetchFailedError: If the profile could not be fetched. The
                session is logged in regardless; retry with `refresh_profile()`.
        """
        return await self._session.login(username, password, user_id=user_id, silent=silent)

    async def refresh_profile(self) -> UserProfile:
        return await self._session.refresh_profile()

    def login_from_preauth(self, bundle: AuthBundle | None) -> bool:
        return self._session.login_from_preauth(bundle)

    def restore_session(self) -> bool:
        """Log in from the persisted session, if there is one."""
        return self._session.restore_from_session_store()

    async def write_session_record(self, *, version: int = 0, password: str | None = None) -> bool:
        return await self._session.write_session_record(version=version, password=password)

    async def logout(self) -> None:
        await self._session.logout()

    async def test_credentials(self, username: str, password: str) -> CredentialCheck:
        """
        Check credentials with the server without logging in.

        Raises:
            MissingCredentialsError: If username or password is empty.
            RemoteAuthRejectedError: If the server refuses the credentials.
        """
        return await self._session.test_credentials(username, password)

    async def register(self, username: str, password: str) -> UserProfile:
        """
        Create an account. Log in afterwards to store it locally.

        Raises:
            RegistrationInProgressError: If another registration is running.
            APIError: If the server refuses the registration.
        """
        return await self._registration.register(username, password)

    async def wait_registration_reconciled(self) -> None:
        await self._registration.wait_reconciled()

    async def change_password(
        self,
        new_username: str,
        new_password: str,
        keychain: Iterable[KeychainEntry] = (),
    ) -> list[KeychainEntry]:
        return await self._session.change_password(new_username, new_password, keychain)

    async def delete_account(self) -> None:
        await self._session.delete_account()

    async def resend_confirmation(self) -> None:
        await self._session.resend_confirmation()

    async def flush(self) -> None:
        """Run deferred profile saves and wait for in-flight ones."""
        await self._profile_sync.flush()

    def __repr__(self) -> str:
        details: dict[str, Any] = {"state": self.state.value}
        if self.profile.id is not None:
            details["user_id"] = self.profile.id
        inner = ", ".join(f"{k}={v!r}" for k, v in details.items())
        return f"VaultIdentityClient({inner})"
