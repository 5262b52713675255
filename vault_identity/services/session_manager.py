"""
Session lifecycle: login, logout, persisted session restore, credential checks.

The SessionManager is the only writer of the credential cache. Every path
that fills it (interactive login, pre-authenticated bundle, persisted
session, password change) is undone by logout().
"""

import asyncio
from collections.abc import Iterable

import structlog

from vault_identity.api.endpoints import accounts as accounts_api
from vault_identity.api.endpoints.auth import check_credentials
from vault_identity.api.http_client import AsyncHttpClient
from vault_identity.config import VaultIdentityConfig
from vault_identity.core.events import EventEmitter
from vault_identity.crypto.auth_token import TokenGenerator, compute_token
from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.crypto.envelope import seal, unseal
from vault_identity.crypto.key_derivation import CURRENT_VERSION, KeyDeriver
from vault_identity.crypto.keypair import key_from_string, key_to_string
from vault_identity.exceptions import (
    MissingCredentialsError,
    NotAuthenticatedError,
    ProfileFetchFailedError,
    ProfileNotLoadedError,
    RemoteAuthRejectedError,
)
from vault_identity.models.account import KeychainEntry, UserProfile
from vault_identity.models.auth import AuthBundle, CredentialCheck, SessionRecord, SessionState
from vault_identity.services.local_store import LocalStore
from vault_identity.services.session_store import SessionStore

logger = structlog.get_logger(__name__)


class SessionManager:
    """
    Owns the process session.

    States: LOGGED_OUT -> AUTHENTICATING -> LOGGED_IN -> LOGGED_OUT.
    Logging in again while logged in re-runs the flow and replaces the state.

    Events emitted on `events`:
        login(profile), logout(), password_changed(profile)
    """

    def __init__(
        self,
        http_client: AsyncHttpClient,
        config: VaultIdentityConfig,
        session_store: SessionStore,
        local_store: LocalStore,
        *,
        profile: UserProfile | None = None,
        cache: CredentialCache | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        """
        Args:
            http_client: HTTP client for API requests.
            config: Client configuration.
            session_store: Slot for the persisted session record.
            local_store: Local database.
            profile: Profile owned by this session. A fresh one if not given.
            cache: Credential cache. A fresh one if not given.
            events: Session event channel. A fresh one if not given.
        """
        self._http = http_client
        self._config = config
        self._session_store = session_store
        self._local_store = local_store

        self._profile = profile or UserProfile()
        self._cache = cache or CredentialCache()
        self._events = events or EventEmitter()

        self._keys = KeyDeriver(self._cache, iterations=config.kdf_iterations)
        self._tokens = TokenGenerator(self._keys, self._cache)

        self._state = SessionState.LOGGED_OUT
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_logged_in(self) -> bool:
        return self._state == SessionState.LOGGED_IN

    @property
    def profile(self) -> UserProfile:
        return self._profile

    @property
    def cache(self) -> CredentialCache:
        return self._cache

    @property
    def events(self) -> EventEmitter:
        return self._events

    @property
    def local_store(self) -> LocalStore:
        return self._local_store

    @property
    def key_deriver(self) -> KeyDeriver:
        return self._keys

    @property
    def token_generator(self) -> TokenGenerator:
        return self._tokens

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

        The key and token are derived without touching the cache and only
        committed once the server has accepted them. If the account id is not
        known it is resolved with a credential check first.

        Once the token is accepted the session is LOGGED_IN, before the profile
        is fetched. If the fetch then fails the session stays logged in with
        a partial profile and ProfileFetchFailedError is raised; callers should
        retry with `refresh_profile()`.

        Args:
            username: Account username.
            password: Account password.
            user_id: Account id, if already known.
            silent: Do not emit the `login` event.

        Returns:
            The session profile.

        Raises:
            MissingCredentialsError: If username or password is empty.
            RemoteAuthRejectedError: If the server refuses the token.
            ProfileFetchFailedError: If the profile could not be fetched.
        """
        logger.info("Starting login")

        if not username or not password:
            raise MissingCredentialsError()

        async with self._lock:
            previous_state = self._state
            self._state = SessionState.AUTHENTICATING

            try:
                key = await self._keys.derive_key(username, password, use_cache=False)
                if key is None:
                    raise MissingCredentialsError()
                token = compute_token(key, username, password)

                if user_id is None:
                    user_id = await check_credentials(self._http, username, token)
            except Exception:
                self._state = previous_state
                raise

            self._cache.key = key
            self._cache.token = token
            self._state = SessionState.LOGGED_IN
            self._reset_profile_for(user_id)
            self._profile.update(id=user_id, username=username)
            self._http.set_credentials(username, token)

            try:
                await self._fetch_profile(username, token)
            except RemoteAuthRejectedError:
                logger.warning("Profile fetch rejected credentials")
                self._cache.clear()
                self._http.clear_credentials()
                self._profile.clear()
                self._state = SessionState.LOGGED_OUT
                raise

            await self.write_session_record(username=username, password=password)
            logger.info("Login successful", user_id=user_id)

        if not silent:
            self._events.emit("login", self._profile)
        return self._profile

    async def refresh_profile(self) -> UserProfile:
        """
        Fetch the profile again with the session credentials.

        Raises:
            NotAuthenticatedError: If not logged in.
            ProfileFetchFailedError: If the fetch fails.
        """
        self._require_logged_in()
        await self._fetch_profile(self._profile.username, self._cache.token)
        return self._profile

    def login_from_preauth(self, bundle: AuthBundle | None) -> bool:
        """
        Trust an externally authenticated bundle without contacting the server.

        As with a restored session, call `refresh_profile()` before changing
        settings.

        Returns:
            False if no bundle was given, True once logged in.

        Raises:
            CryptoError: If the encoded key is malformed.
        """
        if bundle is None:
            return False

        self._establish(
            user_id=bundle.user_id,
            username=bundle.username,
            key=key_from_string(bundle.encoded_key),
            token=bundle.auth_token,
        )
        logger.info("Logged in from pre-authenticated bundle", user_id=bundle.user_id)
        self._events.emit("login", self._profile)
        return True

    def restore_from_session_store(self) -> bool:
        """
        Log in from the persisted session record.

        Only the public fields are known afterwards; settings changes are not
        saved until `refresh_profile()` has loaded the private fields.

        Returns:
            False if there is no record (not an error), True once logged in.

        Raises:
            CryptoError: If the stored key is malformed.
        """
        record = self._session_store.load()
        if record is None:
            return False

        self._establish(
            user_id=record.user_id,
            username=record.username,
            key=key_from_string(record.encoded_key),
            token=record.auth_token,
            storage_descriptor=record.storage_descriptor,
        )
        logger.info("Session restored", user_id=record.user_id)
        self._events.emit("login", self._profile)
        return True

    async def write_session_record(
        self,
        *,
        version: int = CURRENT_VERSION,
        username: str | None = None,
        password: str | None = None,
    ) -> bool:
        """
        Persist the current session so it can be restored without a password.

        Uses the cached key and token when present, deriving them otherwise.

        Returns:
            True if a record was written. False when persisted sessions are
            disabled or there is nothing to write (no cache, no credentials).

        Raises:
            UnsupportedAlgorithmVersionError: If `version` is not implemented.
        """
        if not self._config.remember_session:
            return False

        username = username or self._profile.username
        if self._cache.key is None and (not username or not password):
            return False

        key = await self._keys.derive_key(username, password, version)
        try:
            token = await self._tokens.derive_token(username, password, version)
        except MissingCredentialsError:
            return False
        if key is None or not token or self._profile.id is None or not username:
            return False

        record = SessionRecord(
            user_id=self._profile.id,
            username=username,
            encoded_key=key_to_string(key),
            auth_token=token,
            storage_descriptor=self._profile.storage_descriptor,
        )
        await asyncio.to_thread(self._session_store.save, record)
        return True

    async def logout(self) -> None:
        """Clear the session. Safe to call in any state."""
        logger.info("Logging out")

        self._cache.clear()
        self._profile.clear()
        self._http.clear_credentials()
        await asyncio.to_thread(self._session_store.clear)
        self._state = SessionState.LOGGED_OUT

        self._events.emit("logout")

    def clear_credentials(self) -> None:
        """Drop the cached key and token without logging out."""
        self._cache.clear()
        self._http.clear_credentials()

    async def test_credentials(self, username: str, password: str) -> CredentialCheck:
        """
        Check credentials with the server without changing the session.

        Returns:
            The account id and whether the account needs algorithm migration.

        Raises:
            MissingCredentialsError: If username or password is empty.
            RemoteAuthRejectedError: If the server refuses the token.
        """
        token = await self._tokens.derive_token(username, password, use_cache=False)
        user_id = await check_credentials(self._http, username, token)
        return CredentialCheck(user_id=user_id, migrate=False)

    async def change_password(
        self,
        new_username: str,
        new_password: str,
        keychain: Iterable[KeychainEntry] = (),
    ) -> list[KeychainEntry]:
        """
        Move the account to new credentials.

        The new key and token are derived aside, every keychain entry is
        re-sealed under the new key, and everything is sent in one request.
        The session only switches to the new key after the server accepted
        it, so any failure leaves the current session untouched.

        Args:
            new_username: Username after the change.
            new_password: Password after the change.
            keychain: Item keys sealed under the current master key.

        Returns:
            The keychain entries re-sealed under the new master key.

        Raises:
            NotAuthenticatedError: If not logged in.
            MissingCredentialsError: If a new credential is empty.
            IntegrityError: If a keychain entry does not open with the current key.
            ProfileNotLoadedError: If the profile was never fetched.
        """
        self._require_logged_in()
        if not new_username or not new_password:
            raise MissingCredentialsError()

        async with self._lock:
            old_key = self._cache.key
            if old_key is None:
                raise NotAuthenticatedError("No master key cached")
            if not self._profile.is_loaded:
                msg = "Profile must be fetched before changing credentials"
                raise ProfileNotLoadedError(msg, user_id=self._profile.id)

            new_key = await self._keys.derive_key(new_username, new_password, use_cache=False)
            if new_key is None:
                raise MissingCredentialsError()
            new_token = compute_token(new_key, new_username, new_password)

            rekeyed = [
                KeychainEntry(
                    item_id=entry.item_id,
                    sealed_key=seal(new_key, unseal(old_key, entry.sealed_key)),
                )
                for entry in keychain
            ]
            payload = self._profile.serialize(new_key)
            payload["username"] = new_username

            await accounts_api.change_credentials(
                self._http,
                self._profile.id,
                username=new_username,
                token=new_token,
                keychain=[{"item_id": e.item_id, "key": e.sealed_key} for e in rekeyed],
                profile=payload,
            )

            self._cache.key = new_key
            self._cache.token = new_token
            self._profile.update(username=new_username)
            self._http.set_credentials(new_username, new_token)
            await self.write_session_record()
            logger.info("Credentials changed", user_id=self._profile.id)

        self._events.emit("password_changed", self._profile)
        return rekeyed

    async def delete_account(self) -> None:
        """
        Delete the account remotely, wipe the local store, then log out.

        Raises:
            NotAuthenticatedError: If not logged in.
        """
        self._require_logged_in()
        user_id = self._profile.id
        await accounts_api.delete_account(self._http, user_id)
        await self._local_store.wipe()
        logger.info("Account deleted", user_id=user_id)
        await self.logout()

    async def resend_confirmation(self) -> None:
        await accounts_api.resend_confirmation(self._http)

    async def _fetch_profile(self, username: str | None, token: str | None) -> None:
        try:
            data = await accounts_api.get_account(
                self._http, self._profile.id, auth=(username, token)
            )
            self._profile.merge(data, self._cache.key)
        except RemoteAuthRejectedError:
            raise
        except Exception as e:
            logger.error("Problem fetching profile", error_type=type(e).__name__)
            msg = "Failed to fetch profile"
            raise ProfileFetchFailedError(msg, user_id=self._profile.id) from e

    def _establish(
        self,
        *,
        user_id: str,
        username: str,
        key: bytes,
        token: str,
        storage_descriptor: object = None,
    ) -> None:
        self._cache.key = key
        self._cache.token = token
        self._reset_profile_for(user_id)
        self._profile.update(id=user_id, username=username, storage_descriptor=storage_descriptor)
        self._http.set_credentials(username, token)
        self._state = SessionState.LOGGED_IN

    def _reset_profile_for(self, user_id: str) -> None:
        if self._profile.id != user_id:
            # Another identity: none of the previous private fields may carry over
            self._profile.clear()

    def _require_logged_in(self) -> None:
        if not self.is_logged_in or self._profile.id is None:
            raise NotAuthenticatedError()
