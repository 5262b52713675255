"""
Automatic encrypted persistence of the profile.

Whenever the profile's settings are replaced, a save is scheduled on the
running event loop. The mutation has already succeeded locally by then, so a
failed save is reported on the session's `error` event instead of raised.
"""

import asyncio
from typing import Any, Protocol, runtime_checkable

import structlog

from vault_identity.api.endpoints.accounts import update_account
from vault_identity.api.http_client import AsyncHttpClient
from vault_identity.core.events import EventEmitter, Subscription, report_error
from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.exceptions import NotAuthenticatedError, ProfileNotLoadedError
from vault_identity.models.account import UserProfile
from vault_identity.services.local_store import USER_RECORD_KEY, USER_TABLE, LocalStore

logger = structlog.get_logger(__name__)


@runtime_checkable
class ProfileSaver(Protocol):
    """Save path for the serialized (sealed) profile."""

    async def save(self, profile: UserProfile, payload: dict[str, Any]) -> None:
        """
        Persist `payload`, the sealed form of `profile`.

        Raises:
            Exception: Any storage or API error.
        """
        ...


class ApiProfileSaver:
    """Saves to the account API, then mirrors into the local store when it is ready."""

    def __init__(self, http_client: AsyncHttpClient, local_store: LocalStore) -> None:
        self._http = http_client
        self._local_store = local_store

    async def save(self, profile: UserProfile, payload: dict[str, Any]) -> None:
        if profile.id is None:
            msg = "Profile has no id yet"
            raise NotAuthenticatedError(msg)
        await update_account(self._http, profile.id, payload)
        if self._local_store.is_initialized:
            await self._local_store.save(USER_TABLE, USER_RECORD_KEY, payload)


class ProfileSync:
    """Schedules a sealed save of the profile on every settings change."""

    def __init__(
        self,
        profile: UserProfile,
        cache: CredentialCache,
        saver: ProfileSaver,
        events: EventEmitter,
    ) -> None:
        """
        Args:
            profile: Profile to watch.
            cache: Credential cache holding the master key.
            saver: Persistence path for the sealed profile.
            events: Session event channel receiving `saved` and `error`.
        """
        self._profile = profile
        self._cache = cache
        self._saver = saver
        self._events = events

        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._pending = False

    @property
    def pending(self) -> bool:
        """A save was requested while no event loop was running."""
        return self._pending

    def start(self) -> None:
        if self._subscription is not None and self._subscription.active:
            return
        self._subscription = self._profile.events.on("change:settings", self._on_settings_change)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def schedule(self) -> None:
        """Start a background save, or mark one pending if no loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, profile save deferred")
            self._pending = True
            return

        task = loop.create_task(self._run_save())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Run a deferred save, then wait for in-flight saves."""
        if self._pending:
            self._pending = False
            await self._run_save()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def save(self) -> None:
        """
        Seal and save the profile now.

        Raises:
            NotAuthenticatedError: If no master key is cached.
            ProfileNotLoadedError: If the private fields were never loaded.
        """
        key = self._cache.key
        if key is None:
            raise NotAuthenticatedError("No master key to seal the profile with")
        if not self._profile.is_loaded:
            msg = "Profile must be fetched before it is saved"
            raise ProfileNotLoadedError(msg, user_id=self._profile.id)
        payload = self._profile.serialize(key)
        await self._saver.save(self._profile, payload)

    async def _run_save(self) -> None:
        try:
            await self.save()
        except Exception as e:
            logger.error("Profile save failed", error_type=type(e).__name__)
            report_error(self._events, e)
            return
        logger.debug("Profile saved", user_id=self._profile.id)
        self._events.emit("saved", self._profile)

    def _on_settings_change(self, _profile: UserProfile) -> None:
        self.schedule()
