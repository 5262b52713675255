"""
Account registration.

The new profile is not written to the local store during registration: the
local record is keyed by the server-assigned id, and the local store is often
not open yet. Instead the flow waits for the next login, polls until the local
store is ready, and then saves the profile exactly once.
"""

import asyncio

import structlog

from vault_identity.api.endpoints.accounts import create_account
from vault_identity.api.http_client import AsyncHttpClient
from vault_identity.config import VaultIdentityConfig
from vault_identity.core.events import Subscription, report_error
from vault_identity.crypto.keypair import generate_keypair
from vault_identity.exceptions import (
    LocalStoreUnavailableError,
    NotAuthenticatedError,
    RegistrationInProgressError,
)
from vault_identity.models.account import UserProfile
from vault_identity.services.local_store import USER_RECORD_KEY, USER_TABLE
from vault_identity.services.session_manager import SessionManager

logger = structlog.get_logger(__name__)


class RegistrationFlow:
    """
    Creates accounts and reconciles them into the local store.

    Only one registration may run per flow; the owning client holds a single
    flow for the process.
    """

    def __init__(
        self,
        http_client: AsyncHttpClient,
        session: SessionManager,
        config: VaultIdentityConfig,
    ) -> None:
        self._http = http_client
        self._session = session
        self._config = config

        self._lock = asyncio.Lock()
        self._login_sub: Subscription | None = None
        self._logout_sub: Subscription | None = None
        self._task: asyncio.Task[None] | None = None
        self._error: Exception | None = None

    @property
    def awaiting_login(self) -> bool:
        """A registered profile is waiting for the next login."""
        return self._login_sub is not None and self._login_sub.active

    @property
    def reconciling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def register(self, username: str, password: str) -> UserProfile:
        """
        Create an account for `username`.

        Returns:
            The session profile carrying the server-assigned id.

        Raises:
            RegistrationInProgressError: If another registration is running.
            MissingCredentialsError: If username or password is empty.
            APIError: If the server refuses the registration.
        """
        if self._lock.locked() or self.reconciling:
            raise RegistrationInProgressError()

        async with self._lock:
            logger.info("Starting registration")
            self._disarm()

            profile = self._session.profile
            profile.clear()
            keypair = generate_keypair()
            profile.update(
                username=username,
                public_key=keypair.public_key,
                private_key=keypair.private_key,
            )
            profile.mark_loaded()

            # Never reuse key material from a previous identity.
            self._session.clear_credentials()
            try:
                token = await self._session.token_generator.derive_token(username, password)
                key = self._session.cache.key
                if key is None:
                    raise NotAuthenticatedError("Key derivation produced no key")

                data = await create_account(self._http, username, token, profile.serialize(key))
            except Exception:
                self._session.clear_credentials()
                raise

            profile.merge(data)
            logger.info("Account registered", user_id=profile.id)

            self._error = None
            self._login_sub = self._session.events.once("login", self._on_login)
            self._logout_sub = self._session.events.once("logout", self._on_logout)
            return profile

    async def wait_reconciled(self) -> None:
        """
        Wait for the pending local save, if any.

        Raises:
            LocalStoreUnavailableError: If the local store never became ready.
        """
        if self._task is not None:
            await asyncio.wait({self._task})
        if self._error is not None:
            raise self._error

    def cancel(self) -> None:
        """Abandon the pending reconciliation."""
        self._disarm()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("Registration reconciliation cancelled")

    def _disarm(self) -> None:
        for sub in (self._login_sub, self._logout_sub):
            if sub is not None:
                sub.cancel()
        self._login_sub = None
        self._logout_sub = None

    def _on_login(self, profile: UserProfile) -> None:
        self._login_sub = None
        self._task = asyncio.get_running_loop().create_task(self._run_reconcile(profile))

    def _on_logout(self) -> None:
        self._logout_sub = None
        self.cancel()

    async def _run_reconcile(self, profile: UserProfile) -> None:
        try:
            await self._reconcile(profile)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._error = e
            logger.error("Registration reconciliation failed", error_type=type(e).__name__)
            report_error(self._session.events, e)
        finally:
            if self._logout_sub is not None:
                self._logout_sub.cancel()
                self._logout_sub = None

    async def _reconcile(self, profile: UserProfile) -> None:
        local_store = self._session.local_store
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.poll_timeout
        delay = self._config.poll_interval
        attempts = 0

        while not local_store.is_initialized:
            remaining = deadline - loop.time()
            if remaining <= 0:
                msg = "Local store did not become ready"
                raise LocalStoreUnavailableError(msg, waited=self._config.poll_timeout)
            await asyncio.sleep(min(delay, remaining))
            delay = min(delay * self._config.poll_backoff, self._config.poll_max_interval)
            attempts += 1

        key = self._session.cache.key
        if key is None or profile.id is None:
            raise NotAuthenticatedError("Session ended before the profile could be saved")

        await local_store.save(USER_TABLE, USER_RECORD_KEY, profile.serialize(key))
        logger.info("Registered profile saved locally", user_id=profile.id, attempts=attempts)
