from unittest.mock import AsyncMock, Mock

import pytest

from vault_identity.core.events import EventEmitter
from vault_identity.crypto.credential_cache import CredentialCache
from vault_identity.crypto.envelope import unseal_json
from vault_identity.exceptions import NotAuthenticatedError, ProfileNotLoadedError, ServerError
from vault_identity.models.account import UserProfile
from vault_identity.services.local_store import USER_RECORD_KEY, USER_TABLE, InMemoryLocalStore
from vault_identity.services.profile_sync import ApiProfileSaver, ProfileSync
from vault_identity.services.settings_store import SettingsStore
from vault_identity.tests.services.constants import KDF_ITERATIONS, PASSWORD, USERNAME
from vault_identity.tests.utils.fake_api import FakeAccountApi, token_for

KEY = b"\x07" * 32


@pytest.fixture
def profile() -> UserProfile:
    profile = UserProfile()
    profile.update(id="user-1", username=USERNAME)
    profile.mark_loaded()
    return profile


@pytest.fixture
def cache() -> CredentialCache:
    cache = CredentialCache()
    cache.key = KEY
    return cache


@pytest.fixture
def saver() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def events() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def sync(
    profile: UserProfile, cache: CredentialCache, saver: AsyncMock, events: EventEmitter
) -> ProfileSync:
    sync = ProfileSync(profile, cache, saver, events)
    sync.start()
    return sync


@pytest.mark.asyncio
async def test_settings_change_schedules_sealed_save(
    sync: ProfileSync, profile: UserProfile, saver: AsyncMock, events: EventEmitter
) -> None:
    saved = Mock()
    events.on("saved", saved)

    SettingsStore(profile).set("editor.font", "mono")
    await sync.wait_idle()

    saver.save.assert_awaited_once()
    saved_profile, payload = saver.save.await_args.args
    assert saved_profile is profile
    assert "settings" not in payload
    assert unseal_json(KEY, payload["body"])["settings"] == {"editor.font": "mono"}
    saved.assert_called_once_with(profile)


@pytest.mark.asyncio
async def test_other_field_changes_do_not_save(
    sync: ProfileSync, profile: UserProfile, saver: AsyncMock
) -> None:
    profile.update(username="someone-else")
    await sync.wait_idle()

    saver.save.assert_not_awaited()


@pytest.mark.asyncio
async def test_save_failure_emits_error_and_keeps_local_value(
    sync: ProfileSync, profile: UserProfile, saver: AsyncMock, events: EventEmitter
) -> None:
    failure = ServerError("unavailable", code=503)
    saver.save.side_effect = failure
    errors: list[Exception] = []
    events.on("error", errors.append)
    settings = SettingsStore(profile)

    settings.set("theme", "dark")
    await sync.wait_idle()

    assert errors == [failure]
    assert settings.get("theme") == "dark"


@pytest.mark.asyncio
async def test_save_without_key_emits_error(
    sync: ProfileSync, profile: UserProfile, cache: CredentialCache, events: EventEmitter
) -> None:
    cache.clear()
    errors: list[Exception] = []
    events.on("error", errors.append)

    SettingsStore(profile).set("theme", "dark")
    await sync.wait_idle()

    assert len(errors) == 1
    assert isinstance(errors[0], NotAuthenticatedError)


@pytest.mark.asyncio
async def test_profile_never_loaded_is_not_saved(
    cache: CredentialCache, saver: AsyncMock, events: EventEmitter
) -> None:
    restored = UserProfile()
    restored.update(id="user-1", username=USERNAME)
    sync = ProfileSync(restored, cache, saver, events)
    sync.start()
    errors: list[Exception] = []
    events.on("error", errors.append)
    settings = SettingsStore(restored)

    settings.set("lang", "fr")
    await sync.wait_idle()

    saver.save.assert_not_awaited()
    assert len(errors) == 1
    assert isinstance(errors[0], ProfileNotLoadedError)
    assert settings.get("lang") == "fr"


@pytest.mark.asyncio
async def test_failing_error_handler_does_not_escape_the_save_task(
    sync: ProfileSync, profile: UserProfile, saver: AsyncMock, events: EventEmitter
) -> None:
    saver.save.side_effect = ServerError("unavailable", code=503)
    events.on("error", Mock(side_effect=RuntimeError("handler broke")))

    SettingsStore(profile).set("theme", "dark")
    await sync.wait_idle()

    saver.save.assert_awaited_once()


def test_change_without_running_loop_is_deferred(
    sync: ProfileSync, profile: UserProfile, saver: AsyncMock
) -> None:
    SettingsStore(profile).set("theme", "dark")

    assert sync.pending
    saver.save.assert_not_awaited()


@pytest.mark.asyncio
async def test_flush_runs_deferred_save(
    profile: UserProfile, cache: CredentialCache, saver: AsyncMock, events: EventEmitter
) -> None:
    sync = ProfileSync(profile, cache, saver, events)
    sync._pending = True

    await sync.flush()

    assert not sync.pending
    saver.save.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_unsubscribes(sync: ProfileSync, profile: UserProfile, saver: AsyncMock) -> None:
    sync.stop()

    SettingsStore(profile).set("theme", "dark")
    await sync.wait_idle()

    saver.save.assert_not_awaited()
    assert profile.events.listener_count("change:settings") == 0


@pytest.mark.asyncio
async def test_api_saver_updates_account_and_mirrors_locally(profile: UserProfile) -> None:
    fake_api = FakeAccountApi()
    token = token_for(USERNAME, PASSWORD, KDF_ITERATIONS)
    user_id = fake_api.add_account(USERNAME, token)
    fake_api.set_credentials(USERNAME, token)
    local_store = InMemoryLocalStore(initialized=True)
    profile.update(id=user_id)
    payload = profile.serialize(KEY)

    await ApiProfileSaver(fake_api, local_store).save(profile, payload)

    assert ("PUT", f"/accounts/{user_id}") in fake_api.calls
    assert fake_api.accounts[user_id]["data"]["body"] == payload["body"]
    assert local_store.get(USER_TABLE, USER_RECORD_KEY) == payload


@pytest.mark.asyncio
async def test_api_saver_skips_local_store_until_ready(profile: UserProfile) -> None:
    http = Mock()
    http.request = AsyncMock(return_value=None)
    local_store = InMemoryLocalStore()

    await ApiProfileSaver(http, local_store).save(profile, {"id": "user-1"})

    http.request.assert_awaited_once_with("PUT", "/accounts/user-1", json={"id": "user-1"})
    assert local_store.get(USER_TABLE, USER_RECORD_KEY) is None


@pytest.mark.asyncio
async def test_api_saver_requires_id() -> None:
    http = Mock()
    http.request = AsyncMock()

    with pytest.raises(NotAuthenticatedError):
        await ApiProfileSaver(http, InMemoryLocalStore()).save(UserProfile(), {})

    http.request.assert_not_awaited()
