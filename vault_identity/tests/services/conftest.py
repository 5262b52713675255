from pathlib import Path

import pytest

from vault_identity.config import VaultIdentityConfig
from vault_identity.services.session_manager import SessionManager
from vault_identity.services.session_store import SessionStore
from vault_identity.tests.services.constants import KDF_ITERATIONS, PASSWORD, USERNAME
from vault_identity.tests.utils.fake_api import FakeAccountApi, token_for
from vault_identity.tests.utils.polling_store import PollingLocalStore


@pytest.fixture
def config(tmp_path: Path) -> VaultIdentityConfig:
    return VaultIdentityConfig(
        session_dir=tmp_path / "session",
        session_passphrase="test-passphrase",
        kdf_iterations=KDF_ITERATIONS,
        max_retries=0,
        poll_interval=0.001,
        poll_max_interval=0.005,
        poll_timeout=1.0,
    )


@pytest.fixture
def fake_api() -> FakeAccountApi:
    return FakeAccountApi()


@pytest.fixture
def account_id(fake_api: FakeAccountApi) -> str:
    return fake_api.add_account(
        USERNAME,
        token_for(USERNAME, PASSWORD, KDF_ITERATIONS),
        {"pubkey": "cHVibGlj", "storage": {"quota": 100}},
    )


@pytest.fixture
def session_store(config: VaultIdentityConfig) -> SessionStore:
    return SessionStore(config.session_dir, config.session_slot_name, config.session_passphrase)


@pytest.fixture
def local_store() -> PollingLocalStore:
    return PollingLocalStore(ready_after=0)


@pytest.fixture
def session(
    fake_api: FakeAccountApi,
    config: VaultIdentityConfig,
    session_store: SessionStore,
    local_store: PollingLocalStore,
) -> SessionManager:
    return SessionManager(fake_api, config, session_store, local_store)
