from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from vault_identity.client import VaultIdentityClient
from vault_identity.config import VaultIdentityConfig
from vault_identity.services.local_store import InMemoryLocalStore
from vault_identity.tests.utils.fake_api import FakeAccountApi, FakeAccountTransport


@pytest.fixture
def config(tmp_path: Path) -> VaultIdentityConfig:
    return VaultIdentityConfig(
        api_url="https://api.test",
        session_dir=tmp_path,
        session_passphrase="integration",
        kdf_iterations=1,
        max_retries=0,
        poll_interval=0.001,
        poll_max_interval=0.005,
        poll_timeout=1.0,
    )


@pytest.fixture
def fake_api() -> FakeAccountApi:
    return FakeAccountApi()


@pytest.fixture
def transport(fake_api: FakeAccountApi) -> FakeAccountTransport:
    return FakeAccountTransport(fake_api)


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest_asyncio.fixture
async def client(
    config: VaultIdentityConfig,
    transport: FakeAccountTransport,
    local_store: InMemoryLocalStore,
) -> AsyncIterator[VaultIdentityClient]:
    async with VaultIdentityClient(config, transport=transport, local_store=local_store) as client:
        yield client
