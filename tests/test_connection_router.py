# tests/test_connection_router.py
import asyncio

import httpx
import pytest

from storeplex.connections import SQLiteTenantHandle, NoCredentialError, TenantConnectionError
from storeplex.connections.management_api_handle import ManagementApiTenantHandle
from storeplex.connections.factory import make_handle_factory
from storeplex.connections.router import ConnectionRouter
from storeplex.settings import settings
from storeplex.stores import SQLiteStoreRegistry, SQLiteStoreDatabaseStore, DatabaseType, ConnectionStatus
from storeplex.vault import CryptoError, DatabaseCredentials


def sqlite_credentials(path) -> DatabaseCredentials:
    return DatabaseCredentials(projectUrl=f"sqlite:///{path}", serviceRoleKey="unused-secret")


class CountingFactory:
    """Handle factory recording how often it was asked for a handle."""

    def __init__(self, handle_cls=SQLiteTenantHandle):
        self.handle_cls = handle_cls
        self.calls = 0

    def __call__(self, database_type, credentials):
        self.calls += 1
        return self.handle_cls.from_url(credentials.project_url)


class SlowHandle(SQLiteTenantHandle):
    async def connect(self) -> None:
        await asyncio.sleep(5)


@pytest.fixture
async def store_id(master_db):
    store = await SQLiteStoreRegistry().create_store("acct-1", "Shop")
    return store.id


@pytest.fixture
def credential_store(master_db):
    return SQLiteStoreDatabaseStore()


async def test_store_without_credentials(credential_store, vault, store_id):
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    with pytest.raises(NoCredentialError):
        await router.get_connection(store_id)
    assert await router.get_connection_info(store_id) is None


async def test_handles_are_cached_per_store(credential_store, vault, store_id, tenant_dir):
    factory = CountingFactory()
    router = ConnectionRouter(credential_store, vault, factory)
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))

    first = await router.get_connection(store_id)
    second = await router.get_connection(store_id)
    assert first is second
    assert factory.calls == 1
    assert len(router) == 1 and router.is_cached(store_id)

    await router.close_all()
    assert len(router) == 0


async def test_concurrent_first_use_opens_one_handle(credential_store, vault, store_id, tenant_dir):
    factory = CountingFactory()
    router = ConnectionRouter(credential_store, vault, factory)
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))

    handles = await asyncio.gather(*(router.get_connection(store_id) for _ in range(5)))
    assert all(h is handles[0] for h in handles)
    assert factory.calls == 1
    await router.clear()


async def test_new_credentials_invalidate_cached_handle(credential_store, vault, store_id, tenant_dir):
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "a.db"))
    old = await router.get_connection(store_id)

    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "b.db"))
    assert not router.is_cached(store_id)
    new = await router.get_connection(store_id)
    assert new is not old
    assert new.database_path.endswith("b.db")
    await router.clear()


async def test_credentials_are_stored_encrypted(credential_store, vault, store_id, tenant_dir):
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))
    row = await credential_store.get_credentials(store_id)
    assert "unused-secret" not in row.encrypted_credentials
    assert row.host == "localhost"


async def test_corrupt_ciphertext_is_an_error_not_missing_credentials(credential_store, vault, store_id):
    await credential_store.save_credentials(store_id, DatabaseType.SQLITE, "AAAA:BBBB:CCCC", "localhost")
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    with pytest.raises(CryptoError):
        await router.get_connection(store_id)
    with pytest.raises(CryptoError):
        await router.test_connection(store_id)


async def test_connection_test_on_empty_database_succeeds(credential_store, vault, store_id, tenant_dir):
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))

    assert await router.test_connection(store_id) is True
    info = await router.get_connection_info(store_id)
    assert info.status == ConnectionStatus.CONNECTED
    assert info.last_tested is not None
    # The throwaway handle is not cached
    assert not router.is_cached(store_id)


async def test_connection_test_on_unreachable_database_fails(credential_store, vault, store_id, tmp_path):
    router = ConnectionRouter(credential_store, vault, CountingFactory())
    await router.store_credentials(
        store_id, DatabaseType.SQLITE, sqlite_credentials(tmp_path / "missing" / "t.db")
    )
    assert await router.test_connection(store_id) is False
    assert (await router.get_connection_info(store_id)).status == ConnectionStatus.FAILED
    with pytest.raises(TenantConnectionError):
        await router.get_connection(store_id)
    assert not router.is_cached(store_id)


async def test_connection_test_timeout(credential_store, vault, store_id, tenant_dir):
    router = ConnectionRouter(
        credential_store, vault, CountingFactory(SlowHandle), connection_test_timeout_seconds=0.05
    )
    await router.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))
    assert await router.test_connection(store_id) is False
    assert (await router.get_connection_info(store_id)).status == ConnectionStatus.TIMEOUT


async def test_rejected_credentials_are_recorded_as_failed(credential_store, vault, store_id):
    router = ConnectionRouter(credential_store, vault, make_handle_factory(settings))
    credentials = DatabaseCredentials(projectUrl="https://db.example.com", serviceRoleKey="secret")
    await router.store_credentials(store_id, DatabaseType.POSTGRESQL, credentials)
    assert await router.test_connection(store_id) is False
    assert (await router.get_connection_info(store_id)).status == ConnectionStatus.FAILED


async def test_routers_do_not_share_caches(credential_store, vault, store_id, tenant_dir):
    first = ConnectionRouter(credential_store, vault, CountingFactory())
    second = ConnectionRouter(credential_store, vault, CountingFactory())
    await first.store_credentials(store_id, DatabaseType.SQLITE, sqlite_credentials(tenant_dir / "t.db"))
    await first.get_connection(store_id)
    assert first.is_cached(store_id)
    assert not second.is_cached(store_id)
    await first.clear()


@pytest.mark.parametrize("response", [
    httpx.Response(404, text="<html>No such project</html>"),
    httpx.Response(200, text="<html>captive portal</html>"),
])
async def test_hosted_tenant_with_wrong_project_url_fails(credential_store, vault, store_id, response):
    def factory(database_type, credentials):
        return ManagementApiTenantHandle(
            credentials.project_url,
            credentials.service_role_key,
            "https://api.example.test",
            transport=httpx.MockTransport(lambda request: response),
        )

    router = ConnectionRouter(credential_store, vault, factory)
    credentials = DatabaseCredentials(projectUrl="https://wrongref.supabase.co", serviceRoleKey="secret")
    await router.store_credentials(store_id, DatabaseType.SUPABASE, credentials)

    assert await router.test_connection(store_id) is False
    assert (await router.get_connection_info(store_id)).status == ConnectionStatus.FAILED
