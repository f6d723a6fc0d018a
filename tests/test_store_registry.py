# tests/test_store_registry.py
import asyncio
from datetime import datetime, timezone

import pytest

from storeplex.stores import (
    SQLiteStoreRegistry, SQLiteStoreDatabaseStore, StoreStatus, DatabaseType, ConnectionStatus,
    StoreNotFoundError, LifecycleTransitionError,
)


@pytest.fixture
async def registry(master_db):
    return SQLiteStoreRegistry()


async def test_new_store_awaits_its_database(registry):
    store = await registry.create_store("acct-1", "Shop")
    assert store.status == StoreStatus.PENDING_DATABASE
    assert store.is_active is False
    assert not store.is_operational()

    fetched = await registry.get_store(store.id)
    assert fetched.name == "Shop"
    assert fetched.account_id == "acct-1"


async def test_happy_path_lifecycle(registry):
    store = await registry.create_store("acct-1", "Shop")
    provisioning = await registry.start_provisioning(store.id)
    assert provisioning.status == StoreStatus.PROVISIONING
    assert provisioning.is_active is False

    active = await registry.complete_provisioning(store.id)
    assert active.status == StoreStatus.ACTIVE
    assert active.is_active is True
    assert active.is_operational()


async def test_failed_provisioning_returns_store_to_pending(registry):
    store = await registry.create_store("acct-1", "Shop")
    await registry.start_provisioning(store.id)
    reverted = await registry.fail_provisioning(store.id)
    assert reverted.status == StoreStatus.PENDING_DATABASE
    # Retryable
    again = await registry.start_provisioning(store.id)
    assert again.status == StoreStatus.PROVISIONING


async def test_illegal_transitions_are_rejected(registry):
    store = await registry.create_store("acct-1", "Shop")
    with pytest.raises(LifecycleTransitionError) as exc_info:
        await registry.complete_provisioning(store.id)
    assert exc_info.value.actual == StoreStatus.PENDING_DATABASE.value

    await registry.start_provisioning(store.id)
    await registry.complete_provisioning(store.id)
    with pytest.raises(LifecycleTransitionError):
        await registry.start_provisioning(store.id)
    with pytest.raises(LifecycleTransitionError):
        await registry.fail_provisioning(store.id)


async def test_transition_of_unknown_store(registry):
    with pytest.raises(StoreNotFoundError):
        await registry.start_provisioning("does-not-exist")
    with pytest.raises(StoreNotFoundError):
        await registry.suspend("does-not-exist", "gone")


async def test_concurrent_start_provisioning_has_a_single_winner(registry):
    store = await registry.create_store("acct-1", "Shop")
    results = await asyncio.gather(
        registry.start_provisioning(store.id),
        registry.start_provisioning(store.id),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, LifecycleTransitionError)]
    assert len(errors) == 1
    assert (await registry.get_store(store.id)).status == StoreStatus.PROVISIONING


async def test_suspend_from_any_state(registry):
    store = await registry.create_store("acct-1", "Shop")
    await registry.start_provisioning(store.id)
    await registry.complete_provisioning(store.id)

    suspended = await registry.suspend(store.id, "Unpaid invoice")
    assert suspended.status == StoreStatus.SUSPENDED
    assert suspended.is_active is False
    assert suspended.suspended_reason == "Unpaid invoice"

    pending = await registry.create_store("acct-1", "Other")
    assert (await registry.suspend(pending.id, "Abandoned")).status == StoreStatus.SUSPENDED


async def test_count_and_list_by_account(registry):
    first = await registry.create_store("acct-1", "One")
    await registry.create_store("acct-1", "Two")
    await registry.create_store("acct-2", "Elsewhere")
    await registry.suspend(first.id, "closed")

    assert await registry.count_stores_by_account("acct-1") == 1
    assert await registry.count_stores_by_account("acct-1", include_suspended=True) == 2
    names = {s.name for s in await registry.list_stores_by_account("acct-1")}
    assert names == {"One", "Two"}


async def test_credential_row_upsert_resets_status(registry):
    credential_store = SQLiteStoreDatabaseStore()
    store = await registry.create_store("acct-1", "Shop")

    saved = await credential_store.save_credentials(store.id, DatabaseType.SUPABASE, "n:t:c", "abcd.supabase.co")
    assert saved.connection_status == ConnectionStatus.PENDING
    assert saved.last_tested_at is None

    await credential_store.update_connection_status(store.id, ConnectionStatus.CONNECTED, datetime.now(timezone.utc))
    tested = await credential_store.get_credentials(store.id)
    assert tested.connection_status == ConnectionStatus.CONNECTED
    assert tested.last_tested_at is not None

    replaced = await credential_store.save_credentials(store.id, DatabaseType.POSTGRESQL, "n2:t2:c2", "db.example.com")
    assert replaced.connection_status == ConnectionStatus.PENDING
    assert replaced.database_type == DatabaseType.POSTGRESQL
    assert replaced.encrypted_credentials == "n2:t2:c2"
    assert replaced.created_at == saved.created_at


async def test_credential_row_never_exposes_ciphertext_in_repr(registry):
    credential_store = SQLiteStoreDatabaseStore()
    store = await registry.create_store("acct-1", "Shop")
    saved = await credential_store.save_credentials(store.id, DatabaseType.SUPABASE, "nonce:tag:cipher", "h")
    assert "nonce:tag:cipher" not in repr(saved)
