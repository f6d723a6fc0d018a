# storeplex/stores/sqlite_store_registry.py
import sqlite3
import logging
from typing import Optional, List
from datetime import datetime, timezone
from uuid import uuid4

from .storage_interfaces import AbstractStoreRegistry
from .models import StoreInDB, StoreStatus
from .errors import StoreNotFoundError, LifecycleTransitionError
from ..storage.sqlite_base import SQLiteRepository, parse_dt as _parse_dt

logger = logging.getLogger(__name__)

_STORE_COLUMNS = "id, account_id, name, status, is_active, suspended_reason, created_at, updated_at"


class SQLiteStoreRegistry(SQLiteRepository, AbstractStoreRegistry):
    """SQLite implementation of the store registry."""

    def _row_to_store_in_db(self, row: Optional[sqlite3.Row]) -> Optional[StoreInDB]:
        if not row:
            return None
        return StoreInDB(
            id=row["id"],
            account_id=row["account_id"],
            name=row["name"],
            status=StoreStatus(row["status"]),
            is_active=bool(row["is_active"]),
            suspended_reason=row["suspended_reason"],
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )

    async def create_store(self, account_id: str, name: str) -> StoreInDB:
        now = datetime.now(timezone.utc)
        store_id = str(uuid4())
        query = f"""
            INSERT INTO stores ({_STORE_COLUMNS})
            VALUES (?, ?, ?, ?, 0, NULL, ?, ?)
        """
        await self._execute_query(
            query,
            (store_id, account_id, name, StoreStatus.PENDING_DATABASE.value, now.isoformat(), now.isoformat()),
        )
        logger.info(f"Created store '{store_id}' for account '{account_id}'.")
        return StoreInDB(
            id=store_id,
            account_id=account_id,
            name=name,
            status=StoreStatus.PENDING_DATABASE,
            is_active=False,
            created_at=now,
            updated_at=now,
        )

    async def get_store(self, store_id: str) -> Optional[StoreInDB]:
        row = await self._fetchone(f"SELECT {_STORE_COLUMNS} FROM stores WHERE id = ?", (store_id,))
        return self._row_to_store_in_db(row)

    async def list_stores_by_account(self, account_id: str) -> List[StoreInDB]:
        rows = await self._fetchall(
            f"SELECT {_STORE_COLUMNS} FROM stores WHERE account_id = ? ORDER BY created_at DESC",
            (account_id,),
        )
        return [self._row_to_store_in_db(row) for row in rows]

    async def count_stores_by_account(self, account_id: str, include_suspended: bool = False) -> int:
        if include_suspended:
            row = await self._fetchone("SELECT COUNT(*) AS n FROM stores WHERE account_id = ?", (account_id,))
        else:
            row = await self._fetchone(
                "SELECT COUNT(*) AS n FROM stores WHERE account_id = ? AND status != ?",
                (account_id, StoreStatus.SUSPENDED.value),
            )
        return int(row["n"])

    async def _transition(
        self,
        store_id: str,
        operation: str,
        from_status: StoreStatus,
        to_status: StoreStatus,
        is_active: bool,
    ) -> StoreInDB:
        """
        Compare-and-set status update.

        The WHERE clause on the current status makes the transition atomic
        across processes; zero affected rows means the precondition failed.
        """
        now = datetime.now(timezone.utc).isoformat()
        cursor = await self._execute_query(
            "UPDATE stores SET status = ?, is_active = ?, updated_at = ? WHERE id = ? AND status = ?",
            (to_status.value, int(is_active), now, store_id, from_status.value),
        )
        if cursor.rowcount == 0:
            current = await self.get_store(store_id)
            if current is None:
                raise StoreNotFoundError(store_id)
            logger.warning(
                f"Rejected '{operation}' for store '{store_id}': status is '{current.status.value}', "
                f"expected '{from_status.value}'."
            )
            raise LifecycleTransitionError(store_id, operation, from_status.value, current.status.value)

        logger.info(f"Store '{store_id}' transitioned {from_status.value} -> {to_status.value}.")
        return await self.get_store(store_id)

    async def start_provisioning(self, store_id: str) -> StoreInDB:
        return await self._transition(
            store_id, "start provisioning", StoreStatus.PENDING_DATABASE, StoreStatus.PROVISIONING, False
        )

    async def complete_provisioning(self, store_id: str) -> StoreInDB:
        return await self._transition(
            store_id, "complete provisioning", StoreStatus.PROVISIONING, StoreStatus.ACTIVE, True
        )

    async def fail_provisioning(self, store_id: str) -> StoreInDB:
        return await self._transition(
            store_id, "roll back provisioning", StoreStatus.PROVISIONING, StoreStatus.PENDING_DATABASE, False
        )

    async def suspend(self, store_id: str, reason: str) -> StoreInDB:
        now = datetime.now(timezone.utc).isoformat()
        cursor = await self._execute_query(
            "UPDATE stores SET status = ?, is_active = 0, suspended_reason = ?, updated_at = ? WHERE id = ?",
            (StoreStatus.SUSPENDED.value, reason, now, store_id),
        )
        if cursor.rowcount == 0:
            raise StoreNotFoundError(store_id)
        logger.info(f"Store '{store_id}' suspended. Reason: {reason}")
        return await self.get_store(store_id)

