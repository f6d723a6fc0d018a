# storeplex/stores/sqlite_store_database_store.py
import sqlite3
import logging
from typing import Optional
from datetime import datetime, timezone

from .storage_interfaces import AbstractStoreDatabaseStore
from .models import StoreDatabaseCredential, DatabaseType, ConnectionStatus
from ..storage.sqlite_base import SQLiteRepository, parse_dt as _parse_dt

logger = logging.getLogger(__name__)


class SQLiteStoreDatabaseStore(SQLiteRepository, AbstractStoreDatabaseStore):
    """SQLite implementation for encrypted tenant database credentials."""

    def _row_to_credential(self, row: Optional[sqlite3.Row]) -> Optional[StoreDatabaseCredential]:
        if not row:
            return None
        return StoreDatabaseCredential(
            store_id=row["store_id"],
            database_type=DatabaseType(row["database_type"]),
            encrypted_credentials=row["encrypted_credentials"],
            host=row["host"],
            connection_status=ConnectionStatus(row["connection_status"]),
            last_tested_at=_parse_dt(row["last_tested_at"]),
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
        )

    async def save_credentials(
        self,
        store_id: str,
        database_type: DatabaseType,
        encrypted_credentials: str,
        host: Optional[str],
    ) -> StoreDatabaseCredential:
        now = datetime.now(timezone.utc).isoformat()
        # UPSERT keeps created_at of an existing row
        query = """
            INSERT INTO store_databases
            (store_id, database_type, encrypted_credentials, host, connection_status, last_tested_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, NULL, ?, ?)
            ON CONFLICT(store_id) DO UPDATE SET
                database_type=excluded.database_type,
                encrypted_credentials=excluded.encrypted_credentials,
                host=excluded.host,
                connection_status=excluded.connection_status,
                last_tested_at=NULL,
                updated_at=excluded.updated_at
        """
        await self._execute_query(
            query,
            (store_id, database_type.value, encrypted_credentials, host,
             ConnectionStatus.PENDING.value, now, now),
        )
        logger.info(f"Saved encrypted {database_type.value} credentials for store '{store_id}' (host: {host}).")
        return await self.get_credentials(store_id)

    async def get_credentials(self, store_id: str) -> Optional[StoreDatabaseCredential]:
        row = await self._fetchone(
            """
            SELECT store_id, database_type, encrypted_credentials, host, connection_status,
                   last_tested_at, created_at, updated_at
            FROM store_databases WHERE store_id = ?
            """,
            (store_id,),
        )
        return self._row_to_credential(row)

    async def update_connection_status(
        self, store_id: str, status: ConnectionStatus, tested_at: datetime
    ) -> None:
        await self._execute_query(
            "UPDATE store_databases SET connection_status = ?, last_tested_at = ?, updated_at = ? WHERE store_id = ?",
            (status.value, tested_at.isoformat(), datetime.now(timezone.utc).isoformat(), store_id),
        )
        logger.info(f"Connection status for store '{store_id}' set to '{status.value}'.")

