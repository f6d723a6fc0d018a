# storeplex/connections/handles.py
import sqlite3
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Dict, Any, List

from .errors import TenantConnectionError, MissingTableError

logger = logging.getLogger(__name__)

SQLITE_URL_PREFIX = "sqlite:///"


def quote_identifier(name: str) -> str:
    """Quote a table or column name for both SQLite and PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


class AbstractTenantHandle(ABC):
    """
    Live handle to one tenant's operational database.

    Implementations differ only in how statements reach the database; the
    provisioning algorithm and the request handlers are written against this
    interface.
    """

    #: SQL dialect the handle's database speaks ("postgresql" or "sqlite")
    dialect: str = "postgresql"

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the underlying connection, pool or HTTP client.

        Raises:
            TenantConnectionError: If the database cannot be reached
        """
        pass

    @abstractmethod
    async def execute(self, statement: str) -> None:
        """
        Execute raw SQL (one or more statements) without returning rows.

        Raises:
            TenantConnectionError: If the statement fails or the database is unreachable
        """
        pass

    @abstractmethod
    async def fetch_rows(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows from a table with optional equality filters.

        Raises:
            MissingTableError: If the table does not exist
            TenantConnectionError: For any other failure
        """
        pass

    @abstractmethod
    async def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """Update rows matching equality filters and return the updated rows."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying resources. Safe to call more than once."""
        pass

    async def probe(self, table: str) -> bool:
        """
        Cheap read against a known table.

        Returns True when the table exists and is queryable, False when the
        database is reachable but the table is missing (a database that was
        never provisioned).

        Raises:
            TenantConnectionError: If the database is unreachable
        """
        try:
            await self.fetch_rows(table, limit=1)
            return True
        except MissingTableError:
            logger.info(f"Probe of table '{table}' found it missing; database is reachable but not provisioned.")
            return False


class SQLiteTenantHandle(AbstractTenantHandle):
    """Tenant handle backed by a local SQLite file (development and self-hosted tenants)."""

    dialect = "sqlite"

    def __init__(self, database_path: str):
        self.database_path = database_path
        self._conn: Optional[sqlite3.Connection] = None

    @classmethod
    def from_url(cls, url: str) -> "SQLiteTenantHandle":
        """Build a handle from a ``sqlite:///relative`` or ``sqlite:////absolute`` URL."""
        if not url or not url.startswith(SQLITE_URL_PREFIX):
            raise TenantConnectionError(f"Not a SQLite database URL: expected '{SQLITE_URL_PREFIX}<path>'.")
        return cls(url[len(SQLITE_URL_PREFIX):])

    def _require_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise TenantConnectionError("SQLite tenant handle is not connected.")
        return self._conn

    def _translate_error(self, e: sqlite3.Error, table: Optional[str] = None) -> TenantConnectionError:
        message = str(e)
        if "no such table" in message:
            missing = table or message.split("no such table:", 1)[-1].strip()
            return MissingTableError(missing, message)
        return TenantConnectionError(f"SQLite error: {message}")

    async def connect(self) -> None:
        if self._conn is not None:
            return
        path = Path(self.database_path)
        # A missing parent directory means an unreachable database, not a new one
        if not path.parent.exists():
            raise TenantConnectionError(f"SQLite database directory does not exist: {path.parent}")
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("SELECT 1")
        except sqlite3.Error as e:
            raise TenantConnectionError(f"Could not open SQLite database: {e}") from e
        self._conn = conn
        logger.info(f"Opened SQLite tenant database at {path}")

    async def execute(self, statement: str) -> None:
        conn = self._require_connection()
        try:
            conn.executescript(statement)
            conn.commit()
        except sqlite3.Error as e:
            raise self._translate_error(e) from e

    async def fetch_rows(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        conn = self._require_connection()
        query = f"SELECT * FROM {quote_identifier(table)}"
        params: List[Any] = []
        if filters:
            query += " WHERE " + " AND ".join(f"{quote_identifier(k)} = ?" for k in filters)
            params.extend(filters.values())
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise self._translate_error(e, table) from e
        return [dict(row) for row in rows]

    async def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        if not values:
            return await self.fetch_rows(table, filters)
        conn = self._require_connection()
        set_clause = ", ".join(f"{quote_identifier(k)} = ?" for k in values)
        where_clause = " AND ".join(f"{quote_identifier(k)} = ?" for k in filters)
        query = f"UPDATE {quote_identifier(table)} SET {set_clause} WHERE {where_clause}"
        try:
            conn.execute(query, tuple(values.values()) + tuple(filters.values()))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise self._translate_error(e, table) from e
        return await self.fetch_rows(table, filters)

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info(f"Closed SQLite tenant database at {self.database_path}")
