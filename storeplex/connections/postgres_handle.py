# storeplex/connections/postgres_handle.py
import asyncio
import logging
from typing import Optional, Dict, Any, List

import asyncpg

from .errors import TenantConnectionError, MissingTableError
from .handles import AbstractTenantHandle, quote_identifier

logger = logging.getLogger(__name__)


class PostgresTenantHandle(AbstractTenantHandle):
    """Direct privileged connection to a tenant PostgreSQL database through an asyncpg pool."""

    dialect = "postgresql"

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: Optional[float] = None,
    ):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise TenantConnectionError("PostgreSQL tenant handle is not connected.")
        return self._pool

    async def connect(self) -> None:
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
        except (OSError, asyncio.TimeoutError, asyncpg.exceptions.PostgresError,
                asyncpg.exceptions.InterfaceError) as e:
            # The DSN carries the password; never echo it back
            raise TenantConnectionError(f"Could not connect to PostgreSQL: {type(e).__name__}") from e
        logger.info("Opened asyncpg pool for tenant database.")

    async def execute(self, statement: str) -> None:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(statement)
        except asyncpg.exceptions.UndefinedTableError as e:
            raise MissingTableError(getattr(e, "table_name", None) or "unknown", str(e)) from e
        except (OSError, asyncpg.exceptions.PostgresError, asyncpg.exceptions.InterfaceError) as e:
            raise TenantConnectionError(f"PostgreSQL error: {e}") from e

    async def fetch_rows(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        pool = self._require_pool()
        query = f"SELECT * FROM {quote_identifier(table)}"
        params: List[Any] = []
        if filters:
            clauses = []
            for key, value in filters.items():
                params.append(value)
                clauses.append(f"{quote_identifier(key)}::text = ${len(params)}::text")
            query += " WHERE " + " AND ".join(clauses)
        if limit is not None:
            params.append(int(limit))
            query += f" LIMIT ${len(params)}"
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except asyncpg.exceptions.UndefinedTableError as e:
            raise MissingTableError(table, str(e)) from e
        except (OSError, asyncpg.exceptions.PostgresError, asyncpg.exceptions.InterfaceError) as e:
            raise TenantConnectionError(f"PostgreSQL error: {e}") from e
        return [dict(row) for row in rows]

    async def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        if not values:
            return await self.fetch_rows(table, filters)
        pool = self._require_pool()
        params: List[Any] = []
        set_clauses = []
        for key, value in values.items():
            params.append(value)
            set_clauses.append(f"{quote_identifier(key)} = ${len(params)}")
        where_clauses = []
        for key, value in filters.items():
            params.append(value)
            where_clauses.append(f"{quote_identifier(key)}::text = ${len(params)}::text")
        query = (
            f"UPDATE {quote_identifier(table)} SET {', '.join(set_clauses)} "
            f"WHERE {' AND '.join(where_clauses)} RETURNING *"
        )
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except asyncpg.exceptions.UndefinedTableError as e:
            raise MissingTableError(table, str(e)) from e
        except (OSError, asyncpg.exceptions.PostgresError, asyncpg.exceptions.InterfaceError) as e:
            raise TenantConnectionError(f"PostgreSQL error: {e}") from e
        return [dict(row) for row in rows]

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Closed asyncpg pool for tenant database.")
