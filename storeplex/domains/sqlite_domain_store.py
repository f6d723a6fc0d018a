# storeplex/domains/sqlite_domain_store.py
import sqlite3
import logging
from typing import Optional, List
from datetime import datetime, timezone
from uuid import uuid4

from .storage_interfaces import AbstractDomainStore
from .models import DomainMapping, DomainMappingCreate, StoreContext, VerificationStatus
from ..storage.sqlite_base import SQLiteRepository, parse_dt as _parse_dt
from ..stores.models import StoreStatus

logger = logging.getLogger(__name__)

_MAPPING_COLUMNS = (
    "id, store_id, hostname, slug, is_primary, is_custom_domain, verification_status, "
    "is_active, access_count, last_accessed_at, created_at"
)


class SQLiteDomainStore(SQLiteRepository, AbstractDomainStore):
    """SQLite implementation of hostname mapping storage."""

    def _row_to_mapping(self, row: Optional[sqlite3.Row]) -> Optional[DomainMapping]:
        if not row:
            return None
        return DomainMapping(
            id=row["id"],
            store_id=row["store_id"],
            hostname=row["hostname"],
            slug=row["slug"],
            is_primary=bool(row["is_primary"]),
            is_custom_domain=bool(row["is_custom_domain"]),
            verification_status=VerificationStatus(row["verification_status"]),
            is_active=bool(row["is_active"]),
            access_count=row["access_count"],
            last_accessed_at=_parse_dt(row["last_accessed_at"]),
            created_at=_parse_dt(row["created_at"]),
        )

    async def find_active_mapping(self, hostname: str) -> Optional[StoreContext]:
        row = await self._fetchone(
            """
            SELECT h.store_id, h.hostname, h.slug, h.is_custom_domain, h.is_primary
            FROM store_hostnames h
            JOIN stores s ON s.id = h.store_id
            WHERE h.hostname = ?
              AND h.verification_status = ?
              AND h.is_active = 1
              AND s.is_active = 1
              AND s.status = ?
            """,
            (hostname, VerificationStatus.VERIFIED.value, StoreStatus.ACTIVE.value),
        )
        if not row:
            return None
        return StoreContext(
            store_id=row["store_id"],
            hostname=row["hostname"],
            slug=row["slug"],
            is_custom_domain=bool(row["is_custom_domain"]),
            is_primary=bool(row["is_primary"]),
        )

    async def create_mapping(self, mapping_create: DomainMappingCreate) -> DomainMapping:
        mapping_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        statements = []
        if mapping_create.is_primary:
            # At most one primary hostname per store
            statements.append(
                ("UPDATE store_hostnames SET is_primary = 0 WHERE store_id = ?", (mapping_create.store_id,))
            )
        statements.append((
            f"""
            INSERT INTO store_hostnames ({_MAPPING_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, 1, 0, NULL, ?)
            """,
            (
                mapping_id,
                mapping_create.store_id,
                mapping_create.hostname,
                mapping_create.slug,
                int(mapping_create.is_primary),
                int(mapping_create.is_custom_domain),
                mapping_create.verification_status.value,
                now,
            ),
        ))
        try:
            await self._execute_in_transaction(statements)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise ValueError(f"Hostname '{mapping_create.hostname}' is already mapped.") from e
            raise ValueError(f"Store '{mapping_create.store_id}' does not exist.") from e
        logger.info(
            f"Mapped hostname '{mapping_create.hostname}' to store '{mapping_create.store_id}' "
            f"(primary={mapping_create.is_primary}, status={mapping_create.verification_status.value})."
        )
        return await self.get_mapping(mapping_create.hostname)

    async def get_mapping(self, hostname: str) -> Optional[DomainMapping]:
        row = await self._fetchone(
            f"SELECT {_MAPPING_COLUMNS} FROM store_hostnames WHERE hostname = ?", (hostname,)
        )
        return self._row_to_mapping(row)

    async def list_mappings_for_store(self, store_id: str) -> List[DomainMapping]:
        rows = await self._fetchall(
            f"SELECT {_MAPPING_COLUMNS} FROM store_hostnames WHERE store_id = ? "
            "ORDER BY is_primary DESC, created_at ASC",
            (store_id,),
        )
        return [self._row_to_mapping(row) for row in rows]

    async def get_primary_mapping(self, store_id: str) -> Optional[DomainMapping]:
        row = await self._fetchone(
            f"SELECT {_MAPPING_COLUMNS} FROM store_hostnames WHERE store_id = ? "
            "ORDER BY is_primary DESC, created_at ASC LIMIT 1",
            (store_id,),
        )
        return self._row_to_mapping(row)

    async def increment_access_count(self, hostname: str) -> None:
        await self._execute_query(
            "UPDATE store_hostnames SET access_count = access_count + 1, last_accessed_at = ? WHERE hostname = ?",
            (datetime.now(timezone.utc).isoformat(), hostname),
        )
