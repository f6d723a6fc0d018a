# storeplex/credits/sqlite_credit_store.py
import json
import sqlite3
import logging
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime, timezone
from uuid import uuid4

from .storage_interfaces import AbstractCreditStore
from .models import CreditBalance, CreditTransaction, TransactionType, from_minor_units
from ..storage.sqlite_base import SQLiteRepository, parse_dt

logger = logging.getLogger(__name__)

_BALANCE_COLUMNS = "store_id, balance, reserved_balance, lifetime_purchased, lifetime_spent, updated_at"
_TRANSACTION_COLUMNS = (
    "id, store_id, amount, transaction_type, payment_provider, payment_reference, "
    "metadata_json, description, created_at"
)

_INSERT_TRANSACTION = f"INSERT INTO credit_transactions ({_TRANSACTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"


class SQLiteCreditStore(SQLiteRepository, AbstractCreditStore):
    """SQLite implementation of the credit balance projection and ledger."""

    def _row_to_balance(self, row: Optional[sqlite3.Row]) -> Optional[CreditBalance]:
        if not row:
            return None
        return CreditBalance(
            store_id=row["store_id"],
            balance=from_minor_units(row["balance"]),
            reserved_balance=from_minor_units(row["reserved_balance"]),
            lifetime_purchased=from_minor_units(row["lifetime_purchased"]),
            lifetime_spent=from_minor_units(row["lifetime_spent"]),
            updated_at=parse_dt(row["updated_at"]),
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> CreditTransaction:
        metadata = {}
        if row["metadata_json"]:
            try:
                metadata = json.loads(row["metadata_json"])
            except json.JSONDecodeError:
                logger.error(f"Could not decode metadata of credit transaction '{row['id']}'.")
        return CreditTransaction(
            id=row["id"],
            store_id=row["store_id"],
            amount=from_minor_units(row["amount"]),
            transaction_type=TransactionType(row["transaction_type"]),
            payment_provider=row["payment_provider"],
            payment_reference=row["payment_reference"],
            metadata=metadata,
            description=row["description"],
            created_at=parse_dt(row["created_at"]),
        )

    @staticmethod
    def _ledger_insert(
        store_id: str,
        amount_minor: int,
        transaction_type: TransactionType,
        now: str,
        description: Optional[str] = None,
        payment_provider: Optional[str] = None,
        payment_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> tuple:
        return (
            _INSERT_TRANSACTION,
            (
                str(uuid4()), store_id, amount_minor, transaction_type.value,
                payment_provider, payment_reference,
                json.dumps(metadata) if metadata else None,
                description, now,
            ),
        )

    async def create_balance(self, store_id: str) -> CreditBalance:
        now = datetime.now(timezone.utc).isoformat()
        await self._execute_query(
            f"INSERT INTO credit_balances ({_BALANCE_COLUMNS}) VALUES (?, 0, 0, 0, 0, ?) "
            "ON CONFLICT(store_id) DO NOTHING",
            (store_id, now),
        )
        logger.info(f"Credit balance ensured for store '{store_id}'.")
        return await self.get_balance(store_id)

    async def get_balance(self, store_id: str) -> Optional[CreditBalance]:
        row = await self._fetchone(
            f"SELECT {_BALANCE_COLUMNS} FROM credit_balances WHERE store_id = ?", (store_id,)
        )
        return self._row_to_balance(row)

    async def add(
        self,
        store_id: str,
        amount_minor: int,
        transaction_type: TransactionType,
        description: Optional[str] = None,
        payment_provider: Optional[str] = None,
        payment_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        affected = await self._execute_guarded(
            (
                "UPDATE credit_balances SET balance = balance + ?, "
                "lifetime_purchased = lifetime_purchased + ?, updated_at = ? WHERE store_id = ?",
                (amount_minor, amount_minor, now, store_id),
            ),
            [self._ledger_insert(store_id, amount_minor, transaction_type, now, description,
                                 payment_provider, payment_reference, metadata)],
        )
        return affected > 0

    async def deduct(self, store_id: str, amount_minor: int, description: Optional[str] = None) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        affected = await self._execute_guarded(
            (
                "UPDATE credit_balances SET balance = balance - ?, "
                "lifetime_spent = lifetime_spent + ?, updated_at = ? "
                "WHERE store_id = ? AND balance - reserved_balance >= ?",
                (amount_minor, amount_minor, now, store_id, amount_minor),
            ),
            [self._ledger_insert(store_id, -amount_minor, TransactionType.ADJUSTMENT, now, description)],
        )
        return affected > 0

    async def reserve(self, store_id: str, amount_minor: int) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        affected = await self._execute_guarded((
            "UPDATE credit_balances SET reserved_balance = reserved_balance + ?, updated_at = ? "
            "WHERE store_id = ? AND balance - reserved_balance >= ?",
            (amount_minor, now, store_id, amount_minor),
        ))
        return affected > 0

    async def release(self, store_id: str, amount_minor: int) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        affected = await self._execute_guarded((
            "UPDATE credit_balances SET reserved_balance = MAX(reserved_balance - ?, 0), updated_at = ? "
            "WHERE store_id = ?",
            (amount_minor, now, store_id),
        ))
        return affected > 0

    async def list_transactions(self, store_id: str, limit: int = 50, offset: int = 0) -> List[CreditTransaction]:
        rows = await self._fetchall(
            f"SELECT {_TRANSACTION_COLUMNS} FROM credit_transactions WHERE store_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (store_id, limit, offset),
        )
        return [self._row_to_transaction(row) for row in rows]

    async def ledger_totals(self, store_id: str) -> Tuple[int, int, int]:
        row = await self._fetchone(
            """
            SELECT COALESCE(SUM(amount), 0) AS total,
                   COALESCE(SUM(CASE WHEN amount > 0 THEN amount ELSE 0 END), 0) AS positive,
                   COALESCE(SUM(CASE WHEN amount < 0 THEN amount ELSE 0 END), 0) AS negative
            FROM credit_transactions WHERE store_id = ?
            """,
            (store_id,),
        )
        return int(row["total"]), int(row["positive"]), int(row["negative"])
