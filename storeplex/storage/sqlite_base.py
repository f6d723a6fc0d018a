# storeplex/storage/sqlite_base.py
import sqlite3
import logging
from pathlib import Path
from typing import Optional, List
from datetime import datetime

from ..settings import settings

logger = logging.getLogger(__name__)

# Global connection instance to ensure single connection per application lifecycle
_db_connection: Optional[sqlite3.Connection] = None


def parse_dt(value) -> Optional[datetime]:
    """SQLite stores timestamps as ISO-8601 text."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def get_sqlite_db_connection() -> sqlite3.Connection:
    """
    Get or create the master registry database connection.

    Uses a singleton pattern to maintain a single connection throughout
    the application lifecycle. Ensures the database directory exists
    and initializes the schema on first connection.

    Raises:
        sqlite3.Error: If database connection fails
    """
    global _db_connection
    if _db_connection is None:
        try:
            db_path = Path(settings.sqlite_db_path).resolve()
            db_path.parent.mkdir(parents=True, exist_ok=True)

            logger.info(f"Attempting to connect to master SQLite DB at: {db_path}")

            # Enable thread-safe access for async/FastAPI compatibility
            _db_connection = sqlite3.connect(str(db_path), check_same_thread=False)
            _db_connection.row_factory = sqlite3.Row
            _db_connection.execute("PRAGMA foreign_keys = ON")

            logger.info(f"Successfully connected to master SQLite DB: {db_path}")

            await init_sqlite_db(_db_connection)
        except sqlite3.Error as e:
            logger.error(
                f"Error connecting to SQLite database at {settings.sqlite_db_path}: {e}",
                exc_info=True
            )
            raise
    return _db_connection


async def init_sqlite_db(conn: Optional[sqlite3.Connection] = None):
    """
    Initialize the master registry schema.

    Creates the store registry, credential, hostname and credit tables. Uses
    IF NOT EXISTS to safely handle repeated initialization calls.
    """
    db_conn = conn or await get_sqlite_db_connection()
    cursor = db_conn.cursor()

    # Store identity and lifecycle
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS stores (
        id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending_database'
            CHECK (status IN ('pending_database', 'provisioning', 'active', 'suspended', 'failed')),
        is_active INTEGER NOT NULL DEFAULT 0,
        suspended_reason TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_stores_account_id ON stores (account_id)')
    logger.info("Ensured 'stores' table exists.")

    # Encrypted tenant database credentials, one row per store
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS store_databases (
        store_id TEXT PRIMARY KEY REFERENCES stores (id) ON DELETE CASCADE,
        database_type TEXT NOT NULL,
        encrypted_credentials TEXT NOT NULL,
        host TEXT,
        connection_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (connection_status IN ('pending', 'connected', 'failed', 'timeout')),
        last_tested_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    ''')
    logger.info("Ensured 'store_databases' table exists.")

    # Hostname to store mapping consumed by the domain resolver
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS store_hostnames (
        id TEXT PRIMARY KEY,
        store_id TEXT NOT NULL REFERENCES stores (id) ON DELETE CASCADE,
        hostname TEXT NOT NULL UNIQUE,
        slug TEXT,
        is_primary INTEGER NOT NULL DEFAULT 0,
        is_custom_domain INTEGER NOT NULL DEFAULT 0,
        verification_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (verification_status IN ('pending', 'verifying', 'verified', 'failed')),
        is_active INTEGER NOT NULL DEFAULT 1,
        access_count INTEGER NOT NULL DEFAULT 0,
        last_accessed_at TEXT,
        created_at TEXT NOT NULL
    )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_store_hostnames_store_id ON store_hostnames (store_id)')
    logger.info("Ensured 'store_hostnames' table exists.")

    # Credit balance projection; amounts are stored in hundredths of a credit
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS credit_balances (
        store_id TEXT PRIMARY KEY REFERENCES stores (id) ON DELETE CASCADE,
        balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
        reserved_balance INTEGER NOT NULL DEFAULT 0 CHECK (reserved_balance >= 0),
        lifetime_purchased INTEGER NOT NULL DEFAULT 0 CHECK (lifetime_purchased >= 0),
        lifetime_spent INTEGER NOT NULL DEFAULT 0 CHECK (lifetime_spent >= 0),
        updated_at TEXT NOT NULL,
        CHECK (reserved_balance <= balance)
    )
    ''')
    logger.info("Ensured 'credit_balances' table exists.")

    # Append-only credit ledger
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS credit_transactions (
        id TEXT PRIMARY KEY,
        store_id TEXT NOT NULL REFERENCES stores (id) ON DELETE CASCADE,
        amount INTEGER NOT NULL,
        transaction_type TEXT NOT NULL
            CHECK (transaction_type IN ('purchase', 'adjustment', 'refund', 'bonus', 'migration')),
        payment_provider TEXT,
        payment_reference TEXT,
        metadata_json TEXT,
        description TEXT,
        created_at TEXT NOT NULL
    )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_credit_transactions_store_id ON credit_transactions (store_id)')
    logger.info("Ensured 'credit_transactions' table exists.")

    db_conn.commit()
    logger.info("Master SQLite database schema initialized/verified.")


async def close_sqlite_db_connection():
    """
    Properly close the global SQLite database connection.

    Should be called during application shutdown to ensure
    proper cleanup of database resources.
    """
    global _db_connection
    if _db_connection is not None:
        logger.info("Closing master SQLite DB connection.")
        _db_connection.close()
        _db_connection = None
        logger.info("Master SQLite DB connection closed.")


class SQLiteRepository:
    """Query helpers shared by the master registry stores."""

    async def initialize(self) -> None:
        """Ensure the database and tables exist."""
        await get_sqlite_db_connection()
        logger.info(f"{type(self).__name__} initialized.")

    async def teardown(self) -> None:
        """Connection is managed globally so no action needed."""
        logger.info(f"{type(self).__name__} teardown (connection managed globally).")

    async def _execute_query(self, query: str, params: tuple = (), commit: bool = True) -> sqlite3.Cursor:
        """
        Execute a SQL query with proper error handling and transaction management.

        Raises:
            sqlite3.Error: If query execution fails
        """
        conn = await get_sqlite_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            if commit:
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error executing query '{query}': {e}", exc_info=True)
            if commit:
                conn.rollback()
            raise
        return cursor

    async def _execute_in_transaction(self, statements: List[tuple]) -> List[sqlite3.Cursor]:
        """
        Execute several (query, params) pairs and commit them together.

        Any failure rolls back every statement of the batch.
        """
        conn = await get_sqlite_db_connection()
        cursors = []
        try:
            for query, params in statements:
                cursor = conn.cursor()
                cursor.execute(query, params)
                cursors.append(cursor)
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error in transaction batch: {e}", exc_info=True)
            conn.rollback()
            raise
        return cursors

    async def _execute_guarded(self, guard: tuple, statements: List[tuple] = ()) -> int:
        """
        Run a conditional statement, then dependent statements, as one transaction.

        When the guard affects no rows nothing is applied and 0 is returned;
        otherwise the dependent statements run and everything is committed
        together. Returns the guard's row count.
        """
        conn = await get_sqlite_db_connection()
        try:
            guard_query, guard_params = guard
            affected = conn.execute(guard_query, guard_params).rowcount
            if affected == 0:
                conn.rollback()
                return 0
            for query, params in statements:
                conn.execute(query, params)
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SQLite error in guarded transaction: {e}", exc_info=True)
            conn.rollback()
            raise
        return affected

    async def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return a single row."""
        cursor = await self._execute_query(query, params, commit=False)
        return cursor.fetchone()

    async def _fetchall(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Execute a query and return all matching rows."""
        cursor = await self._execute_query(query, params, commit=False)
        return cursor.fetchall()
