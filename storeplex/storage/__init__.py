# storeplex/storage/__init__.py

"""Storage module initialization.

This module provides the master registry database connection, schema
initialization and the query helpers shared by the registry stores.
"""

from .sqlite_base import (
    get_sqlite_db_connection,
    init_sqlite_db,
    close_sqlite_db_connection,
    SQLiteRepository,
)

# Export public API for database operations
__all__ = [
    "get_sqlite_db_connection",
    "init_sqlite_db",
    "close_sqlite_db_connection",
    "SQLiteRepository",
]
