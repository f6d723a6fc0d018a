# storeplex/stores/__init__.py
"""
Store registry module initialization.

Store identity, lifecycle state and encrypted credential rows of the master
database. The lifecycle service and its API endpoints live in
``storeplex.stores.service`` and ``storeplex.stores.endpoints``.
"""

from .models import (
    StoreStatus, DatabaseType, ConnectionStatus, StoreInDB, Store, StoreCreate,
    StoreDatabaseCredential, ConnectionInfo, AccountIdentity,
)
from .errors import (
    StoreNotFoundError, LifecycleTransitionError, StoreLimitReachedError, StoreNotOperationalError,
)
from .storage_interfaces import AbstractStoreRegistry, AbstractStoreDatabaseStore
from .sqlite_store_registry import SQLiteStoreRegistry
from .sqlite_store_database_store import SQLiteStoreDatabaseStore

__all__ = [
    # Data models
    "StoreStatus",
    "DatabaseType",
    "ConnectionStatus",
    "StoreInDB",
    "Store",
    "StoreCreate",
    "StoreDatabaseCredential",
    "ConnectionInfo",
    "AccountIdentity",
    # Errors
    "StoreNotFoundError",
    "LifecycleTransitionError",
    "StoreLimitReachedError",
    "StoreNotOperationalError",
    # Storage layer abstractions and implementations
    "AbstractStoreRegistry",
    "AbstractStoreDatabaseStore",
    "SQLiteStoreRegistry",
    "SQLiteStoreDatabaseStore",
]
