# storeplex/stores/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Optional, List
from datetime import datetime

from .models import StoreInDB, StoreDatabaseCredential, DatabaseType, ConnectionStatus


class AbstractStoreRegistry(ABC):
    """
    Interface for store identity and lifecycle persistence in the master database.

    Store status only changes through the transition operations below; there
    is intentionally no generic update method.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend and prepare it for operations."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Clean up resources and properly close the storage backend."""
        pass

    @abstractmethod
    async def create_store(self, account_id: str, name: str) -> StoreInDB:
        """Create a store in `pending_database` state with `is_active = False`."""
        pass

    @abstractmethod
    async def get_store(self, store_id: str) -> Optional[StoreInDB]:
        """Retrieve a store by id, or None when it does not exist."""
        pass

    @abstractmethod
    async def list_stores_by_account(self, account_id: str) -> List[StoreInDB]:
        """List an account's stores, newest first."""
        pass

    @abstractmethod
    async def count_stores_by_account(self, account_id: str, include_suspended: bool = False) -> int:
        """Count an account's stores."""
        pass

    @abstractmethod
    async def start_provisioning(self, store_id: str) -> StoreInDB:
        """
        Transition `pending_database -> provisioning`.

        Raises:
            StoreNotFoundError: If the store does not exist
            LifecycleTransitionError: If the store is not `pending_database`
        """
        pass

    @abstractmethod
    async def complete_provisioning(self, store_id: str) -> StoreInDB:
        """Transition `provisioning -> active` and set `is_active = True`."""
        pass

    @abstractmethod
    async def fail_provisioning(self, store_id: str) -> StoreInDB:
        """Roll back `provisioning -> pending_database` so the store stays retryable."""
        pass

    @abstractmethod
    async def suspend(self, store_id: str, reason: str) -> StoreInDB:
        """Transition any state to `suspended`, clear `is_active` and record the reason."""
        pass


class AbstractStoreDatabaseStore(ABC):
    """Interface for encrypted tenant database credential persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def teardown(self) -> None:
        pass

    @abstractmethod
    async def save_credentials(
        self,
        store_id: str,
        database_type: DatabaseType,
        encrypted_credentials: str,
        host: Optional[str],
    ) -> StoreDatabaseCredential:
        """
        Create or replace the credential row of a store.

        Replacing resets the connection status to `pending`.
        """
        pass

    @abstractmethod
    async def get_credentials(self, store_id: str) -> Optional[StoreDatabaseCredential]:
        """Retrieve the credential row of a store, or None."""
        pass

    @abstractmethod
    async def update_connection_status(
        self, store_id: str, status: ConnectionStatus, tested_at: datetime
    ) -> None:
        """Record the outcome of a connection test."""
        pass
