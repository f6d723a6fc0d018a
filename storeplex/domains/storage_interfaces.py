# storeplex/domains/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Optional, List

from .models import DomainMapping, DomainMappingCreate, StoreContext


class AbstractDomainStore(ABC):
    """Interface for hostname mapping persistence in the master database."""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def teardown(self) -> None:
        pass

    @abstractmethod
    async def find_active_mapping(self, hostname: str) -> Optional[StoreContext]:
        """
        Look up a routable mapping for a bare hostname.

        Only verified, active mappings of active stores qualify.
        """
        pass

    @abstractmethod
    async def create_mapping(self, mapping_create: DomainMappingCreate) -> DomainMapping:
        """
        Create a hostname mapping.

        Raises:
            ValueError: If the hostname is already mapped
        """
        pass

    @abstractmethod
    async def get_mapping(self, hostname: str) -> Optional[DomainMapping]:
        pass

    @abstractmethod
    async def list_mappings_for_store(self, store_id: str) -> List[DomainMapping]:
        pass

    @abstractmethod
    async def get_primary_mapping(self, store_id: str) -> Optional[DomainMapping]:
        pass

    @abstractmethod
    async def increment_access_count(self, hostname: str) -> None:
        """Bump access telemetry for a hostname."""
        pass
