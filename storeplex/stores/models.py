# storeplex/stores/models.py
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any, List
from datetime import datetime

from ..credits.models import CreditSummary
from ..provisioning.models import ProvisioningResult


class StoreStatus(str, Enum):
    """Lifecycle states of a store in the master registry."""
    PENDING_DATABASE = "pending_database"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    FAILED = "failed"


class DatabaseType(str, Enum):
    """Kinds of tenant databases a store can be connected to."""
    SUPABASE = "supabase"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class ConnectionStatus(str, Enum):
    """Outcome of the last connection test against a tenant database."""
    PENDING = "pending"
    CONNECTED = "connected"
    FAILED = "failed"
    TIMEOUT = "timeout"


class StoreInDB(BaseModel):
    """Store row as kept in the master registry."""
    id: str
    account_id: str
    name: str
    status: StoreStatus
    is_active: bool = False
    suspended_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def is_operational(self) -> bool:
        """Operational data access is only permitted for active stores."""
        return self.status == StoreStatus.ACTIVE and self.is_active


class Store(BaseModel):
    """Store data in API responses."""
    id: str
    name: str
    status: StoreStatus
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StoreCreate(BaseModel):
    """Request body for POST /stores."""
    name: str = Field(min_length=1, max_length=255)


class StoreDatabaseCredential(BaseModel):
    """Credential row of a store; holds only ciphertext and display data."""
    store_id: str
    database_type: DatabaseType
    encrypted_credentials: str = Field(repr=False)
    host: Optional[str] = None
    connection_status: ConnectionStatus = ConnectionStatus.PENDING
    last_tested_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConnectionInfo(BaseModel):
    """Non-sensitive view of a store's tenant database connection."""
    status: ConnectionStatus
    host: Optional[str] = None
    database_type: DatabaseType
    last_tested: Optional[datetime] = None


class ConnectDatabaseRequest(BaseModel):
    """Request body for POST /stores/{id}/connect-database."""
    model_config = ConfigDict(populate_by_name=True)

    project_url: Optional[str] = Field(default=None, alias="projectUrl")
    service_role_key: Optional[str] = Field(default=None, alias="serviceRoleKey", repr=False)
    anon_key: Optional[str] = Field(default=None, alias="anonKey", repr=False)
    connection_string: Optional[str] = Field(default=None, alias="connectionString", repr=False)
    store_name: Optional[str] = Field(default=None, alias="storeName")
    store_slug: Optional[str] = Field(
        default=None, alias="storeSlug", pattern=r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$"
    )
    database_type: DatabaseType = Field(default=DatabaseType.SUPABASE, alias="databaseType")


class AccountIdentity(BaseModel):
    """Acting account as forwarded by the dashboard backend."""
    account_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ConnectDatabaseResult(BaseModel):
    """Outcome of the connect-database flow."""
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None
    store: Optional[Store] = None
    hostname: Optional[str] = None
    provisioning: Optional[ProvisioningResult] = None


class StoreDetails(BaseModel):
    """Response body for GET /stores/{id}."""
    store: Store
    hostname: Optional[str] = None
    slug: Optional[str] = None
    connection: Optional[ConnectionInfo] = None
    credits: Optional[CreditSummary] = None
    tenant_data: Optional[Dict[str, Any]] = None


class StoreListItem(BaseModel):
    id: str
    name: str
    status: StoreStatus
    is_active: bool
    created_at: datetime
    hostname: Optional[str] = None
    slug: Optional[str] = None


class StoreList(BaseModel):
    stores: List[StoreListItem]
    total: int


class TenantStoreUpdate(BaseModel):
    """Fields of the tenant's own store row that may be changed via PATCH /stores/{id}."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    contact_email: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    timezone: Optional[str] = None
    default_language: Optional[str] = None
