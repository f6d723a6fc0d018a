# storeplex/connections/__init__.py
# Tenant database handles. The router and handle factory depend on the store
# models and are imported from their own modules.

from .errors import NoCredentialError, TenantConnectionError, MissingTableError
from .handles import AbstractTenantHandle, SQLiteTenantHandle, quote_identifier
from .postgres_handle import PostgresTenantHandle
from .management_api_handle import ManagementApiTenantHandle

__all__ = [
    "NoCredentialError",
    "TenantConnectionError",
    "MissingTableError",
    "AbstractTenantHandle",
    "SQLiteTenantHandle",
    "PostgresTenantHandle",
    "ManagementApiTenantHandle",
    "quote_identifier",
]
