# storeplex/connections/factory.py
import logging
from typing import Callable
from urllib.parse import urlparse

from .errors import TenantConnectionError
from .handles import AbstractTenantHandle, SQLiteTenantHandle
from .postgres_handle import PostgresTenantHandle
from .management_api_handle import ManagementApiTenantHandle
from ..settings import Settings
from ..stores.models import DatabaseType
from ..vault.models import DatabaseCredentials

logger = logging.getLogger(__name__)

HandleFactory = Callable[[DatabaseType, DatabaseCredentials], AbstractTenantHandle]


def display_host(database_type: DatabaseType, credentials: DatabaseCredentials) -> str:
    """Non-sensitive host shown in connection info; never includes userinfo."""
    if database_type == DatabaseType.SQLITE:
        return "localhost"
    source = credentials.project_url or credentials.connection_string or ""
    return urlparse(source).hostname or "unknown"


def create_tenant_handle(
    database_type: DatabaseType,
    credentials: DatabaseCredentials,
    settings: Settings,
) -> AbstractTenantHandle:
    """
    Build an unconnected tenant handle for a decrypted credential object.

    Hosted projects use the management API unless a raw connection string was
    supplied and direct connections are preferred.
    """
    if database_type == DatabaseType.SQLITE:
        return SQLiteTenantHandle.from_url(credentials.connection_string or credentials.project_url)

    if database_type == DatabaseType.POSTGRESQL:
        dsn = credentials.connection_string or credentials.project_url
        if not dsn.startswith(("postgres://", "postgresql://")):
            raise TenantConnectionError("PostgreSQL tenants need a postgresql:// connection string.")
        return PostgresTenantHandle(dsn, command_timeout=settings.provisioning_statement_timeout_seconds)

    if settings.prefer_direct_connections and credentials.connection_string:
        logger.debug("Using direct PostgreSQL connection for hosted tenant.")
        return PostgresTenantHandle(
            credentials.connection_string,
            command_timeout=settings.provisioning_statement_timeout_seconds,
        )
    return ManagementApiTenantHandle(
        project_url=credentials.project_url,
        service_role_key=credentials.service_role_key,
        management_api_base_url=settings.management_api_base_url,
        management_token=settings.management_api_access_token,
        timeout_seconds=settings.management_api_timeout_seconds,
    )


def make_handle_factory(settings: Settings) -> HandleFactory:
    """Bind settings into a two-argument factory for the connection router."""
    def factory(database_type: DatabaseType, credentials: DatabaseCredentials) -> AbstractTenantHandle:
        return create_tenant_handle(database_type, credentials, settings)
    return factory
