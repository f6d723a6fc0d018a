# storeplex/stores/service.py
import logging
import time
from typing import Optional, Dict, Any
from urllib.parse import quote

from .errors import (
    StoreNotFoundError, LifecycleTransitionError, StoreLimitReachedError, StoreNotOperationalError,
)
from .models import (
    StoreInDB, Store, StoreStatus, DatabaseType, AccountIdentity, ConnectDatabaseRequest,
    ConnectDatabaseResult, StoreDetails, StoreListItem, StoreList, TenantStoreUpdate,
)
from .storage_interfaces import AbstractStoreRegistry
from ..connections.errors import NoCredentialError, TenantConnectionError
from ..connections.management_api_handle import project_ref_from_url
from ..connections.router import ConnectionRouter
from ..credits.service import CreditLedgerService
from ..domains.models import DomainMappingCreate, VerificationStatus
from ..domains.resolver import DomainResolver
from ..domains.storage_interfaces import AbstractDomainStore
from ..provisioning.models import GenesisAdmin, ProvisioningOptions
from ..provisioning.orchestrator import ProvisioningOrchestrator
from ..provisioning.schema import ROOT_TABLE
from ..vault.errors import CryptoError, InvalidCredentialsError
from ..vault.models import DatabaseCredentials

logger = logging.getLogger(__name__)

# Result codes surfaced to API callers
ALREADY_CONNECTED = "ALREADY_CONNECTED"
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
CONNECTION_FAILED = "CONNECTION_FAILED"
PROVISIONING_FAILED = "PROVISIONING_FAILED"
SLUG_TAKEN = "SLUG_TAKEN"


def default_connection_string(project_url: str, service_role_key: str) -> str:
    """Direct database URL of a hosted project, derived from its project URL."""
    ref = project_ref_from_url(project_url)
    return f"postgresql://postgres:{quote(service_role_key, safe='')}@db.{ref}.supabase.co:5432/postgres"


class StoreService:
    """
    Store lifecycle operations for the dashboard backend.

    Coordinates the registry, the connection router, the provisioning
    orchestrator, hostname mappings and the credit ledger. Store status only
    moves through the registry's transition operations.
    """

    def __init__(
        self,
        registry: AbstractStoreRegistry,
        router: ConnectionRouter,
        orchestrator: ProvisioningOrchestrator,
        domain_store: AbstractDomainStore,
        domain_resolver: DomainResolver,
        credit_service: CreditLedgerService,
        platform_domain: str,
        max_stores_per_account: int = 5,
    ):
        self.registry = registry
        self.router = router
        self.orchestrator = orchestrator
        self.domain_store = domain_store
        self.domain_resolver = domain_resolver
        self.credit_service = credit_service
        self.platform_domain = platform_domain.strip(".").lower()
        self.max_stores_per_account = max_stores_per_account

    async def _get_owned_store(self, store_id: str, account_id: str) -> StoreInDB:
        """Stores of other accounts are reported as not found."""
        store = await self.registry.get_store(store_id)
        if store is None or store.account_id != account_id:
            raise StoreNotFoundError(store_id)
        return store

    async def create_store(self, account_id: str, name: str) -> StoreInDB:
        """
        Create a store in `pending_database` with a zero credit balance.

        Raises:
            StoreLimitReachedError: If the account already owns the maximum number of stores
        """
        logger.info(f"Service: Creating store '{name}' for account '{account_id}'.")
        count = await self.registry.count_stores_by_account(account_id)
        if count >= self.max_stores_per_account:
            logger.warning(
                f"Service: Account '{account_id}' reached the store limit ({self.max_stores_per_account})."
            )
            raise StoreLimitReachedError(account_id, self.max_stores_per_account)
        store = await self.registry.create_store(account_id, name)
        await self.credit_service.initialize_balance(store.id)
        return store

    async def get_store(self, store_id: str, account_id: str) -> StoreInDB:
        return await self._get_owned_store(store_id, account_id)

    async def list_stores(self, account_id: str) -> StoreList:
        stores = await self.registry.list_stores_by_account(account_id)
        items = []
        for store in stores:
            primary = await self.domain_store.get_primary_mapping(store.id)
            items.append(StoreListItem(
                id=store.id,
                name=store.name,
                status=store.status,
                is_active=store.is_active,
                created_at=store.created_at,
                hostname=primary.hostname if primary else None,
                slug=primary.slug if primary else None,
            ))
        return StoreList(stores=items, total=len(items))

    async def get_store_details(self, store_id: str, account_id: str) -> StoreDetails:
        """
        Registry status, connection info and credits of a store.

        The tenant's own `stores` row is included when the store is operational
        and its database answers; a tenant database outage does not fail the call.
        """
        store = await self._get_owned_store(store_id, account_id)
        primary = await self.domain_store.get_primary_mapping(store_id)
        details = StoreDetails(
            store=Store.model_validate(store),
            hostname=primary.hostname if primary else None,
            slug=primary.slug if primary else None,
            connection=await self.router.get_connection_info(store_id),
            credits=await self.credit_service.get_summary(store_id),
        )
        if store.is_operational():
            try:
                handle = await self.router.get_connection(store_id)
                rows = await handle.fetch_rows(ROOT_TABLE, {"id": store_id}, limit=1)
                details.tenant_data = rows[0] if rows else None
            except (NoCredentialError, TenantConnectionError, CryptoError) as e:
                logger.warning(f"Service: Tenant data for store '{store_id}' is unavailable: {e}")
        return details

    async def update_tenant_store(
        self, store_id: str, account_id: str, updates: TenantStoreUpdate
    ) -> Optional[Dict[str, Any]]:
        """
        Update the tenant's own `stores` row. Returns the updated row, or None
        when the tenant database has no row for this store.

        Raises:
            StoreNotOperationalError: If the store is not active
        """
        store = await self._get_owned_store(store_id, account_id)
        if not store.is_operational():
            raise StoreNotOperationalError(store_id)
        values = updates.model_dump(exclude_unset=True)
        handle = await self.router.get_connection(store_id)
        if not values:
            rows = await handle.fetch_rows(ROOT_TABLE, {"id": store_id}, limit=1)
        else:
            logger.info(f"Service: Updating tenant store row of '{store_id}': {sorted(values)}")
            rows = await handle.update_rows(ROOT_TABLE, values, {"id": store_id})
        return rows[0] if rows else None

    async def suspend_store(self, store_id: str, account_id: str, reason: str) -> StoreInDB:
        """Soft delete: suspend the store and drop every cached route to it."""
        await self._get_owned_store(store_id, account_id)
        store = await self.registry.suspend(store_id, reason)
        await self.router.invalidate(store_id)
        dropped = self.domain_resolver.invalidate_store(store_id)
        logger.info(f"Service: Suspended store '{store_id}' and dropped {dropped} cached hostname(s).")
        return store

    def _build_credentials(self, request: ConnectDatabaseRequest) -> DatabaseCredentials:
        if not request.project_url or not request.service_role_key:
            missing = [
                name for name, value in (("projectUrl", request.project_url),
                                         ("serviceRoleKey", request.service_role_key))
                if not value
            ]
            raise InvalidCredentialsError(missing)
        connection_string = request.connection_string
        if not connection_string and request.database_type == DatabaseType.SUPABASE:
            try:
                connection_string = default_connection_string(request.project_url, request.service_role_key)
            except TenantConnectionError:
                connection_string = None
        return DatabaseCredentials(
            project_url=request.project_url,
            service_role_key=request.service_role_key,
            anon_key=request.anon_key,
            connection_string=connection_string,
        )

    async def _revert(self, store_id: str) -> None:
        """Return a store whose connect attempt failed to `pending_database`."""
        try:
            await self.registry.fail_provisioning(store_id)
        except LifecycleTransitionError as e:
            logger.warning(f"Service: Could not roll back store '{store_id}': {e}")
        await self.router.invalidate(store_id)

    async def connect_database(
        self,
        store_id: str,
        account: AccountIdentity,
        request: ConnectDatabaseRequest,
    ) -> ConnectDatabaseResult:
        """
        Attach a tenant database to a pending store and provision it.

        On success the store is `active` and reachable at
        `{slug}.{platform_domain}`. Every failure after the store entered
        `provisioning` puts it back into `pending_database` so the caller can
        retry with corrected credentials.

        Raises:
            StoreNotFoundError: If the store does not exist for this account
        """
        store = await self._get_owned_store(store_id, account.account_id)

        try:
            credentials = self._build_credentials(request)
        except InvalidCredentialsError as e:
            return ConnectDatabaseResult(success=False, code=INVALID_CREDENTIALS, error=str(e))

        if store.status != StoreStatus.PENDING_DATABASE:
            return ConnectDatabaseResult(
                success=False,
                code=ALREADY_CONNECTED,
                error=f"Store is already connected (status: {store.status.value}).",
            )

        slug = request.store_slug or f"store-{int(time.time() * 1000)}"
        hostname = f"{slug}.{self.platform_domain}"
        existing = await self.domain_store.get_mapping(hostname)
        if existing is not None and existing.store_id != store_id:
            return ConnectDatabaseResult(
                success=False, code=SLUG_TAKEN, error=f"Hostname '{hostname}' is already in use."
            )

        try:
            await self.registry.start_provisioning(store_id)
        except LifecycleTransitionError as e:
            return ConnectDatabaseResult(success=False, code=ALREADY_CONNECTED, error=str(e))

        try:
            result = await self._connect_and_provision(store, account, request, credentials, slug, hostname)
        except Exception as e:
            logger.error(
                f"Service: Connecting database for store '{store_id}' failed: {credentials.mask(str(e))}"
            )
            await self._revert(store_id)
            raise
        if not result.success:
            await self._revert(store_id)
            if result.error:
                result.error = credentials.mask(result.error)
            if result.provisioning:
                for step_error in result.provisioning.errors:
                    step_error.error = credentials.mask(step_error.error)
        return result

    async def _connect_and_provision(
        self,
        store: StoreInDB,
        account: AccountIdentity,
        request: ConnectDatabaseRequest,
        credentials: DatabaseCredentials,
        slug: str,
        hostname: str,
    ) -> ConnectDatabaseResult:
        store_id = store.id
        try:
            await self.router.store_credentials(store_id, request.database_type, credentials)
        except InvalidCredentialsError as e:
            return ConnectDatabaseResult(success=False, code=INVALID_CREDENTIALS, error=str(e))

        if not await self.router.test_connection(store_id):
            return ConnectDatabaseResult(
                success=False,
                code=CONNECTION_FAILED,
                error="Could not connect to the database. Please check your credentials.",
            )

        try:
            handle = await self.router.get_connection(store_id)
        except TenantConnectionError as e:
            return ConnectDatabaseResult(success=False, code=CONNECTION_FAILED, error=str(e))

        admin = GenesisAdmin(
            email=account.email, first_name=account.first_name, last_name=account.last_name
        ) if account.email else None
        options = ProvisioningOptions(
            store_name=request.store_name or store.name,
            store_slug=slug,
            admin=admin,
        )
        provisioning = await self.orchestrator.provision(handle, store_id, options)
        if not provisioning.success:
            summary = "; ".join(f"{e.step}: {e.error}" for e in provisioning.errors)
            return ConnectDatabaseResult(
                success=False,
                code=PROVISIONING_FAILED,
                error=f"Database provisioning failed: {summary}",
                provisioning=provisioning,
            )

        existing = await self.domain_store.get_mapping(hostname)
        if existing is None:
            try:
                await self.domain_store.create_mapping(DomainMappingCreate(
                    store_id=store_id,
                    hostname=hostname,
                    slug=slug,
                    is_primary=True,
                    is_custom_domain=False,
                    verification_status=VerificationStatus.VERIFIED,
                ))
            except ValueError as e:
                # Another store claimed the hostname after the pre-check
                logger.warning(f"Service: Hostname '{hostname}' lost to a concurrent claim: {e}")
                return ConnectDatabaseResult(
                    success=False, code=SLUG_TAKEN, error=f"Hostname '{hostname}' is already in use.",
                    provisioning=provisioning,
                )
        elif existing.store_id != store_id:
            return ConnectDatabaseResult(
                success=False, code=SLUG_TAKEN, error=f"Hostname '{hostname}' is already in use.",
                provisioning=provisioning,
            )

        active = await self.registry.complete_provisioning(store_id)
        self.domain_resolver.invalidate(hostname)
        logger.info(f"Service: Store '{store_id}' is active at '{hostname}'.")
        return ConnectDatabaseResult(
            success=True,
            store=Store.model_validate(active),
            hostname=hostname,
            provisioning=provisioning,
        )
