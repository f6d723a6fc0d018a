# storeplex/platform.py
import logging
from dataclasses import dataclass

from .settings import Settings
from .connections.factory import make_handle_factory
from .connections.router import ConnectionRouter
from .credits.service import CreditLedgerService
from .credits.sqlite_credit_store import SQLiteCreditStore
from .domains.resolver import DomainResolver
from .domains.sqlite_domain_store import SQLiteDomainStore
from .provisioning.orchestrator import ProvisioningOrchestrator
from .stores.service import StoreService
from .stores.sqlite_store_database_store import SQLiteStoreDatabaseStore
from .stores.sqlite_store_registry import SQLiteStoreRegistry
from .vault.crypto import CredentialVault

logger = logging.getLogger(__name__)


@dataclass
class PlatformServices:
    """Every long-lived collaborator of the control plane, built once per application."""
    settings: Settings
    vault: CredentialVault
    registry: SQLiteStoreRegistry
    credential_store: SQLiteStoreDatabaseStore
    domain_store: SQLiteDomainStore
    credit_store: SQLiteCreditStore
    router: ConnectionRouter
    orchestrator: ProvisioningOrchestrator
    domain_resolver: DomainResolver
    credit_service: CreditLedgerService
    store_service: StoreService

    async def initialize(self) -> None:
        for store in (self.registry, self.credential_store, self.domain_store, self.credit_store):
            await store.initialize()
        self.domain_resolver.start()

    async def shutdown(self) -> None:
        await self.domain_resolver.stop()
        await self.router.close_all()
        for store in (self.registry, self.credential_store, self.domain_store, self.credit_store):
            await store.teardown()


def build_platform(settings: Settings) -> PlatformServices:
    """
    Wire the control plane from settings.

    Raises:
        CryptoError: If the vault key is missing or malformed
    """
    vault = CredentialVault(settings.storeplex_encryption_key)
    registry = SQLiteStoreRegistry()
    credential_store = SQLiteStoreDatabaseStore()
    domain_store = SQLiteDomainStore()
    credit_store = SQLiteCreditStore()

    router = ConnectionRouter(
        credential_store,
        vault,
        make_handle_factory(settings),
        connection_test_timeout_seconds=settings.connection_test_timeout_seconds,
    )
    orchestrator = ProvisioningOrchestrator(
        statement_timeout_seconds=settings.provisioning_statement_timeout_seconds
    )
    domain_resolver = DomainResolver(
        domain_store,
        ttl_seconds=settings.domain_cache_ttl_seconds,
        sweep_interval_seconds=settings.domain_cache_sweep_interval_seconds,
        internal_hosts=list(settings.platform_internal_hosts) + [settings.platform_domain],
        internal_host_suffixes=settings.platform_internal_host_suffixes,
    )
    credit_service = CreditLedgerService(credit_store)
    store_service = StoreService(
        registry,
        router,
        orchestrator,
        domain_store,
        domain_resolver,
        credit_service,
        platform_domain=settings.platform_domain,
        max_stores_per_account=settings.max_stores_per_account,
    )
    logger.info(f"Platform services built for '{settings.platform_domain}'.")
    return PlatformServices(
        settings=settings,
        vault=vault,
        registry=registry,
        credential_store=credential_store,
        domain_store=domain_store,
        credit_store=credit_store,
        router=router,
        orchestrator=orchestrator,
        domain_resolver=domain_resolver,
        credit_service=credit_service,
        store_service=store_service,
    )
