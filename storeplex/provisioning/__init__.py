# storeplex/provisioning/__init__.py
# Tenant database provisioning

from .models import (
    PLACEHOLDER_STORE_ID,
    ProvisioningStepError,
    ProvisioningResult,
    ProvisioningOptions,
    GenesisAdmin,
)

# Declarative schema and seed data
from .schema import (
    TENANT_SCHEMA,
    ROOT_TABLE,
    TenantSchema,
    TableSpec,
    ColumnSpec,
    EnumSpec,
    ForeignKeySpec,
    sql_literal,
)
from .seed import SEED_DATA, SeedTable, TENANT_SCOPED_SEED_TABLES

from .orchestrator import ProvisioningOrchestrator
