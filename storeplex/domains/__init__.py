# storeplex/domains/__init__.py
# Hostname to store resolution

from .models import (
    VerificationStatus,
    StoreContext,
    DomainMapping,
    DomainMappingCreate,
    normalize_hostname,
)
from .storage_interfaces import AbstractDomainStore
from .sqlite_domain_store import SQLiteDomainStore
from .resolver import DomainResolver
from .middleware import DomainResolutionMiddleware
