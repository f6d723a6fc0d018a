# storeplex/domains/models.py
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


def normalize_hostname(hostname: str) -> str:
    """Lowercase a Host header value and strip its port."""
    host = (hostname or "").strip().lower()
    if host.startswith("["):
        # Bracketed IPv6 literal, e.g. [::1]:8000
        end = host.find("]")
        return host[1:end] if end != -1 else host
    if host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host.rstrip(".")


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


class StoreContext(BaseModel):
    """Tenant identity resolved from an inbound hostname."""
    store_id: str
    hostname: str
    slug: Optional[str] = None
    is_custom_domain: bool = False
    is_primary: bool = False


class DomainMapping(BaseModel):
    """Hostname to store mapping as kept in the master registry."""
    id: str
    store_id: str
    hostname: str
    slug: Optional[str] = None
    is_primary: bool = False
    is_custom_domain: bool = False
    verification_status: VerificationStatus = VerificationStatus.PENDING
    is_active: bool = True
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DomainMappingCreate(BaseModel):
    store_id: str
    hostname: str = Field(min_length=1, max_length=253)
    slug: Optional[str] = None
    is_primary: bool = False
    is_custom_domain: bool = True
    verification_status: VerificationStatus = VerificationStatus.PENDING

    @field_validator("hostname")
    @classmethod
    def _normalize(cls, value: str) -> str:
        host = normalize_hostname(value)
        if not host:
            raise ValueError("hostname must not be empty")
        return host
