# storeplex/provisioning/models.py
from pydantic import BaseModel, Field
from typing import Optional, List

# Seed rows are authored against this tenant and re-owned per new store
PLACEHOLDER_STORE_ID = "00000000-0000-0000-0000-000000000000"


class ProvisioningStepError(BaseModel):
    """A single failed provisioning step, collected rather than raised."""
    step: str
    error: str


class ProvisioningResult(BaseModel):
    """Outcome of one provisioning run. Transient; never persisted."""
    store_id: str
    success: bool = False
    already_provisioned: bool = False
    completed_steps: List[str] = Field(default_factory=list)
    errors: List[ProvisioningStepError] = Field(default_factory=list)

    def record_step(self, step: str) -> None:
        self.completed_steps.append(step)

    def record_error(self, step: str, error: str) -> None:
        self.errors.append(ProvisioningStepError(step=step, error=error))


class GenesisAdmin(BaseModel):
    """First admin user created inside the tenant database."""
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ProvisioningOptions(BaseModel):
    """Caller-supplied values for a provisioning run."""
    store_name: str = "My Store"
    store_slug: Optional[str] = None
    currency: str = "USD"
    timezone: str = "UTC"
    admin: Optional[GenesisAdmin] = None
    force: bool = False
