# storeplex/vault/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any


class DatabaseCredentials(BaseModel):
    """
    Plaintext connection secrets for a tenant database.

    Only ever held in memory; persisted exclusively through the vault.
    Serialized with camelCase keys so the decrypted JSON matches what
    external tooling reading the master database expects.
    """
    model_config = ConfigDict(populate_by_name=True)

    project_url: str = Field(alias="projectUrl")
    service_role_key: str = Field(alias="serviceRoleKey", repr=False)
    anon_key: Optional[str] = Field(default=None, alias="anonKey", repr=False)
    connection_string: Optional[str] = Field(default=None, alias="connectionString", repr=False)

    def to_payload(self) -> Dict[str, Any]:
        """Serializable form used as the vault plaintext."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def secret_values(self) -> list:
        """Values that must be masked in any user-visible message."""
        return [v for v in (self.service_role_key, self.anon_key, self.connection_string) if v]

    def mask(self, text: str) -> str:
        """Replace every secret value occurring in ``text`` with ``********``."""
        for secret in self.secret_values():
            text = text.replace(secret, "********")
        return text
