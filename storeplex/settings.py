# storeplex/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import logging
from pathlib import Path

# Configure logging for settings module
logger = logging.getLogger(__name__)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s SETTINGS.PY - [%(levelname)s] - %(message)s'
    )

# This settings.py file is at <project>/storeplex/settings.py
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

if DOTENV_PATH.exists():
    logger.info(f"SETTINGS.PY: .env file FOUND at explicit path: {DOTENV_PATH}")
else:
    logger.warning(
        f"SETTINGS.PY: .env file NOT FOUND at explicit path: {DOTENV_PATH}. "
        "Will rely on OS env vars or defaults."
    )


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "StorePlex"
    debug_mode: bool = False

    # Master registry database
    sqlite_db_path: str = "./storeplex_master.sqlite3"

    # Security settings
    admin_api_key: Optional[str] = Field(
        default=None,
        description="API Key shared with the dashboard backend for all store routes."
    )
    storeplex_encryption_key: Optional[str] = Field(
        default=None,
        description="Base64-encoded 256-bit key for tenant credential encryption. Required at startup."
    )

    # Tenant lifecycle
    platform_domain: str = "storeplex.app"
    max_stores_per_account: int = 5

    # Domain resolution cache
    domain_cache_ttl_seconds: float = 300.0
    domain_cache_sweep_interval_seconds: float = 60.0
    platform_internal_hosts: List[str] = Field(
        default_factory=lambda: ["localhost", "127.0.0.1", "0.0.0.0", "::1"]
    )
    platform_internal_host_suffixes: List[str] = Field(
        default_factory=lambda: [".onrender.com", ".vercel.app", ".railway.app", ".fly.dev"]
    )

    # Tenant database access
    management_api_base_url: str = "https://api.supabase.com"
    management_api_access_token: Optional[str] = Field(
        default=None,
        description="Platform access token for the remote management API. Falls back to the tenant's service role key."
    )
    management_api_timeout_seconds: float = 60.0
    connection_test_timeout_seconds: float = 10.0
    provisioning_statement_timeout_seconds: float = 120.0
    prefer_direct_connections: bool = False

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )


# Initialize settings instance
settings = Settings()

# Sensitive values are masked
logger.info(
    f"SETTINGS.PY: storeplex_encryption_key: "
    f"{'********' if settings.storeplex_encryption_key else 'None'}"
)
logger.info(
    f"SETTINGS.PY: admin_api_key: {'********' if settings.admin_api_key else 'None'}"
)
logger.info(f"SETTINGS.PY: sqlite_db_path: '{settings.sqlite_db_path}'")
logger.info(f"SETTINGS.PY: platform_domain: '{settings.platform_domain}'")
