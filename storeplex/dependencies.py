# storeplex/dependencies.py
import logging
from fastapi import HTTPException, Request, status, Header
from typing import Optional, Annotated

from .settings import settings
from .platform import PlatformServices
from .stores.models import AccountIdentity

logger = logging.getLogger(__name__)


async def get_admin_api_key(
    x_admin_api_key: Annotated[
        Optional[str],
        Header(description="The platform API Key shared with the dashboard backend.")
    ] = None
) -> str:
    """
    Validates the platform API key for every protected route.

    Returns the validated API key if authentication succeeds.
    Raises HTTPException with appropriate status codes for various failure scenarios.
    """
    # Ensure server has a key configured before processing requests
    if not settings.admin_api_key:
        logger.critical("ADMIN_API_KEY is not configured on the server. Store routes are effectively disabled.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API service is not configured properly (API Key missing on server).",
        )

    if not x_admin_api_key:
        logger.warning("Admin API: Missing X-Admin-API-Key header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated: X-Admin-API-Key header missing.",
            headers={"WWW-Authenticate": 'Basic realm="Admin Area"'},
        )

    if x_admin_api_key != settings.admin_api_key:
        logger.warning("Admin API: Invalid X-Admin-API-Key provided.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Invalid API Key.",
            headers={"WWW-Authenticate": 'Basic realm="Admin Area"'},
        )

    return x_admin_api_key


async def get_account_identity(
    x_account_id: Annotated[
        Optional[str], Header(description="Id of the account acting on the store.")
    ] = None,
    x_account_email: Annotated[
        Optional[str], Header(description="Email of the acting account; becomes the tenant's first admin.")
    ] = None,
    x_account_first_name: Annotated[Optional[str], Header()] = None,
    x_account_last_name: Annotated[Optional[str], Header()] = None,
) -> AccountIdentity:
    """Acting account as forwarded by the dashboard backend."""
    if not x_account_id:
        logger.warning("Store API: Missing X-Account-Id header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "X-Account-Id header missing.", "code": "ACCOUNT_REQUIRED"},
        )
    return AccountIdentity(
        account_id=x_account_id,
        email=x_account_email,
        first_name=x_account_first_name,
        last_name=x_account_last_name,
    )


def get_platform(request: Request) -> PlatformServices:
    """Services built by the application lifespan."""
    platform = getattr(request.app.state, "platform", None)
    if platform is None:
        logger.error("Platform services requested before application startup completed.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Service is starting up.", "code": "NOT_READY"},
        )
    return platform
