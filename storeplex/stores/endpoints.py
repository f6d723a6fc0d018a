# storeplex/stores/endpoints.py
import logging
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from typing import Annotated, Dict, Any

from .errors import StoreNotFoundError, StoreLimitReachedError, StoreNotOperationalError
from .models import (
    Store, StoreCreate, StoreDetails, StoreList, ConnectDatabaseRequest, ConnectDatabaseResult,
    AccountIdentity, TenantStoreUpdate,
)
from .service import (
    StoreService, ALREADY_CONNECTED, INVALID_CREDENTIALS, CONNECTION_FAILED, SLUG_TAKEN,
)
from ..connections.errors import NoCredentialError, TenantConnectionError
from ..dependencies import get_admin_api_key, get_account_identity, get_platform
from ..platform import PlatformServices

logger = logging.getLogger(__name__)

# Store routes - called by the dashboard backend with the platform API key
stores_router = APIRouter(
    prefix="/stores",
    tags=["Stores"],
    dependencies=[Depends(get_admin_api_key)]
)

_RESULT_STATUS = {
    ALREADY_CONNECTED: status.HTTP_400_BAD_REQUEST,
    INVALID_CREDENTIALS: status.HTTP_400_BAD_REQUEST,
    SLUG_TAKEN: status.HTTP_409_CONFLICT,
    CONNECTION_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error(status_code: int, message: str, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": message, "code": code})


def _not_found(store_id: str) -> HTTPException:
    return _error(status.HTTP_404_NOT_FOUND, f"Store '{store_id}' not found", "STORE_NOT_FOUND")


async def get_store_service(
    platform: Annotated[PlatformServices, Depends(get_platform)]
) -> StoreService:
    return platform.store_service


@stores_router.post("", response_model=Store, status_code=status.HTTP_201_CREATED)
async def create_store_endpoint(
    store_create: StoreCreate,
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)]
):
    """Create a store awaiting its database. Returns 403 when the account is at its store limit."""
    logger.info(f"API: Received request to create store '{store_create.name}' for account '{account.account_id}'.")
    try:
        store = await service.create_store(account.account_id, store_create.name)
    except StoreLimitReachedError as e:
        raise _error(status.HTTP_403_FORBIDDEN, str(e), "STORE_LIMIT_REACHED")
    return Store.model_validate(store)


@stores_router.get("", response_model=StoreList)
async def list_stores_endpoint(
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)]
):
    return await service.list_stores(account.account_id)


@stores_router.get("/{store_id}", response_model=StoreDetails)
async def get_store_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store to retrieve")],
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)]
):
    """Registry status, connection info, credits and (best effort) the tenant's own store row."""
    try:
        return await service.get_store_details(store_id, account.account_id)
    except StoreNotFoundError:
        raise _not_found(store_id)


@stores_router.patch("/{store_id}", response_model=Dict[str, Any])
async def update_store_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store to update")],
    store_update: TenantStoreUpdate,
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)]
):
    """Update the store row inside the tenant database."""
    try:
        row = await service.update_tenant_store(store_id, account.account_id, store_update)
    except StoreNotFoundError:
        raise _not_found(store_id)
    except StoreNotOperationalError as e:
        raise _error(status.HTTP_409_CONFLICT, str(e), "STORE_NOT_ACTIVE")
    except (NoCredentialError, TenantConnectionError) as e:
        logger.warning(f"API: Tenant database of store '{store_id}' unavailable: {e}")
        raise _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Tenant database unavailable", CONNECTION_FAILED)
    if row is None:
        raise _error(status.HTTP_404_NOT_FOUND, "Store row not found in tenant database", "TENANT_STORE_NOT_FOUND")
    return row


@stores_router.delete("/{store_id}", response_model=Store)
async def delete_store_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store to suspend")],
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)],
    reason: Annotated[str, Query(max_length=500)] = "Deleted by account owner",
):
    """Soft delete: the store is suspended, its data is kept."""
    try:
        store = await service.suspend_store(store_id, account.account_id, reason)
    except StoreNotFoundError:
        raise _not_found(store_id)
    return Store.model_validate(store)


@stores_router.post("/{store_id}/connect-database", response_model=ConnectDatabaseResult)
async def connect_database_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store to connect")],
    connect_request: ConnectDatabaseRequest,
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    service: Annotated[StoreService, Depends(get_store_service)]
):
    """
    Attach a tenant database, provision it and activate the store.

    Failed attempts leave the store in `pending_database` so they can be retried.
    """
    logger.info(
        f"API: Connect database request for store '{store_id}' "
        f"(type={connect_request.database_type.value}, serviceRoleKey=********)."
    )
    try:
        result = await service.connect_database(store_id, account, connect_request)
    except StoreNotFoundError:
        raise _not_found(store_id)
    except Exception:
        logger.error(f"API: Unexpected error connecting database for store '{store_id}'.")
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to connect database", "INTERNAL_ERROR")

    if result.success:
        return result
    status_code = _RESULT_STATUS.get(result.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = {"error": result.error, "code": result.code}
    if result.provisioning is not None:
        detail["details"] = [e.model_dump() for e in result.provisioning.errors]
    raise HTTPException(status_code=status_code, detail=detail)
