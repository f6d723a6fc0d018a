# storeplex/domains/endpoints.py
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from typing import Annotated, List

from .models import StoreContext, DomainMapping, DomainMappingCreate
from ..dependencies import get_admin_api_key, get_platform
from ..platform import PlatformServices

logger = logging.getLogger(__name__)

# Public: storefronts ask which store they are serving
storefront_router = APIRouter(prefix="/storefront", tags=["Storefront"])

# Admin router for hostname mappings
domains_admin_router = APIRouter(
    prefix="/admin/domains",
    tags=["Admin - Domains"],
    dependencies=[Depends(get_admin_api_key)]
)


@storefront_router.get("/context", response_model=StoreContext)
async def get_storefront_context_endpoint(request: Request):
    """Store resolved from the request's Host header. Returns 404 for unmapped hosts."""
    context = getattr(request.state, "store_context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "No store is mapped to this hostname", "code": "STORE_NOT_RESOLVED"},
        )
    return context


@domains_admin_router.post("", response_model=DomainMapping, status_code=status.HTTP_201_CREATED)
async def create_domain_mapping_endpoint(
    mapping_create: DomainMappingCreate,
    platform: Annotated[PlatformServices, Depends(get_platform)]
):
    """Register a hostname for a store. Returns 409 if the hostname is already mapped."""
    logger.info(f"API: Received request to map '{mapping_create.hostname}' to store '{mapping_create.store_id}'.")
    try:
        mapping = await platform.domain_store.create_mapping(mapping_create)
    except ValueError as e:
        logger.warning(f"API: Domain mapping for '{mapping_create.hostname}' rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail={"error": str(e), "code": "DOMAIN_CONFLICT"}
        )
    platform.domain_resolver.invalidate(mapping.hostname)
    return mapping


@domains_admin_router.get("/{store_id}", response_model=List[DomainMapping])
async def list_domain_mappings_endpoint(
    store_id: str,
    platform: Annotated[PlatformServices, Depends(get_platform)]
):
    return await platform.domain_store.list_mappings_for_store(store_id)
