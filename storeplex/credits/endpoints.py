# storeplex/credits/endpoints.py
import logging
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from typing import Annotated, List

from .errors import CreditBalanceNotFoundError, InsufficientBalanceError, InvalidAmountError
from .models import CreditBalance, CreditBalanceResponse, CreditMutationRequest, CreditTransaction, LedgerReconciliation
from .service import CreditLedgerService
from ..dependencies import get_admin_api_key, get_account_identity, get_platform
from ..platform import PlatformServices
from ..stores.errors import StoreNotFoundError
from ..stores.models import AccountIdentity

logger = logging.getLogger(__name__)

# Read access for the dashboard, scoped to the acting account
credits_router = APIRouter(
    prefix="/stores/{store_id}/credits",
    tags=["Credits"],
    dependencies=[Depends(get_admin_api_key)]
)

# Mutations for billing collaborators
credits_admin_router = APIRouter(
    prefix="/admin/stores/{store_id}/credits",
    tags=["Admin - Credits"],
    dependencies=[Depends(get_admin_api_key)]
)


async def get_credit_service(
    platform: Annotated[PlatformServices, Depends(get_platform)]
) -> CreditLedgerService:
    return platform.credit_service


async def get_owned_store_id(
    store_id: Annotated[str, Path(description="The ID of the store")],
    account: Annotated[AccountIdentity, Depends(get_account_identity)],
    platform: Annotated[PlatformServices, Depends(get_platform)],
) -> str:
    try:
        await platform.store_service.get_store(store_id, account.account_id)
    except StoreNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"Store '{store_id}' not found", "code": "STORE_NOT_FOUND"},
        )
    return store_id


def _to_response(balance: CreditBalance) -> CreditBalanceResponse:
    return CreditBalanceResponse(
        store_id=balance.store_id,
        balance=float(balance.balance),
        reserved=float(balance.reserved_balance),
        available=float(balance.available),
        lifetime_purchased=float(balance.lifetime_purchased),
        lifetime_spent=float(balance.lifetime_spent),
    )


def _balance_not_found(store_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": f"No credit balance for store '{store_id}'", "code": "BALANCE_NOT_FOUND"},
    )


@credits_router.get("", response_model=CreditBalanceResponse)
async def get_credits_endpoint(
    store_id: Annotated[str, Depends(get_owned_store_id)],
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    try:
        return _to_response(await service.get_balance(store_id))
    except CreditBalanceNotFoundError:
        raise _balance_not_found(store_id)


@credits_router.get("/transactions", response_model=List[CreditTransaction])
async def list_transactions_endpoint(
    store_id: Annotated[str, Depends(get_owned_store_id)],
    service: Annotated[CreditLedgerService, Depends(get_credit_service)],
    limit: Annotated[int, Query(ge=1, le=200, description="Maximum number of rows to return.")] = 50,
    offset: Annotated[int, Query(ge=0, description="Number of rows to skip.")] = 0,
):
    """Ledger rows of the store, newest first."""
    return await service.list_transactions(store_id, limit=limit, offset=offset)


async def _mutate(operation: str, store_id: str, call) -> CreditBalanceResponse:
    try:
        return _to_response(await call)
    except InsufficientBalanceError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": str(e),
                "code": "INSUFFICIENT_BALANCE",
                "requested": float(e.requested),
                "available": float(e.available),
            },
        )
    except InvalidAmountError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(e), "code": "INVALID_AMOUNT"}
        )
    except CreditBalanceNotFoundError:
        logger.warning(f"API: Credit {operation} for unknown balance of store '{store_id}'.")
        raise _balance_not_found(store_id)


@credits_admin_router.post("/add", response_model=CreditBalanceResponse)
async def add_credits_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store")],
    mutation: CreditMutationRequest,
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    logger.info(f"API: Add {mutation.amount} credits ({mutation.transaction_type.value}) to store '{store_id}'.")
    return await _mutate("add", store_id, service.add_credits(
        store_id,
        mutation.amount,
        transaction_type=mutation.transaction_type,
        description=mutation.description,
        payment_provider=mutation.payment_provider,
        payment_reference=mutation.payment_reference,
        metadata=mutation.metadata,
    ))


@credits_admin_router.post("/deduct", response_model=CreditBalanceResponse)
async def deduct_credits_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store")],
    mutation: CreditMutationRequest,
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    """Spend credits. Returns 402 when the available balance does not cover the amount."""
    return await _mutate("deduct", store_id, service.deduct_credits(store_id, mutation.amount, mutation.description))


@credits_admin_router.post("/reserve", response_model=CreditBalanceResponse)
async def reserve_credits_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store")],
    mutation: CreditMutationRequest,
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    return await _mutate("reserve", store_id, service.reserve_credits(store_id, mutation.amount))


@credits_admin_router.post("/release", response_model=CreditBalanceResponse)
async def release_credits_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store")],
    mutation: CreditMutationRequest,
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    return await _mutate("release", store_id, service.release_reserved_credits(store_id, mutation.amount))


@credits_admin_router.get("/reconcile", response_model=LedgerReconciliation)
async def reconcile_credits_endpoint(
    store_id: Annotated[str, Path(description="The ID of the store")],
    service: Annotated[CreditLedgerService, Depends(get_credit_service)]
):
    """Compare the balance projection with the sums of the ledger."""
    try:
        return await service.reconcile(store_id)
    except CreditBalanceNotFoundError:
        raise _balance_not_found(store_id)
