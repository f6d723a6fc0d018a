# storeplex/credits/service.py
import logging
from typing import Optional, List, Dict, Any

from .errors import CreditBalanceNotFoundError, InsufficientBalanceError
from .models import (
    CreditBalance, CreditTransaction, TransactionType, CreditSummary, LedgerReconciliation,
    Amount, to_minor_units, from_minor_units,
)
from .storage_interfaces import AbstractCreditStore

logger = logging.getLogger(__name__)


class CreditLedgerService:
    """
    Guarded mutations of a store's credit balance.

    Each operation is atomic at the storage layer; an operation that would
    break ``0 <= reserved_balance <= balance`` is rejected as a whole.
    """

    def __init__(self, credit_store: AbstractCreditStore):
        self.credit_store = credit_store

    async def initialize_balance(self, store_id: str) -> CreditBalance:
        return await self.credit_store.create_balance(store_id)

    async def get_balance(self, store_id: str) -> CreditBalance:
        balance = await self.credit_store.get_balance(store_id)
        if balance is None:
            raise CreditBalanceNotFoundError(store_id)
        return balance

    async def get_summary(self, store_id: str) -> Optional[CreditSummary]:
        balance = await self.credit_store.get_balance(store_id)
        if balance is None:
            return None
        return CreditSummary(
            balance=float(balance.balance),
            reserved=float(balance.reserved_balance),
            available=float(balance.available),
        )

    async def _rejected(self, store_id: str, requested_minor: int, operation: str) -> InsufficientBalanceError:
        balance = await self.get_balance(store_id)
        logger.warning(
            f"Rejected {operation} of {from_minor_units(requested_minor)} credits for store '{store_id}': "
            f"available {balance.available}."
        )
        return InsufficientBalanceError(store_id, from_minor_units(requested_minor), balance.available)

    async def add_credits(
        self,
        store_id: str,
        amount: Amount,
        transaction_type: TransactionType = TransactionType.PURCHASE,
        description: Optional[str] = None,
        payment_provider: Optional[str] = None,
        payment_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CreditBalance:
        amount_minor = to_minor_units(amount)
        applied = await self.credit_store.add(
            store_id, amount_minor, transaction_type, description,
            payment_provider, payment_reference, metadata,
        )
        if not applied:
            raise CreditBalanceNotFoundError(store_id)
        logger.info(
            f"Added {from_minor_units(amount_minor)} credits ({transaction_type.value}) to store '{store_id}'."
        )
        return await self.get_balance(store_id)

    async def deduct_credits(self, store_id: str, amount: Amount, description: Optional[str] = None) -> CreditBalance:
        """
        Spend credits.

        Raises:
            InsufficientBalanceError: If available credits do not cover the amount
        """
        amount_minor = to_minor_units(amount)
        if not await self.credit_store.deduct(store_id, amount_minor, description):
            raise await self._rejected(store_id, amount_minor, "deduction")
        logger.info(f"Deducted {from_minor_units(amount_minor)} credits from store '{store_id}'.")
        return await self.get_balance(store_id)

    async def reserve_credits(self, store_id: str, amount: Amount) -> CreditBalance:
        """
        Hold credits for a pending operation without changing the balance.

        Raises:
            InsufficientBalanceError: If available credits do not cover the amount
        """
        amount_minor = to_minor_units(amount)
        if not await self.credit_store.reserve(store_id, amount_minor):
            raise await self._rejected(store_id, amount_minor, "reservation")
        logger.info(f"Reserved {from_minor_units(amount_minor)} credits for store '{store_id}'.")
        return await self.get_balance(store_id)

    async def release_reserved_credits(self, store_id: str, amount: Amount) -> CreditBalance:
        """Release a reservation. Releasing more than is reserved clamps at zero."""
        amount_minor = to_minor_units(amount)
        if not await self.credit_store.release(store_id, amount_minor):
            raise CreditBalanceNotFoundError(store_id)
        logger.info(f"Released up to {from_minor_units(amount_minor)} reserved credits for store '{store_id}'.")
        return await self.get_balance(store_id)

    async def list_transactions(self, store_id: str, limit: int = 50, offset: int = 0) -> List[CreditTransaction]:
        return await self.credit_store.list_transactions(store_id, limit=limit, offset=offset)

    async def reconcile(self, store_id: str) -> LedgerReconciliation:
        """Check that the balance projection is explained by the ledger."""
        balance = await self.get_balance(store_id)
        total, positive, negative = await self.credit_store.ledger_totals(store_id)
        ledger_balance = from_minor_units(total)
        ledger_purchased = from_minor_units(positive)
        ledger_spent = from_minor_units(-negative)
        consistent = (
            balance.balance == ledger_balance
            and balance.lifetime_purchased == ledger_purchased
            and balance.lifetime_spent == ledger_spent
        )
        if not consistent:
            logger.error(
                f"Credit ledger for store '{store_id}' does not reconcile: balance {balance.balance} vs "
                f"ledger {ledger_balance}, purchased {balance.lifetime_purchased} vs {ledger_purchased}, "
                f"spent {balance.lifetime_spent} vs {ledger_spent}."
            )
        return LedgerReconciliation(
            store_id=store_id,
            consistent=consistent,
            balance=balance.balance,
            ledger_balance=ledger_balance,
            lifetime_purchased=balance.lifetime_purchased,
            ledger_purchased=ledger_purchased,
            lifetime_spent=balance.lifetime_spent,
            ledger_spent=ledger_spent,
        )
