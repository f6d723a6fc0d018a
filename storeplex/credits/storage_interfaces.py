# storeplex/credits/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple

from .models import CreditBalance, CreditTransaction, TransactionType


class AbstractCreditStore(ABC):
    """
    Interface for credit balance and ledger persistence.

    Amounts cross this interface as integer hundredths of a credit. Every
    mutation is a single guarded update committed together with its ledger
    row; a failed guard applies nothing.
    """

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def teardown(self) -> None:
        pass

    @abstractmethod
    async def create_balance(self, store_id: str) -> CreditBalance:
        """Create a zero balance for a store (no-op if one exists)."""
        pass

    @abstractmethod
    async def get_balance(self, store_id: str) -> Optional[CreditBalance]:
        pass

    @abstractmethod
    async def add(
        self,
        store_id: str,
        amount_minor: int,
        transaction_type: TransactionType,
        description: Optional[str] = None,
        payment_provider: Optional[str] = None,
        payment_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Increment balance and lifetime_purchased. False when the balance row is missing."""
        pass

    @abstractmethod
    async def deduct(self, store_id: str, amount_minor: int, description: Optional[str] = None) -> bool:
        """Decrement balance if available covers it. False when the guard fails."""
        pass

    @abstractmethod
    async def reserve(self, store_id: str, amount_minor: int) -> bool:
        """Move capacity from available into reserved. False when the guard fails."""
        pass

    @abstractmethod
    async def release(self, store_id: str, amount_minor: int) -> bool:
        """Decrease reserved, clamped at zero. False when the balance row is missing."""
        pass

    @abstractmethod
    async def list_transactions(self, store_id: str, limit: int = 50, offset: int = 0) -> List[CreditTransaction]:
        """Ledger rows of a store, newest first."""
        pass

    @abstractmethod
    async def ledger_totals(self, store_id: str) -> Tuple[int, int, int]:
        """(sum of all amounts, sum of positive amounts, sum of negative amounts) in hundredths."""
        pass
