# storeplex/credits/models.py
from enum import Enum
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Union
from datetime import datetime

from .errors import InvalidAmountError


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    REFUND = "refund"
    BONUS = "bonus"
    MIGRATION = "migration"


class CreditBalance(BaseModel):
    """Balance projection of a store. Amounts are in credits with two decimals."""
    store_id: str
    balance: Decimal = Decimal("0.00")
    reserved_balance: Decimal = Decimal("0.00")
    lifetime_purchased: Decimal = Decimal("0.00")
    lifetime_spent: Decimal = Decimal("0.00")
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def available(self) -> Decimal:
        return self.balance - self.reserved_balance


class CreditTransaction(BaseModel):
    """Immutable ledger row."""
    id: str
    store_id: str
    amount: Decimal
    transaction_type: TransactionType
    payment_provider: Optional[str] = None
    payment_reference: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CreditSummary(BaseModel):
    balance: float
    reserved: float
    available: float


class CreditBalanceResponse(CreditSummary):
    store_id: str
    lifetime_purchased: float
    lifetime_spent: float


class CreditMutationRequest(BaseModel):
    """Body of the admin credit mutation routes."""
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    description: Optional[str] = None
    transaction_type: TransactionType = TransactionType.PURCHASE
    payment_provider: Optional[str] = None
    payment_reference: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class LedgerReconciliation(BaseModel):
    """Comparison of the balance projection with the ledger it summarizes."""
    store_id: str
    consistent: bool
    balance: Decimal
    ledger_balance: Decimal
    lifetime_purchased: Decimal
    ledger_purchased: Decimal
    lifetime_spent: Decimal
    ledger_spent: Decimal


TWO_PLACES = Decimal("0.01")

Amount = Union[int, float, str, Decimal]


def to_minor_units(amount: Amount) -> int:
    """Convert a positive credit amount to integer hundredths."""
    try:
        value = Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid credit amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Credit amount must be positive, got {amount!r}")
    return int(value * 100)


def from_minor_units(value: int) -> Decimal:
    return (Decimal(value) / 100).quantize(TWO_PLACES)
