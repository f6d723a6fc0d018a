# storeplex/credits/errors.py
from decimal import Decimal


class CreditLedgerError(Exception):
    """Base exception for credit ledger operations."""


class CreditBalanceNotFoundError(CreditLedgerError, LookupError):
    """Raised when a store has no credit balance row."""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"No credit balance for store '{store_id}'.")


class InvalidAmountError(CreditLedgerError, ValueError):
    """Raised when a credit amount is zero, negative or not a number."""


class InsufficientBalanceError(CreditLedgerError):
    """Raised when available credits cannot cover a deduction or reservation.

    The mutation is never partially applied.
    """

    def __init__(self, store_id: str, requested: Decimal, available: Decimal):
        self.store_id = store_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient credits for store '{store_id}': requested {requested}, available {available}."
        )
