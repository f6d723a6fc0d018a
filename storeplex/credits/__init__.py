# storeplex/credits/__init__.py
# Per-store credit balance and append-only ledger

from .models import (
    TransactionType,
    CreditBalance,
    CreditTransaction,
    CreditSummary,
    CreditBalanceResponse,
    CreditMutationRequest,
    LedgerReconciliation,
    to_minor_units,
    from_minor_units,
)
from .errors import (
    CreditLedgerError,
    CreditBalanceNotFoundError,
    InvalidAmountError,
    InsufficientBalanceError,
)
from .storage_interfaces import AbstractCreditStore
from .sqlite_credit_store import SQLiteCreditStore
from .service import CreditLedgerService
