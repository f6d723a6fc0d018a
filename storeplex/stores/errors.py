# storeplex/stores/errors.py


class StoreNotFoundError(LookupError):
    """Raised when a store id does not exist in the master registry."""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store '{store_id}' not found.")


class LifecycleTransitionError(Exception):
    """Raised when a lifecycle transition is attempted from an illegal state.

    Also the losing side of two callers racing on the same transition: the
    compare-and-set update finds the status already moved.
    """

    def __init__(self, store_id: str, operation: str, expected, actual):
        self.store_id = store_id
        self.operation = operation
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Cannot {operation} store '{store_id}': expected status '{expected}', found '{actual}'."
        )


class StoreLimitReachedError(Exception):
    """Raised when an account already owns the maximum number of stores."""

    def __init__(self, account_id: str, limit: int):
        self.account_id = account_id
        self.limit = limit
        super().__init__(f"Maximum number of stores ({limit}) reached")


class StoreNotOperationalError(Exception):
    """Raised when tenant data is requested for a store that is not active."""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store '{store_id}' is not operational.")
