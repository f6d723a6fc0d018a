# storeplex/connections/errors.py


class NoCredentialError(LookupError):
    """Raised when a store has no credential row to open a tenant connection from."""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"No database credentials configured for store '{store_id}'.")


class TenantConnectionError(Exception):
    """Raised when a tenant database cannot be reached or a statement fails on it.

    Surfaced to the caller; the router never retries on its own.
    """


class MissingTableError(TenantConnectionError):
    """Raised when the tenant database is reachable but the requested table does not exist."""

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        message = f"Table '{table}' does not exist in the tenant database."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
