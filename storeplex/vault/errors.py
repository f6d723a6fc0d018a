# storeplex/vault/errors.py


class CryptoError(Exception):
    """Raised when the vault key is misconfigured or a ciphertext cannot be authenticated.

    Always fatal to the operation that triggered it; callers must not treat
    it as an empty or default value.
    """


class InvalidCredentialsError(CryptoError):
    """Raised when a credential object is missing a mandatory field.

    Malformed credentials are rejected before encryption so they are never
    persisted.
    """

    def __init__(self, missing_fields):
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Database credentials are missing required field(s): {', '.join(self.missing_fields)}"
        )
