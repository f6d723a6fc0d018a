# storeplex/vault/__init__.py

"""
Credential vault module initialization.

Authenticated encryption of per-tenant database credentials.
"""

from .crypto import CredentialVault, generate_vault_key
from .errors import CryptoError, InvalidCredentialsError
from .models import DatabaseCredentials

__all__ = [
    "CredentialVault",
    "generate_vault_key",
    "CryptoError",
    "InvalidCredentialsError",
    "DatabaseCredentials",
]
