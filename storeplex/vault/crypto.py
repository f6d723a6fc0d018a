# storeplex/vault/crypto.py
import base64
import binascii
import json
import logging
import os
from typing import Optional, Union, Dict, Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from .errors import CryptoError, InvalidCredentialsError
from .models import DatabaseCredentials

logger = logging.getLogger(__name__)

KEY_LENGTH_BYTES = 32
NONCE_LENGTH_BYTES = 16
TAG_LENGTH_BYTES = 16

# Mandatory subfields of a credential object (serialized names)
REQUIRED_CREDENTIAL_FIELDS = ("projectUrl", "serviceRoleKey")


def generate_vault_key() -> str:
    """Generates a new 256-bit vault key and returns it base64-encoded."""
    return base64.b64encode(os.urandom(KEY_LENGTH_BYTES)).decode("ascii")


def _b64decode_segment(segment: str, name: str) -> bytes:
    try:
        return base64.b64decode(segment.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise CryptoError(f"Encrypted value has a malformed {name} segment.") from e


class CredentialVault:
    """
    Authenticated symmetric encryption for per-tenant connection secrets.

    AES-256-GCM with a fresh 128-bit nonce per call. The output framing is
    ``base64(nonce):base64(tag):base64(ciphertext)``.
    """

    def __init__(self, encryption_key: Optional[str]):
        """
        Initialize the vault with a base64-encoded 32-byte key.

        Raises:
            CryptoError: If the key is missing, not base64 or not 32 bytes long
        """
        if not encryption_key:
            logger.critical(
                "CRITICAL: STOREPLEX_ENCRYPTION_KEY is not set. "
                "Tenant credentials cannot be encrypted or decrypted."
            )
            raise CryptoError("STOREPLEX_ENCRYPTION_KEY is not set.")
        try:
            key_bytes = base64.b64decode(encryption_key.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError) as e:
            logger.critical("STOREPLEX_ENCRYPTION_KEY is not valid base64.")
            raise CryptoError("STOREPLEX_ENCRYPTION_KEY is not valid base64.") from e

        if len(key_bytes) != KEY_LENGTH_BYTES:
            logger.critical(
                f"Invalid STOREPLEX_ENCRYPTION_KEY length after base64 decoding. "
                f"Expected {KEY_LENGTH_BYTES} bytes, got {len(key_bytes)}."
            )
            raise CryptoError(
                f"STOREPLEX_ENCRYPTION_KEY must decode to {KEY_LENGTH_BYTES} bytes, got {len(key_bytes)}."
            )

        self._aesgcm = AESGCM(key_bytes)
        logger.info("CredentialVault initialized successfully with a valid key.")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string and return the colon-framed blob."""
        nonce = os.urandom(NONCE_LENGTH_BYTES)
        ciphertext_with_tag = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext = ciphertext_with_tag[:-TAG_LENGTH_BYTES]
        tag = ciphertext_with_tag[-TAG_LENGTH_BYTES:]
        return ":".join(
            base64.b64encode(part).decode("ascii") for part in (nonce, tag, ciphertext)
        )

    def decrypt(self, encrypted_value: str) -> str:
        """
        Decrypt a colon-framed blob.

        Raises:
            CryptoError: If the framing is malformed, the value was truncated or
                tampered with, or it was encrypted under another key
        """
        if not isinstance(encrypted_value, str):
            raise CryptoError("Encrypted value must be a string.")
        parts = encrypted_value.split(":")
        if len(parts) != 3:
            raise CryptoError("Encrypted value must have exactly three segments (nonce:authTag:ciphertext).")

        nonce = _b64decode_segment(parts[0], "nonce")
        tag = _b64decode_segment(parts[1], "authTag")
        ciphertext = _b64decode_segment(parts[2], "ciphertext")

        if len(nonce) != NONCE_LENGTH_BYTES or len(tag) != TAG_LENGTH_BYTES:
            raise CryptoError("Encrypted value has a truncated nonce or authentication tag.")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.error(
                "Decryption failed: authentication tag mismatch. "
                "The value was tampered with or encrypted under a different key."
            )
            raise CryptoError("Encrypted value failed authentication.") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted value is not valid UTF-8.") from e

    def encrypt_credential_object(
        self, credentials: Union[DatabaseCredentials, Dict[str, Any]]
    ) -> str:
        """
        Validate and encrypt a structured credential object.

        Raises:
            InvalidCredentialsError: If projectUrl or serviceRoleKey is missing
        """
        payload = credentials.to_payload() if isinstance(credentials, DatabaseCredentials) else dict(credentials)
        missing = [f for f in REQUIRED_CREDENTIAL_FIELDS if not payload.get(f)]
        if missing:
            raise InvalidCredentialsError(missing)
        return self.encrypt(json.dumps(payload, separators=(",", ":"), sort_keys=True))

    def decrypt_credential_object(self, encrypted_value: str) -> DatabaseCredentials:
        """Decrypt and deserialize a credential object produced by encrypt_credential_object."""
        plaintext = self.decrypt(encrypted_value)
        try:
            payload = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise CryptoError("Decrypted credentials are not valid JSON.") from e
        if not isinstance(payload, dict):
            raise CryptoError("Decrypted credentials are not an object.")

        missing = [f for f in REQUIRED_CREDENTIAL_FIELDS if not payload.get(f)]
        if missing:
            raise InvalidCredentialsError(missing)
        try:
            return DatabaseCredentials.model_validate(payload)
        except ValidationError as e:
            raise CryptoError(f"Decrypted credentials are malformed: {e.error_count()} error(s).") from e
