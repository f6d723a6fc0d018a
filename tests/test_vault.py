# tests/test_vault.py
import base64

import pytest

from storeplex.vault import CredentialVault, CryptoError, DatabaseCredentials, InvalidCredentialsError
from storeplex.vault.crypto import NONCE_LENGTH_BYTES, TAG_LENGTH_BYTES, generate_vault_key


def _credentials(**overrides):
    values = {
        "projectUrl": "https://abcd1234.supabase.co",
        "serviceRoleKey": "service-role-secret",
        "anonKey": "anon-secret",
    }
    values.update(overrides)
    return DatabaseCredentials(**values)


def test_encrypt_decrypt_round_trip(vault):
    blob = vault.encrypt("hello tenant")
    assert vault.decrypt(blob) == "hello tenant"


def test_blob_framing_is_three_base64_segments(vault):
    nonce, tag, ciphertext = vault.encrypt("payload").split(":")
    assert len(base64.b64decode(nonce)) == NONCE_LENGTH_BYTES
    assert len(base64.b64decode(tag)) == TAG_LENGTH_BYTES
    assert len(base64.b64decode(ciphertext)) == len("payload")


def test_each_encryption_uses_a_fresh_nonce(vault):
    first, second = vault.encrypt("same"), vault.encrypt("same")
    assert first != second
    assert first.split(":")[0] != second.split(":")[0]


def _flip_bit(segment: str, byte_index: int, bit: int) -> str:
    raw = bytearray(base64.b64decode(segment))
    raw[byte_index] ^= 1 << bit
    return base64.b64encode(bytes(raw)).decode("ascii")


@pytest.mark.parametrize("byte_index, bit", [(0, 0), (2, 3), (5, 7), (-1, 6)])
def test_flipped_ciphertext_bit_is_rejected(vault, byte_index, bit):
    nonce, tag, ciphertext = vault.encrypt("secret").split(":")
    tampered = ":".join([nonce, tag, _flip_bit(ciphertext, byte_index, bit)])
    with pytest.raises(CryptoError):
        vault.decrypt(tampered)


@pytest.mark.parametrize("byte_index, bit", [(0, 0), (7, 4), (15, 7)])
def test_flipped_tag_bit_is_rejected(vault, byte_index, bit):
    nonce, tag, ciphertext = vault.encrypt("secret").split(":")
    tampered = ":".join([nonce, _flip_bit(tag, byte_index, bit), ciphertext])
    with pytest.raises(CryptoError):
        vault.decrypt(tampered)


def test_value_from_another_key_is_rejected(vault):
    other = CredentialVault(generate_vault_key())
    with pytest.raises(CryptoError):
        vault.decrypt(other.encrypt("secret"))


@pytest.mark.parametrize("blob", ["", "only-one-segment", "a:b", "a:b:c:d", "!!!:???:###"])
def test_malformed_blobs_are_rejected(vault, blob):
    with pytest.raises(CryptoError):
        vault.decrypt(blob)


def test_truncated_tag_is_rejected(vault):
    nonce, tag, ciphertext = vault.encrypt("secret").split(":")
    short_tag = base64.b64encode(base64.b64decode(tag)[:8]).decode("ascii")
    with pytest.raises(CryptoError):
        vault.decrypt(":".join([nonce, short_tag, ciphertext]))


@pytest.mark.parametrize("key", [None, "", "not base64!", base64.b64encode(b"short").decode("ascii")])
def test_missing_or_malformed_key_fails_construction(key):
    with pytest.raises(CryptoError):
        CredentialVault(key)


def test_credential_object_round_trip(vault):
    credentials = _credentials(connectionString="postgresql://u:p@db.example.com:5432/postgres")
    blob = vault.encrypt_credential_object(credentials)
    assert "service-role-secret" not in blob
    restored = vault.decrypt_credential_object(blob)
    assert restored == credentials


def test_credential_object_requires_mandatory_fields(vault):
    with pytest.raises(InvalidCredentialsError) as exc_info:
        vault.encrypt_credential_object({"projectUrl": "https://abcd1234.supabase.co"})
    assert exc_info.value.missing_fields == ["serviceRoleKey"]


def test_credentials_mask_every_secret():
    credentials = _credentials()
    message = "auth failed for service-role-secret and anon-secret at https://abcd1234.supabase.co"
    masked = credentials.mask(message)
    assert "service-role-secret" not in masked
    assert "anon-secret" not in masked
    assert "https://abcd1234.supabase.co" in masked


def test_credentials_repr_hides_secrets():
    assert "service-role-secret" not in repr(_credentials())
