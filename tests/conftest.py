# tests/conftest.py
import base64
import os

# Settings are read at import time; configure them before storeplex is imported
TEST_ADMIN_API_KEY = "test-admin-key"
TEST_VAULT_KEY = base64.b64encode(b"\x07" * 32).decode("ascii")
TEST_PLATFORM_DOMAIN = "storeplex.test"

os.environ["ADMIN_API_KEY"] = TEST_ADMIN_API_KEY
os.environ["STOREPLEX_ENCRYPTION_KEY"] = TEST_VAULT_KEY
os.environ["PLATFORM_DOMAIN"] = TEST_PLATFORM_DOMAIN

import httpx
import pytest

from storeplex.settings import settings
from storeplex.storage.sqlite_base import close_sqlite_db_connection, get_sqlite_db_connection
from storeplex.vault.crypto import CredentialVault


@pytest.fixture
async def master_db(tmp_path, monkeypatch):
    """Fresh master registry database per test."""
    await close_sqlite_db_connection()
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "master.sqlite3"))
    conn = await get_sqlite_db_connection()
    yield conn
    await close_sqlite_db_connection()


@pytest.fixture
def vault():
    return CredentialVault(TEST_VAULT_KEY)


@pytest.fixture
def tenant_dir(tmp_path):
    path = tmp_path / "tenants"
    path.mkdir()
    return path


@pytest.fixture
def account_headers():
    return {
        "X-Admin-API-Key": TEST_ADMIN_API_KEY,
        "X-Account-Id": "acct-1",
        "X-Account-Email": "owner@example.com",
    }


@pytest.fixture
async def app(master_db):
    from storeplex.main import app as fastapi_app

    async with fastapi_app.router.lifespan_context(fastapi_app):
        yield fastapi_app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
