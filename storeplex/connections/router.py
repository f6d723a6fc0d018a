# storeplex/connections/router.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from .errors import NoCredentialError, TenantConnectionError
from .factory import HandleFactory, display_host
from .handles import AbstractTenantHandle
from ..stores.models import ConnectionInfo, ConnectionStatus, DatabaseType, StoreDatabaseCredential
from ..provisioning.schema import ROOT_TABLE
from ..stores.storage_interfaces import AbstractStoreDatabaseStore
from ..vault.crypto import CredentialVault
from ..vault.models import DatabaseCredentials

logger = logging.getLogger(__name__)


class ConnectionRouter:
    """
    Routes a store id to a live handle on that store's tenant database.

    Handles are cached per store id for the lifetime of the router so that
    repeated requests reuse the same connection or pool. Each router owns its
    own cache; nothing is shared at module level.
    """

    def __init__(
        self,
        credential_store: AbstractStoreDatabaseStore,
        vault: CredentialVault,
        handle_factory: HandleFactory,
        connection_test_timeout_seconds: float = 10.0,
    ):
        self.credential_store = credential_store
        self.vault = vault
        self.handle_factory = handle_factory
        self.connection_test_timeout_seconds = connection_test_timeout_seconds
        self._handles: Dict[str, AbstractTenantHandle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def is_cached(self, store_id: str) -> bool:
        return store_id in self._handles

    async def _load_credentials(self, store_id: str) -> tuple:
        credential = await self.credential_store.get_credentials(store_id)
        if credential is None:
            raise NoCredentialError(store_id)
        # CryptoError propagates: a corrupt blob is never treated as "no credentials"
        return credential, self.vault.decrypt_credential_object(credential.encrypted_credentials)

    async def store_credentials(
        self,
        store_id: str,
        database_type: DatabaseType,
        credentials: DatabaseCredentials,
    ) -> StoreDatabaseCredential:
        """
        Encrypt and persist a store's credentials, replacing any previous ones.

        The cached handle for the store is dropped so the next lookup opens a
        connection with the new credentials.

        Raises:
            InvalidCredentialsError: If mandatory credential fields are missing
        """
        encrypted = self.vault.encrypt_credential_object(credentials)
        saved = await self.credential_store.save_credentials(
            store_id, database_type, encrypted, display_host(database_type, credentials)
        )
        await self.invalidate(store_id)
        return saved

    async def get_connection(self, store_id: str) -> AbstractTenantHandle:
        """
        Return the cached handle for a store, opening it on first use.

        Raises:
            NoCredentialError: If the store has no credential row
            CryptoError: If the stored blob cannot be decrypted
            TenantConnectionError: If the handle cannot connect
        """
        handle = self._handles.get(store_id)
        if handle is not None:
            return handle

        lock = self._locks.setdefault(store_id, asyncio.Lock())
        async with lock:
            handle = self._handles.get(store_id)
            if handle is not None:
                return handle

            credential, credentials = await self._load_credentials(store_id)
            handle = self.handle_factory(credential.database_type, credentials)
            try:
                await handle.connect()
            except TenantConnectionError:
                await handle.close()
                logger.warning(f"Could not open tenant connection for store '{store_id}'.")
                raise
            self._handles[store_id] = handle
            logger.info(f"Cached new {handle.dialect} tenant handle for store '{store_id}'.")
            return handle

    async def get_connection_info(self, store_id: str) -> Optional[ConnectionInfo]:
        """Non-sensitive connection details for a store, or None without credentials."""
        credential = await self.credential_store.get_credentials(store_id)
        if credential is None:
            return None
        return ConnectionInfo(
            status=credential.connection_status,
            host=credential.host,
            database_type=credential.database_type,
            last_tested=credential.last_tested_at,
        )

    async def _probe(self, handle: AbstractTenantHandle) -> bool:
        await handle.connect()
        return await handle.probe(ROOT_TABLE)

    async def test_connection(self, store_id: str) -> bool:
        """
        Open a throwaway handle and run a cheap read against the root table.

        A reachable database without the root table counts as connected; it
        simply has not been provisioned yet. The outcome is recorded on the
        credential row.

        Raises:
            NoCredentialError: If the store has no credential row
            CryptoError: If the stored blob cannot be decrypted
        """
        credential, credentials = await self._load_credentials(store_id)
        try:
            handle = self.handle_factory(credential.database_type, credentials)
        except TenantConnectionError as e:
            logger.warning(f"Connection test for store '{store_id}' rejected the credentials: {e}")
            await self.credential_store.update_connection_status(
                store_id, ConnectionStatus.FAILED, datetime.now(timezone.utc)
            )
            return False
        try:
            provisioned = await asyncio.wait_for(
                self._probe(handle), timeout=self.connection_test_timeout_seconds
            )
            status = ConnectionStatus.CONNECTED
            logger.info(
                f"Connection test for store '{store_id}' succeeded "
                f"({'provisioned' if provisioned else 'empty database'})."
            )
        except asyncio.TimeoutError:
            status = ConnectionStatus.TIMEOUT
            logger.warning(
                f"Connection test for store '{store_id}' timed out after "
                f"{self.connection_test_timeout_seconds}s."
            )
        except TenantConnectionError as e:
            status = ConnectionStatus.FAILED
            logger.warning(f"Connection test for store '{store_id}' failed: {e}")
        finally:
            await handle.close()

        await self.credential_store.update_connection_status(
            store_id, status, datetime.now(timezone.utc)
        )
        return status == ConnectionStatus.CONNECTED

    async def invalidate(self, store_id: str) -> None:
        """Drop and close the cached handle of one store, if any."""
        handle = self._handles.pop(store_id, None)
        self._locks.pop(store_id, None)
        if handle is not None:
            await handle.close()
            logger.info(f"Invalidated cached tenant handle for store '{store_id}'.")

    async def clear(self) -> None:
        """Drop and close every cached handle."""
        handles = list(self._handles.items())
        self._handles.clear()
        self._locks.clear()
        for store_id, handle in handles:
            try:
                await handle.close()
            except TenantConnectionError as e:
                logger.warning(f"Error closing tenant handle for store '{store_id}': {e}")
        if handles:
            logger.info(f"Cleared {len(handles)} cached tenant handle(s).")

    async def close_all(self) -> None:
        """Shutdown hook; same as clear()."""
        await self.clear()
