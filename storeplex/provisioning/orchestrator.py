# storeplex/provisioning/orchestrator.py
import asyncio
import logging
from typing import Optional, Sequence

from .models import ProvisioningOptions, ProvisioningResult
from .schema import TENANT_SCHEMA, ROOT_TABLE, TenantSchema, sql_literal
from .seed import SEED_DATA, TENANT_SCOPED_SEED_TABLES, SeedTable, render_backfill_statement
from ..connections.errors import TenantConnectionError
from ..connections.handles import AbstractTenantHandle, quote_identifier

logger = logging.getLogger(__name__)


class ProvisioningOrchestrator:
    """
    Brings an empty tenant database up to a usable state.

    Steps run in order and non-fatal failures are collected into the
    ProvisioningResult instead of aborting the run. Only the schema step is a
    gate: if the tables cannot be created the run stops and reports failure.
    Every statement is bounded by ``statement_timeout_seconds``.
    """

    def __init__(
        self,
        schema: TenantSchema = TENANT_SCHEMA,
        seed_data: Sequence[SeedTable] = SEED_DATA,
        backfill_tables: Sequence[str] = TENANT_SCOPED_SEED_TABLES,
        statement_timeout_seconds: float = 120.0,
    ):
        self.schema = schema
        self.seed_data = tuple(seed_data)
        self.backfill_tables = tuple(backfill_tables)
        self.statement_timeout_seconds = statement_timeout_seconds

    def _describe(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Statement timed out after {self.statement_timeout_seconds}s"
        return str(error) or type(error).__name__

    async def _run(self, handle: AbstractTenantHandle, statement: str) -> None:
        await asyncio.wait_for(handle.execute(statement), timeout=self.statement_timeout_seconds)

    async def _is_provisioned(self, handle: AbstractTenantHandle) -> bool:
        return await asyncio.wait_for(handle.probe(ROOT_TABLE), timeout=self.statement_timeout_seconds)

    async def provision(
        self,
        handle: AbstractTenantHandle,
        store_id: str,
        options: Optional[ProvisioningOptions] = None,
    ) -> ProvisioningResult:
        """
        Provision the tenant database behind ``handle`` for ``store_id``.

        The handle must already be connected. Returns a result whose
        ``success`` is True when the schema step completed (or the database was
        already provisioned); per-step failures are listed in ``errors``.
        """
        options = options or ProvisioningOptions()
        result = ProvisioningResult(store_id=store_id)
        dialect = handle.dialect
        logger.info(f"Provisioning tenant database for store '{store_id}' ({dialect}, force={options.force}).")

        if not options.force:
            try:
                provisioned = await self._is_provisioned(handle)
            except (TenantConnectionError, asyncio.TimeoutError) as e:
                result.record_error("idempotency_check", self._describe(e))
                logger.error(f"Idempotency check failed for store '{store_id}': {self._describe(e)}")
                return result
            result.record_step("idempotency_check")
            if provisioned:
                logger.info(f"Tenant database for store '{store_id}' is already provisioned; skipping.")
                result.already_provisioned = True
                result.success = True
                return result

        if not await self._apply_schema(handle, dialect, result):
            return result
        await self._apply_foreign_keys(handle, dialect, result)
        await self._apply_seed_data(handle, dialect, result)
        await self._backfill_tenant_scope(handle, dialect, store_id, result)
        await self._create_genesis_rows(handle, dialect, store_id, options, result)

        result.success = True
        logger.info(
            f"Provisioning for store '{store_id}' finished: {len(result.completed_steps)} step(s) completed, "
            f"{len(result.errors)} non-fatal error(s)."
        )
        return result

    async def _apply_schema(self, handle: AbstractTenantHandle, dialect: str, result: ProvisioningResult) -> bool:
        try:
            await self._run(handle, self.schema.render_schema_script(dialect))
        except (TenantConnectionError, asyncio.TimeoutError) as e:
            result.record_error("schema_tables", self._describe(e))
            logger.error(f"Schema application failed for store '{result.store_id}': {self._describe(e)}")
            return False
        result.record_step("schema_tables")
        return True

    async def _apply_foreign_keys(self, handle: AbstractTenantHandle, dialect: str, result: ProvisioningResult) -> None:
        failed = 0
        statements = self.schema.render_foreign_key_statements(dialect)
        for fk, statement in statements:
            try:
                await self._run(handle, statement)
            except (TenantConnectionError, asyncio.TimeoutError) as e:
                failed += 1
                result.record_error(f"foreign_key:{fk.name}", self._describe(e))
                logger.warning(f"Foreign key '{fk.name}' not applied for store '{result.store_id}': {self._describe(e)}")
        # Tables stay usable without every constraint
        result.record_step("foreign_keys")
        logger.info(f"Applied {len(statements) - failed}/{len(statements)} foreign keys for store '{result.store_id}'.")

    async def _apply_seed_data(self, handle: AbstractTenantHandle, dialect: str, result: ProvisioningResult) -> None:
        ok = True
        for seed_table in self.seed_data:
            try:
                await self._run(handle, seed_table.render(dialect))
            except (TenantConnectionError, asyncio.TimeoutError) as e:
                ok = False
                result.record_error(f"seed:{seed_table.table}", self._describe(e))
                logger.warning(f"Seeding '{seed_table.table}' failed for store '{result.store_id}': {self._describe(e)}")
        if ok:
            result.record_step("seed_data")

    async def _backfill_tenant_scope(
        self, handle: AbstractTenantHandle, dialect: str, store_id: str, result: ProvisioningResult
    ) -> None:
        ok = True
        for table in self.backfill_tables:
            try:
                await self._run(handle, render_backfill_statement(table, store_id, dialect))
            except (TenantConnectionError, asyncio.TimeoutError) as e:
                ok = False
                result.record_error(f"tenant_backfill:{table}", self._describe(e))
                logger.warning(f"Backfill of '{table}' failed for store '{store_id}': {self._describe(e)}")
        if ok:
            result.record_step("tenant_backfill")

    async def _create_genesis_rows(
        self,
        handle: AbstractTenantHandle,
        dialect: str,
        store_id: str,
        options: ProvisioningOptions,
        result: ProvisioningResult,
    ) -> None:
        store_row = {
            "id": store_id,
            "name": options.store_name,
            "slug": options.store_slug,
            "currency": options.currency,
            "timezone": options.timezone,
            "contact_email": options.admin.email if options.admin else None,
        }
        try:
            await self._run(handle, self._render_insert("stores", store_row, "id", dialect))
            result.record_step("genesis_store")
        except (TenantConnectionError, asyncio.TimeoutError) as e:
            result.record_error("genesis_store", self._describe(e))
            logger.warning(f"Genesis store row failed for store '{store_id}': {self._describe(e)}")

        if options.admin is None:
            return
        user_row = {
            "store_id": store_id,
            "email": options.admin.email,
            "first_name": options.admin.first_name,
            "last_name": options.admin.last_name,
            "role": "owner",
        }
        try:
            # An existing user with the same email counts as already provisioned
            await self._run(handle, self._render_insert("users", user_row, "email", dialect))
            result.record_step("genesis_admin_user")
        except (TenantConnectionError, asyncio.TimeoutError) as e:
            result.record_error("genesis_admin_user", self._describe(e))
            logger.warning(f"Genesis admin user failed for store '{store_id}': {self._describe(e)}")

    @staticmethod
    def _render_insert(table: str, row: dict, conflict_column: str, dialect: str) -> str:
        row = {k: v for k, v in row.items() if v is not None}
        columns = ", ".join(quote_identifier(k) for k in row)
        values = ", ".join(sql_literal(v, dialect) for v in row.values())
        return (
            f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({values}) "
            f"ON CONFLICT ({quote_identifier(conflict_column)}) DO NOTHING;"
        )
