# storeplex/connections/management_api_handle.py
import logging
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

import httpx

from .errors import TenantConnectionError, MissingTableError
from .handles import AbstractTenantHandle

logger = logging.getLogger(__name__)

# PostgREST / PostgreSQL codes meaning "relation does not exist"
MISSING_TABLE_CODES = {"42P01", "PGRST205"}


def project_ref_from_url(project_url: str) -> str:
    """Extract the project reference (first DNS label) from a hosted project URL."""
    host = urlparse(project_url).hostname or ""
    ref = host.split(".")[0]
    if not ref:
        raise TenantConnectionError("Could not determine the project reference from the project URL.")
    return ref


class ManagementApiTenantHandle(AbstractTenantHandle):
    """
    Tenant handle for hosted projects reached over HTTP.

    Raw SQL goes through the remote management API's query endpoint; row
    reads and updates go through the project's PostgREST interface.
    """

    dialect = "postgresql"

    def __init__(
        self,
        project_url: str,
        service_role_key: str,
        management_api_base_url: str,
        management_token: Optional[str] = None,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project_url = project_url.rstrip("/")
        self.project_ref = project_ref_from_url(project_url)
        self._service_role_key = service_role_key
        self._management_base_url = management_api_base_url.rstrip("/")
        self._management_token = management_token or service_role_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise TenantConnectionError("Management API tenant handle is not connected.")
        return self._client

    def _rest_headers(self) -> Dict[str, str]:
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _error_detail(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text[:500]}
        return body if isinstance(body, dict) else {"message": str(body)[:500]}

    def _raise_for_rest_error(self, response: httpx.Response, table: str) -> None:
        if response.status_code < 400:
            return
        detail = self._error_detail(response)
        code = str(detail.get("code", ""))
        message = str(detail.get("message", ""))
        # A bare 404 without a PostgREST code means the project itself was not found
        if code in MISSING_TABLE_CODES:
            raise MissingTableError(table, message)
        raise TenantConnectionError(
            f"PostgREST request on '{table}' failed with HTTP {response.status_code}: {message or code}"
        )

    @staticmethod
    def _rows(response: httpx.Response, table: str) -> List[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError as e:
            raise TenantConnectionError(
                f"PostgREST response for '{table}' was not JSON (HTTP {response.status_code})."
            ) from e
        if not isinstance(body, list):
            raise TenantConnectionError(f"PostgREST response for '{table}' was not a row list.")
        return body

    @staticmethod
    def _filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        return {key: f"eq.{value}" for key, value in (filters or {}).items()}

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)
        logger.info(f"Opened management API client for project '{self.project_ref}'.")

    async def execute(self, statement: str) -> None:
        client = self._require_client()
        url = f"{self._management_base_url}/v1/projects/{self.project_ref}/database/query"
        try:
            response = await client.post(
                url,
                json={"query": statement},
                headers={"Authorization": f"Bearer {self._management_token}"},
            )
        except httpx.HTTPError as e:
            raise TenantConnectionError(f"Management API request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            detail = self._error_detail(response)
            message = str(detail.get("message", "")) or response.reason_phrase
            if str(detail.get("code", "")) in MISSING_TABLE_CODES:
                raise MissingTableError("unknown", message)
            raise TenantConnectionError(
                f"Management API returned HTTP {response.status_code}: {message}"
            )

    async def fetch_rows(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        client = self._require_client()
        params = {"select": "*", **self._filter_params(filters)}
        if limit is not None:
            params["limit"] = str(int(limit))
        try:
            response = await client.get(
                f"{self.project_url}/rest/v1/{table}", params=params, headers=self._rest_headers()
            )
        except httpx.HTTPError as e:
            raise TenantConnectionError(f"PostgREST request failed: {type(e).__name__}") from e
        self._raise_for_rest_error(response, table)
        return self._rows(response, table)

    async def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        if not values:
            return await self.fetch_rows(table, filters)
        client = self._require_client()
        headers = {**self._rest_headers(), "Prefer": "return=representation"}
        try:
            response = await client.patch(
                f"{self.project_url}/rest/v1/{table}",
                params=self._filter_params(filters),
                json=values,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TenantConnectionError(f"PostgREST request failed: {type(e).__name__}") from e
        self._raise_for_rest_error(response, table)
        return self._rows(response, table)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"Closed management API client for project '{self.project_ref}'.")
