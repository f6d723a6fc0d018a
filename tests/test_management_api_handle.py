# tests/test_management_api_handle.py
import json

import httpx
import pytest

from storeplex.connections import ManagementApiTenantHandle, MissingTableError, TenantConnectionError
from storeplex.connections.management_api_handle import project_ref_from_url

PROJECT_URL = "https://abcd1234.supabase.co"
MANAGEMENT_URL = "https://api.example.test"


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


async def _handle(recorder, **kwargs) -> ManagementApiTenantHandle:
    handle = ManagementApiTenantHandle(
        PROJECT_URL,
        "service-role-secret",
        MANAGEMENT_URL,
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )
    await handle.connect()
    return handle


def test_project_ref_from_url():
    assert project_ref_from_url("https://abcd1234.supabase.co/") == "abcd1234"
    with pytest.raises(TenantConnectionError):
        project_ref_from_url("not a url")


async def test_execute_posts_sql_to_management_api():
    recorder = Recorder(httpx.Response(201, json=[]))
    handle = await _handle(recorder, management_token="platform-token")
    await handle.execute("CREATE TABLE x (id int);")
    await handle.close()

    [request] = recorder.requests
    assert request.method == "POST"
    assert str(request.url) == f"{MANAGEMENT_URL}/v1/projects/abcd1234/database/query"
    assert request.headers["Authorization"] == "Bearer platform-token"
    assert json.loads(request.content) == {"query": "CREATE TABLE x (id int);"}


async def test_execute_falls_back_to_service_role_key_for_auth():
    recorder = Recorder(httpx.Response(200, json=[]))
    handle = await _handle(recorder)
    await handle.execute("SELECT 1;")
    await handle.close()
    assert recorder.requests[0].headers["Authorization"] == "Bearer service-role-secret"


async def test_execute_error_is_surfaced():
    recorder = Recorder(httpx.Response(400, json={"message": "syntax error at or near \"CRATE\""}))
    handle = await _handle(recorder)
    with pytest.raises(TenantConnectionError) as exc_info:
        await handle.execute("CRATE TABLE x;")
    assert "HTTP 400" in str(exc_info.value)
    await handle.close()


async def test_fetch_rows_uses_rest_interface():
    recorder = Recorder(httpx.Response(200, json=[{"id": "s1", "name": "Shop"}]))
    handle = await _handle(recorder)
    rows = await handle.fetch_rows("stores", {"id": "s1"}, limit=1)
    await handle.close()

    assert rows == [{"id": "s1", "name": "Shop"}]
    [request] = recorder.requests
    assert request.url.path == "/rest/v1/stores"
    assert request.url.params["id"] == "eq.s1"
    assert request.url.params["limit"] == "1"
    assert request.headers["apikey"] == "service-role-secret"


@pytest.mark.parametrize("response", [
    httpx.Response(404, json={"code": "PGRST205", "message": "Could not find the table 'public.stores'"}),
    httpx.Response(400, json={"code": "PGRST205", "message": "Could not find the table 'public.stores'"}),
    httpx.Response(400, json={"code": "42P01", "message": "relation \"stores\" does not exist"}),
])
async def test_missing_table_is_distinguished(response):
    handle = await _handle(Recorder(response))
    with pytest.raises(MissingTableError):
        await handle.fetch_rows("stores", limit=1)
    await handle.close()


async def test_probe_reports_unprovisioned_database():
    missing = httpx.Response(404, json={"code": "42P01", "message": "relation does not exist"})
    handle = await _handle(Recorder(missing))
    assert await handle.probe("stores") is False
    await handle.close()


async def test_probe_propagates_other_failures():
    handle = await _handle(Recorder(httpx.Response(401, json={"message": "Invalid API key"})))
    with pytest.raises(TenantConnectionError) as exc_info:
        await handle.probe("stores")
    assert not isinstance(exc_info.value, MissingTableError)
    await handle.close()


async def test_transport_failure_is_a_connection_error():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    handle = ManagementApiTenantHandle(
        PROJECT_URL, "service-role-secret", MANAGEMENT_URL, transport=httpx.MockTransport(broken)
    )
    await handle.connect()
    with pytest.raises(TenantConnectionError):
        await handle.fetch_rows("stores")
    await handle.close()


async def test_update_rows_returns_representation():
    recorder = Recorder(httpx.Response(200, json=[{"id": "s1", "description": "New"}]))
    handle = await _handle(recorder)
    rows = await handle.update_rows("stores", {"description": "New"}, {"id": "s1"})
    await handle.close()

    assert rows == [{"id": "s1", "description": "New"}]
    [request] = recorder.requests
    assert request.method == "PATCH"
    assert request.headers["Prefer"] == "return=representation"
    assert json.loads(request.content) == {"description": "New"}


async def test_unconnected_handle_refuses_work():
    handle = ManagementApiTenantHandle(PROJECT_URL, "k", MANAGEMENT_URL)
    with pytest.raises(TenantConnectionError):
        await handle.execute("SELECT 1;")


@pytest.mark.parametrize("response", [
    httpx.Response(404, json={"message": "Not found"}),
    httpx.Response(404, text="<html>No such project</html>"),
])
async def test_uncoded_404_is_a_connection_error(response):
    handle = await _handle(Recorder(response))
    with pytest.raises(TenantConnectionError) as exc_info:
        await handle.probe("stores")
    assert not isinstance(exc_info.value, MissingTableError)
    await handle.close()


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>gateway login</html>"),
    httpx.Response(200, json={"unexpected": "object"}),
])
async def test_non_row_body_is_a_connection_error(response):
    handle = await _handle(Recorder(response))
    with pytest.raises(TenantConnectionError):
        await handle.fetch_rows("stores", limit=1)
    await handle.close()


async def test_non_json_update_response_is_a_connection_error():
    handle = await _handle(Recorder(httpx.Response(200, text="ok")))
    with pytest.raises(TenantConnectionError):
        await handle.update_rows("stores", {"description": "New"}, {"id": "s1"})
    await handle.close()
