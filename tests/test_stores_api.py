# tests/test_stores_api.py
import pytest

TEST_ADMIN_API_KEY = "test-admin-key"

ADMIN_HEADERS = {"X-Admin-API-Key": TEST_ADMIN_API_KEY}


async def _create_store(client, headers, name="Shop"):
    response = await client.post("/stores", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _sqlite_connect_body(database_path, slug="shop"):
    return {
        "projectUrl": f"sqlite:///{database_path}",
        "serviceRoleKey": "super-secret-service-role-key",
        "databaseType": "sqlite",
        "storeSlug": slug,
    }


async def test_store_lifecycle_with_sqlite_tenant(client, account_headers, tenant_dir):
    store = await _create_store(client, account_headers)
    assert store["status"] == "pending_database"
    assert store["is_active"] is False
    store_id = store["id"]

    response = await client.post(
        f"/stores/{store_id}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "shop.db"),
        headers=account_headers,
    )
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["success"] is True
    assert result["hostname"] == "shop.storeplex.test"
    assert result["store"]["status"] == "active"
    assert result["provisioning"]["already_provisioned"] is False
    assert "super-secret-service-role-key" not in response.text

    response = await client.get(f"/stores/{store_id}", headers=account_headers)
    assert response.status_code == 200
    details = response.json()
    assert details["store"]["status"] == "active"
    assert details["hostname"] == "shop.storeplex.test"
    assert details["slug"] == "shop"
    assert details["connection"]["status"] == "connected"
    assert details["connection"]["host"] == "localhost"
    assert details["connection"]["database_type"] == "sqlite"
    assert details["credits"] == {"balance": 0.0, "reserved": 0.0, "available": 0.0}
    assert details["tenant_data"]["name"] == "Shop"
    assert details["tenant_data"]["contact_email"] == "owner@example.com"

    response = await client.get("/storefront/context", headers={"Host": "Shop.storeplex.test:8080"})
    assert response.status_code == 200
    assert response.json()["store_id"] == store_id

    response = await client.post(
        f"/stores/{store_id}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "shop.db"),
        headers=account_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ALREADY_CONNECTED"

    response = await client.patch(
        f"/stores/{store_id}", json={"description": "Hand-made goods"}, headers=account_headers
    )
    assert response.status_code == 200, response.text
    assert response.json()["description"] == "Hand-made goods"

    response = await client.get("/stores", headers=account_headers)
    listing = response.json()
    assert listing["total"] == 1
    assert listing["stores"][0]["hostname"] == "shop.storeplex.test"

    response = await client.delete(f"/stores/{store_id}", headers=account_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "suspended"

    response = await client.get("/storefront/context", headers={"Host": "shop.storeplex.test"})
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "STORE_NOT_RESOLVED"

    response = await client.patch(f"/stores/{store_id}", json={"description": "x"}, headers=account_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "STORE_NOT_ACTIVE"


async def test_unreachable_tenant_leaves_store_pending(client, account_headers, tmp_path):
    store = await _create_store(client, account_headers)

    response = await client.post(
        f"/stores/{store['id']}/connect-database",
        json=_sqlite_connect_body(tmp_path / "missing" / "shop.db"),
        headers=account_headers,
    )
    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "CONNECTION_FAILED"

    details = (await client.get(f"/stores/{store['id']}", headers=account_headers)).json()
    assert details["store"]["status"] == "pending_database"
    assert details["connection"]["status"] == "failed"
    assert details["hostname"] is None


async def test_retry_after_failed_connect_succeeds(client, account_headers, tmp_path, tenant_dir):
    store = await _create_store(client, account_headers)
    await client.post(
        f"/stores/{store['id']}/connect-database",
        json=_sqlite_connect_body(tmp_path / "missing" / "shop.db"),
        headers=account_headers,
    )

    response = await client.post(
        f"/stores/{store['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "shop.db"),
        headers=account_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["store"]["status"] == "active"


async def test_missing_service_role_key_is_rejected(client, account_headers, tenant_dir):
    store = await _create_store(client, account_headers)
    body = _sqlite_connect_body(tenant_dir / "shop.db")
    del body["serviceRoleKey"]

    response = await client.post(f"/stores/{store['id']}/connect-database", json=body, headers=account_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"
    assert "serviceRoleKey" in response.json()["detail"]["error"]


async def test_slug_of_another_store_is_rejected(client, account_headers, tenant_dir):
    first = await _create_store(client, account_headers, "First")
    second = await _create_store(client, account_headers, "Second")
    response = await client.post(
        f"/stores/{first['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "first.db", slug="taken"),
        headers=account_headers,
    )
    assert response.status_code == 200, response.text

    response = await client.post(
        f"/stores/{second['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "second.db", slug="taken"),
        headers=account_headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SLUG_TAKEN"


async def test_hostname_claimed_during_provisioning_is_reported_as_taken(
    app, client, account_headers, tenant_dir, monkeypatch
):
    first = await _create_store(client, account_headers, "First")
    second = await _create_store(client, account_headers, "Second")
    response = await client.post(
        f"/stores/{first['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "first.db", slug="taken"),
        headers=account_headers,
    )
    assert response.status_code == 200, response.text

    # Both lookups miss, as they would for a connect racing the first one
    async def no_mapping(hostname):
        return None

    monkeypatch.setattr(app.state.platform.domain_store, "get_mapping", no_mapping)
    response = await client.post(
        f"/stores/{second['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "second.db", slug="taken"),
        headers=account_headers,
    )
    assert response.status_code == 409, response.text
    assert response.json()["detail"]["code"] == "SLUG_TAKEN"

    details = (await client.get(f"/stores/{second['id']}", headers=account_headers)).json()
    assert details["store"]["status"] == "pending_database"


async def test_store_limit_ignores_suspended_stores(app, client, account_headers):
    app.state.platform.store_service.max_stores_per_account = 1
    store = await _create_store(client, account_headers)

    response = await client.post("/stores", json={"name": "Another"}, headers=account_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "STORE_LIMIT_REACHED"

    await client.delete(f"/stores/{store['id']}", headers=account_headers)
    response = await client.post("/stores", json={"name": "Another"}, headers=account_headers)
    assert response.status_code == 201


@pytest.mark.parametrize("headers, status_code", [
    ({}, 401),
    ({"X-Admin-API-Key": "wrong"}, 403),
    ({"X-Admin-API-Key": TEST_ADMIN_API_KEY}, 401),
])
async def test_store_routes_require_key_and_account(client, headers, status_code):
    response = await client.get("/stores", headers=headers)
    assert response.status_code == status_code


async def test_other_accounts_cannot_see_a_store(client, account_headers):
    store = await _create_store(client, account_headers)
    intruder = {**account_headers, "X-Account-Id": "acct-2"}

    for method, path in [
        ("GET", f"/stores/{store['id']}"),
        ("DELETE", f"/stores/{store['id']}"),
        ("GET", f"/stores/{store['id']}/credits"),
    ]:
        response = await client.request(method, path, headers=intruder)
        assert response.status_code == 404, path
        assert response.json()["detail"]["code"] == "STORE_NOT_FOUND"

    assert (await client.get("/stores", headers=intruder)).json()["total"] == 0


async def test_credit_operations(client, account_headers):
    store = await _create_store(client, account_headers)
    store_id = store["id"]
    admin = f"/admin/stores/{store_id}/credits"

    response = await client.post(f"{admin}/add", json={"amount": "25.00", "payment_provider": "stripe"},
                                 headers=ADMIN_HEADERS)
    assert response.status_code == 200, response.text
    assert response.json()["balance"] == 25.0

    response = await client.post(f"{admin}/reserve", json={"amount": "10.00"}, headers=ADMIN_HEADERS)
    assert response.json()["available"] == 15.0

    response = await client.post(f"{admin}/deduct", json={"amount": "20.00"}, headers=ADMIN_HEADERS)
    assert response.status_code == 402
    detail = response.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_BALANCE"
    assert detail["requested"] == 20.0
    assert detail["available"] == 15.0

    response = await client.post(f"{admin}/release", json={"amount": "10.00"}, headers=ADMIN_HEADERS)
    assert response.json()["reserved"] == 0.0

    response = await client.post(f"{admin}/deduct", json={"amount": "5.50", "description": "usage"},
                                 headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["balance"] == 19.5
    assert response.json()["lifetime_spent"] == 5.5

    response = await client.get(f"/stores/{store_id}/credits", headers=account_headers)
    assert response.json()["available"] == 19.5

    response = await client.get(f"/stores/{store_id}/credits/transactions", headers=account_headers)
    transactions = response.json()
    assert len(transactions) == 2
    assert {t["transaction_type"] for t in transactions} == {"purchase", "adjustment"}

    response = await client.get(f"{admin}/reconcile", headers=ADMIN_HEADERS)
    assert response.json()["consistent"] is True


async def test_credit_mutation_for_unknown_store(client):
    response = await client.post("/admin/stores/nope/credits/add", json={"amount": "1.00"}, headers=ADMIN_HEADERS)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "BALANCE_NOT_FOUND"


async def test_custom_domain_mapping(client, account_headers, tenant_dir):
    store = await _create_store(client, account_headers)
    await client.post(
        f"/stores/{store['id']}/connect-database",
        json=_sqlite_connect_body(tenant_dir / "shop.db"),
        headers=account_headers,
    )
    body = {"store_id": store["id"], "hostname": "WWW.Example.com", "verification_status": "verified"}

    response = await client.post("/admin/domains", json=body, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    assert response.json()["hostname"] == "www.example.com"

    response = await client.post("/admin/domains", json=body, headers=ADMIN_HEADERS)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DOMAIN_CONFLICT"

    response = await client.get("/storefront/context", headers={"Host": "www.example.com"})
    assert response.status_code == 200
    assert response.json()["is_custom_domain"] is True

    mappings = (await client.get(f"/admin/domains/{store['id']}", headers=ADMIN_HEADERS)).json()
    assert sorted(m["hostname"] for m in mappings) == ["shop.storeplex.test", "www.example.com"]


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["master_db"] == "ok"
