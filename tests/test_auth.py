from __future__ import annotations

import uuid

from conftest import register_and_login


async def test_first_user_of_a_company_becomes_admin(client, tenant_id):
    headers = {"X-Tenant-ID": str(tenant_id)}
    first = await client.post(
        "/api/register",
        json={"username": "maria", "email": "maria@example.com", "password": "secret123"},
        headers=headers,
    )
    second = await client.post(
        "/api/register",
        json={"username": "pablo", "email": "pablo@example.com", "password": "secret123"},
        headers=headers,
    )
    assert first.status_code == 201
    assert first.json()["roles"] == ["admin"]
    assert second.status_code == 201
    assert second.json()["roles"] == []


async def test_register_rejects_unknown_company_and_duplicates(client, tenant_id):
    payload = {"username": "maria", "email": "maria@example.com", "password": "secret123"}
    res = await client.post("/api/register", json=payload, headers={"X-Tenant-ID": str(uuid.uuid4())})
    assert res.status_code == 400

    headers = {"X-Tenant-ID": str(tenant_id)}
    assert (await client.post("/api/register", json=payload, headers=headers)).status_code == 201
    dup = await client.post("/api/register", json=payload, headers=headers)
    assert dup.status_code == 400
    assert dup.json()["message"] == "Username already taken"


async def test_tenant_header_is_required(client):
    res = await client.post("/api/login", json={"username": "x", "password": "y"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["type"] == "http_error"
    assert "X-Tenant-ID" in body["message"]


async def test_login_sets_session_cookie(client, tenant_id, admin_headers):
    headers = {"X-Tenant-ID": str(tenant_id)}
    res = await client.post("/api/login", json={"username": "admin", "password": "secret123"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["token_type"] == "bearer"
    assert "shield_session" in res.cookies

    # No Authorization header: the cookie authenticates the request
    me = await client.get("/api/user", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "admin"
    assert me.json()["last_login_at"] is not None


async def test_login_by_email(client, tenant_id, admin_headers):
    res = await client.post(
        "/api/login",
        json={"username": "admin@example.com", "password": "secret123"},
        headers={"X-Tenant-ID": str(tenant_id)},
    )
    assert res.status_code == 200
    assert res.json()["user"]["username"] == "admin"


async def test_login_with_bad_password(client, tenant_id, admin_headers):
    res = await client.post(
        "/api/login", json={"username": "admin", "password": "wrong-pass"}, headers={"X-Tenant-ID": str(tenant_id)}
    )
    assert res.status_code == 401
    assert res.headers["WWW-Authenticate"] == "Bearer"
    assert res.json()["message"] == "Invalid credentials"


async def test_unauthenticated_request(client, tenant_id):
    res = await client.get("/api/user", headers={"X-Tenant-ID": str(tenant_id)})
    assert res.status_code == 401


async def test_token_is_bound_to_its_company(client, admin_headers, other_tenant_id):
    headers = {**admin_headers, "X-Tenant-ID": str(other_tenant_id)}
    res = await client.get("/api/user", headers=headers)
    assert res.status_code == 403


async def test_refresh_and_logout(client, tenant_id, admin_headers):
    headers = {"X-Tenant-ID": str(tenant_id)}
    login = await client.post("/api/login", json={"username": "admin", "password": "secret123"}, headers=headers)
    refresh = login.json()["refresh_token"]

    res = await client.post("/api/token/refresh", json={"refresh_token": refresh}, headers=headers)
    assert res.status_code == 200
    assert res.json()["access_token"]

    # An access token is not accepted as refresh token
    bad = await client.post(
        "/api/token/refresh", json={"refresh_token": login.json()["access_token"]}, headers=headers
    )
    assert bad.status_code == 401

    out = await client.post("/api/logout")
    assert out.status_code == 200
    assert "shield_session" not in client.cookies


async def test_staff_cannot_manage_users(client, admin_headers, staff_headers):
    assert (await client.get("/api/admin/users", headers=staff_headers)).status_code == 403

    res = await client.get("/api/admin/users", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["total"] == 2
    assert res.json()["windowed"] is False


async def test_admin_creates_user_with_roles(client, tenant_id, admin_headers):
    res = await client.post(
        "/api/admin/users",
        json={
            "username": "almacen",
            "email": "almacen@example.com",
            "password": "secret123",
            "roles": ["inventory:manage"],
        },
        headers=admin_headers,
    )
    assert res.status_code == 201
    assert res.json()["roles"] == ["inventory:manage"]

    login = await client.post(
        "/api/login", json={"username": "almacen", "password": "secret123"}, headers={"X-Tenant-ID": str(tenant_id)}
    )
    headers = {"Authorization": f"Bearer {login.json()['access_token']}", "X-Tenant-ID": str(tenant_id)}
    created = await client.post(
        "/api/inventory/products", json={"sku": "HAR-1", "name": "Harina"}, headers=headers
    )
    assert created.status_code == 201

    plain = await register_and_login(client, tenant_id, "otro")
    denied = await client.post("/api/inventory/products", json={"sku": "HAR-2", "name": "Harina"}, headers=plain)
    assert denied.status_code == 403


async def test_users_are_isolated_per_company(client, admin_headers, other_tenant_id):
    other = await register_and_login(client, other_tenant_id, "admin")
    res = await client.get("/api/admin/users", headers=other)
    assert res.status_code == 200
    assert [u["username"] for u in res.json()["items"]] == ["admin"]
    assert res.json()["items"][0]["tenant_id"] == str(other_tenant_id)


async def test_status_endpoint(client):
    res = await client.get("/api/status")
    assert res.status_code == 200
    assert res.json()["message"] == "ok"
    assert res.headers["X-Correlation-ID"]
