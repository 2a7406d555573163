from __future__ import annotations

import json
import logging

import pytest

from shieldcuisine_api.core.logging import LoggingContextFilter, correlation_id_var
from shieldcuisine_api.core.settings import AppSettings
from shieldcuisine_api.db import run_migrations, seed
from shieldcuisine_api.db.config import Settings
from shieldcuisine_api.schemas.common import page_of


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgres://u:p@db:5432/shield", "postgresql+asyncpg://u:p@db:5432/shield"),
        ("postgresql://u:p@db/shield", "postgresql+asyncpg://u:p@db/shield"),
        ("postgresql+psycopg://u:p@db/shield", "postgresql+asyncpg://u:p@db/shield"),
        ("sqlite+aiosqlite:///./shield.db", "sqlite+aiosqlite:///./shield.db"),
    ],
)
def test_async_database_url(url, expected):
    assert Settings(DATABASE_URL=url).async_database_url == expected


def test_database_url_from_parts():
    settings = Settings(
        DATABASE_URL=None, POSTGRES_USER="shield", POSTGRES_PASSWORD="pw", POSTGRES_DB="shield", POSTGRES_HOST="db"
    )
    assert settings.database_url == "postgresql://shield:pw@db:5432/shield"


def test_database_url_missing(monkeypatch):
    for name in ("DATABASE_URL", "POSTGRES_URL", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ValueError):
        Settings(_env_file=None).database_url


def test_cors_origins_accept_comma_separated_values():
    settings = AppSettings(CORS_ORIGINS="https://a.shieldcuisine.com, https://b.shieldcuisine.com")
    assert settings.CORS_ORIGINS == ["https://a.shieldcuisine.com", "https://b.shieldcuisine.com"]
    assert AppSettings(CORS_ORIGINS="").CORS_ORIGINS == ["*"]


def test_page_envelope_flags_large_result_sets():
    assert page_of([], 100, 50, 0)["windowed"] is False
    assert page_of([], 101, 50, 0)["windowed"] is True


def test_log_records_carry_request_context():
    token = correlation_id_var.set("abc-123")
    try:
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        LoggingContextFilter().filter(record)
    finally:
        correlation_id_var.reset(token)
    assert record.correlation_id == "abc-123"
    assert record.tenant_id == "-"


async def test_validation_errors_use_the_error_envelope(client, tenant_id):
    res = await client.post(
        "/api/register",
        json={"username": "ab", "email": "not-an-email", "password": "123"},
        headers={"X-Tenant-ID": str(tenant_id), "X-Correlation-ID": "req-42"},
    )
    assert res.status_code == 422
    body = res.json()
    assert body["status"] == 422
    assert body["error"]["type"] == "validation_error"
    assert body["correlation_id"] == "req-42"
    assert body["tenant_id"] == str(tenant_id)
    assert body["path"] == "/api/register"
    assert {tuple(e["loc"])[-1] for e in body["error"]["details"]} == {"username", "email", "password"}
    assert res.headers["X-Correlation-ID"] == "req-42"


async def test_seed_is_idempotent(monkeypatch, client, session_maker):
    monkeypatch.setattr(seed, "get_session_maker", lambda: session_maker)
    await seed.seed_all()
    await seed.seed_all()

    async with session_maker() as session:
        tenant = await seed.TenantRepository(session).get_tenant_by_slug("shield-demo")
    assert tenant is not None

    headers = {"X-Tenant-ID": str(tenant.id)}
    login = await client.post("/api/login", json={"username": "admin", "password": "change-me-now"}, headers=headers)
    assert login.status_code == 200
    assert "admin" in login.json()["user"]["roles"]

    headers["Authorization"] = f"Bearer {login.json()['access_token']}"
    products = await client.get("/api/inventory/products", headers=headers)
    assert [p["sku"] for p in products.json()["items"]] == ["ACE-OLI-5L"]
    templates = await client.get("/api/appcc/templates", headers=headers)
    assert templates.json()["total"] == 1
    roles = await client.get("/api/admin/roles", headers=headers)
    assert "cms:manage" in {r["name"] for r in roles.json()["items"]}


def test_openapi_document(tmp_path):
    from shieldcuisine_api.api.generate_openapi import main

    path = main(str(tmp_path / "interfaces"))
    document = json.loads(path.read_text(encoding="utf-8"))
    assert "/api/appcc/records/{record_id}/complete" in document["paths"]
    assert "/api/cms/public/{tenant_id}/pages/{slug}" in document["paths"]
    assert document["x-websocket-endpoints"][0]["path"] == "/ws/notifications"


def test_migration_runner_dispatch(monkeypatch):
    calls = []
    monkeypatch.setitem(
        run_migrations.COMMANDS, "upgrade", (lambda cfg, *args: calls.append((cfg, args)), ["head"])
    )
    run_migrations.main(["upgrade"])
    cfg, args = calls[0]
    assert args == ("head",)
    assert cfg.get_main_option("script_location").endswith("migrations")

    with pytest.raises(SystemExit):
        run_migrations.main(["stamp"])
