"""Shared pytest fixtures for the API test suite.

Every test gets a fresh in-memory SQLite database created from the ORM metadata,
an httpx client talking to the ASGI app, and fake AI providers that never leave
the process.

Fixture overview
----------------
session_maker: async session factory bound to the per-test database
ai_registry: ProviderRegistry with recording fake OpenAI/Perplexity clients
client: httpx.AsyncClient wired to the app with DB and AI overrides
tenant_id: a company with no users yet
other_tenant_id: a second company, used for isolation checks
admin_headers: auth headers of the first (admin) user of tenant_id
staff_headers: auth headers of a second, role-less user of tenant_id
"""

from __future__ import annotations

import os
import tempfile
from typing import Any, Dict, List

# Settings are read at import time of the app module
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="shield-uploads-")
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shieldcuisine_api.api.main import app
from shieldcuisine_api.db import models  # noqa: F401  (registers tables)
from shieldcuisine_api.db.base import Base
from shieldcuisine_api.db.session import get_async_session
from shieldcuisine_api.repositories.security import TenantRepository
from shieldcuisine_api.services.ai import (
    OpenAIProvider,
    PerplexityProvider,
    ProviderRegistry,
    get_ai_providers,
)

BASE_URL = "http://api.shieldcuisine.test"


# Fake AI providers


class _Recording:
    """Replaces the HTTP call with a canned chat-completions answer."""

    content = "Contenido generado"

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.payloads.append(payload)
        return {
            "model": self.model,
            "choices": [{"message": {"role": "assistant", "content": self.content}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }


class FakeOpenAI(_Recording, OpenAIProvider):
    def __init__(self, api_key="sk-test") -> None:
        super().__init__(api_key, "gpt-test", "https://openai.invalid/v1")
        self.payloads: List[Dict[str, Any]] = []


class FakePerplexity(_Recording, PerplexityProvider):
    def __init__(self, api_key=None) -> None:
        super().__init__(api_key, "sonar-test", "https://perplexity.invalid")
        self.payloads: List[Dict[str, Any]] = []


# Database


@pytest.fixture
async def engine():
    """Fresh in-memory database shared by every session of one test."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


# App and client


@pytest.fixture
def ai_registry() -> ProviderRegistry:
    """OpenAI is configured, Perplexity has no API key."""
    return ProviderRegistry([FakeOpenAI(), FakePerplexity()], default="openai")


@pytest.fixture
async def client(session_maker, ai_registry):
    async def _session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[get_ai_providers] = lambda: ai_registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac
    app.dependency_overrides.clear()


# Tenants and users


async def _create_tenant(session_maker, name: str, slug: str):
    async with session_maker() as session:
        tenant = await TenantRepository(session).create_tenant(name, slug)
        return tenant.id


@pytest.fixture
async def tenant_id(session_maker):
    return await _create_tenant(session_maker, "Restaurante Sol", "sol")


@pytest.fixture
async def other_tenant_id(session_maker):
    return await _create_tenant(session_maker, "Bar Luna", "luna")


async def register_and_login(client: httpx.AsyncClient, tenant, username: str, password: str = "secret123") -> dict:
    """Register a user in tenant and return bearer + tenant headers for it."""
    tenant_header = {"X-Tenant-ID": str(tenant)}
    res = await client.post(
        "/api/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
        headers=tenant_header,
    )
    assert res.status_code == 201, res.text
    res = await client.post("/api/login", json={"username": username, "password": password}, headers=tenant_header)
    assert res.status_code == 200, res.text
    # Keep auth explicit per request; the cookie is covered by the auth tests
    client.cookies.clear()
    return {"Authorization": f"Bearer {res.json()['access_token']}", **tenant_header}


@pytest.fixture
async def admin_headers(client, tenant_id) -> dict:
    return await register_and_login(client, tenant_id, "admin")


@pytest.fixture
async def staff_headers(client, tenant_id, admin_headers) -> dict:
    return await register_and_login(client, tenant_id, "cocinero")


@pytest.fixture
async def location_id(client, admin_headers) -> str:
    res = await client.post("/api/locations", json={"name": "Cocina central"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    return res.json()["id"]
