"""
Database seeding utilities for minimal reference data.

Seeds:
- Demo company (DEFAULT_TENANT_SLUG) with one location
- Admin role and an admin user (SEED_ADMIN_* settings)
- Module roles (appcc:manage, inventory:manage, cms:manage, elearning:manage, ...)
- A daily fridge temperature control template
- A sample supplier and product

Usage:
  python -m shieldcuisine_api.db.run_migrations upgrade head
  python -m shieldcuisine_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.security import get_password_hash
from shieldcuisine_api.core.settings import get_app_settings
from shieldcuisine_api.db.models.appcc import ControlTemplate
from shieldcuisine_api.db.models.inventory import Product, Supplier
from shieldcuisine_api.db.models.tenancy import Location
from shieldcuisine_api.db.session import get_session_maker, tenant_context
from shieldcuisine_api.repositories.appcc import ControlTemplateRepository
from shieldcuisine_api.repositories.inventory import ProductRepository
from shieldcuisine_api.repositories.security import LocationRepository, SecurityRepository, TenantRepository

logger = logging.getLogger(__name__)

ROLES = {
    "admin": "Administrator",
    "users:manage": "Manage users and roles",
    "appcc:manage": "Manage APPCC templates and records",
    "inventory:manage": "Manage warehouse products and movements",
    "cms:manage": "Manage pages and media",
    "elearning:manage": "Manage courses and lessons",
    "reports:view": "Download reports",
}

FRIDGE_TEMPLATE_FIELDS = [
    {"name": "temperature", "label": "Temperatura (°C)", "type": "temperature", "required": True, "min": 0, "max": 5, "unit": "°C"},
    {"name": "door_closed", "label": "Puerta cerrada", "type": "boolean", "required": True},
    {"name": "notes", "label": "Observaciones", "type": "text", "required": False},
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with minimal reference data.

    Idempotent: existing rows (matched by slug, name, username or SKU) are kept.
    """
    async with get_session_maker()() as session:
        tenant_id = await _ensure_base_tenant(session)
        async with tenant_context(session, tenant_id):
            location = await _seed_location(session)
            await _seed_security(session, location.id)
            await _seed_appcc(session)
            await _seed_inventory(session)


async def _ensure_base_tenant(session: AsyncSession) -> UUID:
    settings = get_app_settings()
    repo = TenantRepository(session)
    tenant = await repo.get_tenant_by_slug(settings.DEFAULT_TENANT_SLUG)
    if tenant is None:
        tenant = await repo.create_tenant(settings.DEFAULT_TENANT_NAME, settings.DEFAULT_TENANT_SLUG)
        logger.info("Created tenant %s (%s)", tenant.slug, tenant.id)
    return tenant.id


async def _seed_location(session: AsyncSession) -> Location:
    repo = LocationRepository(session)
    location = await repo.get_location_by_name("Cocina central")
    if location is None:
        location = await repo.save(Location(name="Cocina central", address=None))
    return location


async def _seed_security(session: AsyncSession, location_id: UUID) -> None:
    """
    Seed the module roles and an admin user holding the admin role.
    """
    settings = get_app_settings()
    repo = SecurityRepository(session)
    roles = {name: await repo.ensure_role(name, desc) for name, desc in ROLES.items()}

    admin = await repo.get_user_by_username(settings.SEED_ADMIN_USERNAME)
    if admin is None:
        admin = await repo.create_user(
            username=settings.SEED_ADMIN_USERNAME,
            email=settings.SEED_ADMIN_EMAIL,
            full_name="Administrador",
            hashed_password=get_password_hash(settings.SEED_ADMIN_PASSWORD),
            is_active=True,
            is_superadmin=False,
            location_id=location_id,
        )
        logger.info("Created admin user %s", admin.username)
    await repo.assign_role_to_user(admin.id, roles["admin"].id)


async def _seed_appcc(session: AsyncSession) -> None:
    repo = ControlTemplateRepository(session)
    templates, _ = await repo.list_templates(category="temperatures", limit=1, offset=0)
    if templates:
        return
    await repo.save(
        ControlTemplate(
            name="Temperatura de cámaras frigoríficas",
            description="Lectura diaria de temperatura de las cámaras de refrigeración.",
            category="temperatures",
            frequency="daily",
            fields=FRIDGE_TEMPLATE_FIELDS,
        )
    )


async def _seed_inventory(session: AsyncSession) -> None:
    repo = ProductRepository(session)
    if await repo.get_product_by_sku("ACE-OLI-5L"):
        return
    supplier = Supplier(name="Distribuciones Alimentarias", contact_name="Pedidos", email="pedidos@distribuciones.es")
    await repo.add(supplier)
    await session.flush()
    await repo.save(
        Product(
            sku="ACE-OLI-5L",
            name="Aceite de oliva virgen extra 5L",
            category="aceites",
            unit="ud",
            stock_quantity=Decimal("12"),
            min_stock=Decimal("4"),
            cost_price=Decimal("28.50"),
            supplier_id=supplier.id,
        )
    )


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
