from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shieldcuisine_api.db.base import Base, TenantMixin, TimestampMixin, UUIDPkMixin


class Supplier(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Vendor of warehouse products."""
    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Product(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Stocked product with its current quantity."""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
    )

    sku: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="ud")
    stock_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    min_stock: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False, default=Decimal("0"))
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    @property
    def low_stock(self) -> bool:
        return (self.stock_quantity or 0) < (self.min_stock or 0)


class StockMovement(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Stock entry, exit or absolute adjustment for a product."""
    __tablename__ = "stock_movements"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    movement_type: Mapped[str] = mapped_column(Text, nullable=False)  # in/out/adjustment
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    stock_after: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # e.g. delivery note number
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
