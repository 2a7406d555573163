from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_

from shieldcuisine_api.db.models.inventory import Product, StockMovement, Supplier
from .base import BaseRepository


class SupplierRepository(BaseRepository):
    """Repository for suppliers."""

    async def list_suppliers(
        self, *, search: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Supplier], int]:
        stmt = self.scoped(Supplier)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Supplier.name.ilike(like), Supplier.contact_name.ilike(like)))
        return await self.paginate(stmt.order_by(Supplier.name), limit, offset)

    async def get_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        stmt = self.scoped(Supplier).where(Supplier.id == supplier_id)
        return await self.scalar_one_or_none(stmt)


class ProductRepository(BaseRepository):
    """Repository for warehouse products."""

    def _filtered(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        low_stock: bool = False,
        supplier_id: Optional[UUID] = None,
    ):
        stmt = self.scoped(Product)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Product.name.ilike(like), Product.sku.ilike(like)))
        if category:
            stmt = stmt.where(Product.category == category)
        if supplier_id:
            stmt = stmt.where(Product.supplier_id == supplier_id)
        if low_stock:
            stmt = stmt.where(Product.stock_quantity < Product.min_stock)
        return stmt

    async def list_products(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        low_stock: bool = False,
        supplier_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Product], int]:
        stmt = self._filtered(
            search=search, category=category, low_stock=low_stock, supplier_id=supplier_id
        ).order_by(Product.name)
        return await self.paginate(stmt, limit, offset)

    async def all_products(self) -> List[Product]:
        return list(await self.scalars(self._filtered().order_by(Product.sku)))

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        stmt = self.scoped(Product).where(Product.id == product_id)
        return await self.scalar_one_or_none(stmt)

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        stmt = self.scoped(Product).where(Product.sku == sku)
        return await self.scalar_one_or_none(stmt)

    async def totals(self) -> Tuple[int, int, Decimal]:
        """Return (product count, low-stock count, stock value at cost)."""
        total = await self.count(self._filtered())
        low = await self.count(self._filtered(low_stock=True))
        stmt = self._filtered().with_only_columns(
            func.coalesce(func.sum(Product.stock_quantity * func.coalesce(Product.cost_price, 0)), 0)
        )
        result = await self.execute(stmt)
        value = result.scalar_one()
        return total, low, Decimal(str(value or 0))


class StockMovementRepository(BaseRepository):
    """Repository for stock movements."""

    async def list_movements(
        self,
        *,
        product_id: Optional[UUID],
        movement_type: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[StockMovement], int]:
        stmt = self.scoped(StockMovement)
        if product_id:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if movement_type:
            stmt = stmt.where(StockMovement.movement_type == movement_type)
        stmt = stmt.order_by(StockMovement.created_at.desc())
        return await self.paginate(stmt, limit, offset)
