from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from shieldcuisine_api.core.errors import ConflictError, NotFoundError
from shieldcuisine_api.db.models.inventory import Product, StockMovement
from shieldcuisine_api.repositories.inventory import ProductRepository, StockMovementRepository
from shieldcuisine_api.services.base import BaseService
from shieldcuisine_api.services.notifications import NotificationService

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    """Applies stock movements to products."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.products = ProductRepository(session)
        self.movements = StockMovementRepository(session)

    @staticmethod
    def resulting_stock(current: Decimal, movement_type: str, quantity: Decimal) -> Decimal:
        """
        Stock after applying a movement.

        `in` adds, `out` subtracts and `adjustment` sets the absolute quantity.
        """
        if movement_type == "in":
            return current + quantity
        if movement_type == "out":
            return current - quantity
        if movement_type == "adjustment":
            return quantity
        raise ValueError(f"Unknown movement type {movement_type!r}")

    # PUBLIC_INTERFACE
    async def register_movement(
        self,
        *,
        product_id: UUID,
        movement_type: str,
        quantity: float,
        reason: Optional[str],
        reference: Optional[str],
        user_id: Optional[UUID],
    ) -> StockMovement:
        """
        Record a movement and update the product's stock in the same transaction.

        Raises:
            NotFoundError: unknown product.
            ConflictError: an exit larger than the available stock.
        """
        product = await self.products.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")

        qty = Decimal(str(quantity))
        current = Decimal(str(product.stock_quantity or 0))
        new_stock = self.resulting_stock(current, movement_type, qty)
        if new_stock < 0:
            raise ConflictError(
                f"Insufficient stock for {product.name}",
                details={"available": float(current), "requested": float(qty)},
            )

        product.stock_quantity = new_stock
        movement = StockMovement(
            product_id=product.id,
            movement_type=movement_type,
            quantity=qty,
            stock_after=new_stock,
            reason=reason,
            reference=reference,
            created_by=user_id,
        )
        await self.movements.add(movement)
        await self.commit_and_refresh(movement, product)
        logger.info(
            "Stock movement %s %s on product=%s; stock now %s", movement_type, qty, product.sku, new_stock
        )

        if product.low_stock:
            await self._notify_low_stock(product)
        return movement

    async def _notify_low_stock(self, product: Product) -> None:
        await NotificationService(self.session).notify_admins(
            type="inventory",
            title=f"Stock bajo: {product.name}",
            message=(
                f"{product.name} ({product.sku}) tiene {product.stock_quantity} {product.unit}; "
                f"mínimo {product.min_stock}."
            ),
            link=f"/almacen/productos/{product.id}",
        )
