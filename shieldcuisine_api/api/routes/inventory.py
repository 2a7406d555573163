from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.db.models.inventory import Product, Supplier
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.inventory import ProductRepository, StockMovementRepository, SupplierRepository
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.schemas.inventory import (
    InventoryDashboard,
    MovementType,
    ProductCreate,
    ProductRead,
    ProductUpdate,
    StockMovementCreate,
    StockMovementRead,
    SupplierCreate,
    SupplierRead,
    SupplierUpdate,
)
from shieldcuisine_api.services.exports import export_rows
from shieldcuisine_api.services.inventory import InventoryService

router = APIRouter(prefix="/inventory", tags=["Inventory"])

MANAGE_INVENTORY = require_roles("admin", "inventory:manage")


def _decimals(values: dict, *keys: str) -> dict:
    for key in keys:
        if values.get(key) is not None:
            values[key] = Decimal(str(values[key]))
    return values


# Products

# PUBLIC_INTERFACE
@router.get(
    "/products",
    response_model=Page[ProductRead],
    summary="List products",
    dependencies=[Depends(get_current_active_user)],
)
async def list_products(
    session: AsyncSession = Depends(get_tenant_session),
    search: Optional[str] = Query(None, description="Matches name or SKU"),
    category: Optional[str] = Query(None),
    low_stock: bool = Query(False, description="Only products below their minimum stock"),
    supplier_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await ProductRepository(session).list_products(
        search=search, category=category, low_stock=low_stock, supplier_id=supplier_id, limit=limit, offset=offset
    )
    return page_of([ProductRead.model_validate(p) for p in items], total, limit, offset)


async def _require_product(repo: ProductRepository, product_id: UUID) -> Product:
    product = await repo.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _check_supplier(session: AsyncSession, supplier_id: Optional[UUID]) -> None:
    if supplier_id and not await SupplierRepository(session).get_supplier(supplier_id):
        raise HTTPException(status_code=400, detail="Unknown supplier")


# PUBLIC_INTERFACE
@router.get(
    "/products/{product_id}",
    response_model=ProductRead,
    summary="Get product",
    dependencies=[Depends(get_current_active_user)],
)
async def get_product(
    product_id: UUID = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ProductRead:
    return ProductRead.model_validate(await _require_product(ProductRepository(session), product_id))


# PUBLIC_INTERFACE
@router.post(
    "/products",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def create_product(
    payload: ProductCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> ProductRead:
    repo = ProductRepository(session)
    if await repo.get_product_by_sku(payload.sku):
        raise HTTPException(status_code=409, detail=f"A product with SKU {payload.sku} already exists")
    await _check_supplier(session, payload.supplier_id)
    values = _decimals(payload.model_dump(), "stock_quantity", "min_stock", "cost_price")
    product = await repo.save(Product(**values))
    return ProductRead.model_validate(product)


# PUBLIC_INTERFACE
@router.patch(
    "/products/{product_id}",
    response_model=ProductRead,
    summary="Update product",
    description="Stock quantity is only changed through stock movements.",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def update_product(
    payload: ProductUpdate,
    product_id: UUID = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ProductRead:
    repo = ProductRepository(session)
    product = await _require_product(repo, product_id)
    changes = _decimals(payload.model_dump(exclude_unset=True), "min_stock", "cost_price")
    if changes.get("sku") and changes["sku"] != product.sku and await repo.get_product_by_sku(changes["sku"]):
        raise HTTPException(status_code=409, detail=f"A product with SKU {changes['sku']} already exists")
    await _check_supplier(session, changes.get("supplier_id"))
    repo.apply_changes(product, changes)
    await repo.commit()
    await session.refresh(product)
    return ProductRead.model_validate(product)


# PUBLIC_INTERFACE
@router.delete(
    "/products/{product_id}",
    response_model=Message,
    summary="Delete product",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def delete_product(
    product_id: UUID = Path(..., description="Product ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = ProductRepository(session)
    await repo.delete(await _require_product(repo, product_id))
    return Message(message="Product deleted")


# Suppliers

# PUBLIC_INTERFACE
@router.get(
    "/suppliers",
    response_model=Page[SupplierRead],
    summary="List suppliers",
    dependencies=[Depends(get_current_active_user)],
)
async def list_suppliers(
    session: AsyncSession = Depends(get_tenant_session),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await SupplierRepository(session).list_suppliers(search=search, limit=limit, offset=offset)
    return page_of([SupplierRead.model_validate(s) for s in items], total, limit, offset)


async def _require_supplier(repo: SupplierRepository, supplier_id: UUID) -> Supplier:
    supplier = await repo.get_supplier(supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


# PUBLIC_INTERFACE
@router.get(
    "/suppliers/{supplier_id}",
    response_model=SupplierRead,
    summary="Get supplier",
    dependencies=[Depends(get_current_active_user)],
)
async def get_supplier(
    supplier_id: UUID = Path(..., description="Supplier ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> SupplierRead:
    return SupplierRead.model_validate(await _require_supplier(SupplierRepository(session), supplier_id))


# PUBLIC_INTERFACE
@router.post(
    "/suppliers",
    response_model=SupplierRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create supplier",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def create_supplier(
    payload: SupplierCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> SupplierRead:
    supplier = await SupplierRepository(session).save(Supplier(**payload.model_dump()))
    return SupplierRead.model_validate(supplier)


# PUBLIC_INTERFACE
@router.patch(
    "/suppliers/{supplier_id}",
    response_model=SupplierRead,
    summary="Update supplier",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def update_supplier(
    payload: SupplierUpdate,
    supplier_id: UUID = Path(..., description="Supplier ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> SupplierRead:
    repo = SupplierRepository(session)
    supplier = await _require_supplier(repo, supplier_id)
    repo.apply_changes(supplier, payload.model_dump(exclude_unset=True))
    await repo.commit()
    await session.refresh(supplier)
    return SupplierRead.model_validate(supplier)


# PUBLIC_INTERFACE
@router.delete(
    "/suppliers/{supplier_id}",
    response_model=Message,
    summary="Delete supplier",
    description="Products of the supplier are kept without a supplier.",
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def delete_supplier(
    supplier_id: UUID = Path(..., description="Supplier ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = SupplierRepository(session)
    supplier = await _require_supplier(repo, supplier_id)
    products, _ = await ProductRepository(session).list_products(supplier_id=supplier_id, limit=100000, offset=0)
    for product in products:
        product.supplier_id = None
    await repo.delete(supplier)
    return Message(message="Supplier deleted")


# Movements

# PUBLIC_INTERFACE
@router.get(
    "/movements",
    response_model=Page[StockMovementRead],
    summary="List stock movements",
    dependencies=[Depends(get_current_active_user)],
)
async def list_movements(
    session: AsyncSession = Depends(get_tenant_session),
    product_id: Optional[UUID] = Query(None),
    movement_type: Optional[MovementType] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await StockMovementRepository(session).list_movements(
        product_id=product_id, movement_type=movement_type, limit=limit, offset=offset
    )
    return page_of([StockMovementRead.model_validate(m) for m in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.post(
    "/movements",
    response_model=StockMovementRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register stock movement",
    description=(
        "'in' adds to stock, 'out' subtracts (409 when stock would become negative) and "
        "'adjustment' sets the absolute stock."
    ),
    dependencies=[Depends(MANAGE_INVENTORY)],
)
async def create_movement(
    payload: StockMovementCreate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> StockMovementRead:
    movement = await InventoryService(session).register_movement(
        product_id=payload.product_id,
        movement_type=payload.movement_type,
        quantity=payload.quantity,
        reason=payload.reason,
        reference=payload.reference,
        user_id=user.id,
    )
    return StockMovementRead.model_validate(movement)


# PUBLIC_INTERFACE
@router.get(
    "/dashboard",
    response_model=InventoryDashboard,
    summary="Warehouse dashboard",
    dependencies=[Depends(get_current_active_user)],
)
async def dashboard(session: AsyncSession = Depends(get_tenant_session)) -> InventoryDashboard:
    repo = ProductRepository(session)
    total, low, value = await repo.totals()
    low_items, _ = await repo.list_products(low_stock=True, limit=20, offset=0)
    return InventoryDashboard(
        total_products=total,
        low_stock_count=low,
        stock_value=float(value),
        low_stock_products=[ProductRead.model_validate(p) for p in low_items],
    )


# PUBLIC_INTERFACE
@router.get(
    "/reports/stock",
    summary="Stock report",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles("admin", "inventory:manage", "reports:view"))],
)
async def stock_report(
    session: AsyncSession = Depends(get_tenant_session),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    """Current stock per product valued at cost price."""
    rows = []
    for p in await ProductRepository(session).all_products():
        qty = float(p.stock_quantity or 0)
        price = float(p.cost_price) if p.cost_price is not None else None
        rows.append(
            {
                "sku": p.sku,
                "name": p.name,
                "category": p.category,
                "unit": p.unit,
                "stock_quantity": qty,
                "min_stock": float(p.min_stock or 0),
                "cost_price": price,
                "valuation": qty * price if price is not None else None,
                "low_stock": p.low_stock,
            }
        )
    columns = ["sku", "name", "category", "unit", "stock_quantity", "min_stock", "cost_price", "valuation", "low_stock"]
    return export_rows(rows, columns, "inventory_stock", format)
