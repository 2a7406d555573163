from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

MovementType = Literal["in", "out", "adjustment"]


class SupplierBase(BaseModel):
    name: str = Field(..., min_length=1, description="Supplier name")
    contact_name: Optional[str] = Field(None)
    email: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    address: Optional[str] = Field(None)
    notes: Optional[str] = Field(None)


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class SupplierRead(SupplierBase):
    """Read model for a supplier."""
    id: UUID = Field(..., description="Supplier ID")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, description="Stock keeping unit, unique per company")
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    unit: str = Field("ud", description="Unit of measure")
    stock_quantity: float = Field(0, ge=0, description="Opening stock")
    min_stock: float = Field(0, ge=0, description="Low-stock threshold")
    cost_price: Optional[float] = Field(None, ge=0)
    supplier_id: Optional[UUID] = None
    is_active: bool = True


class ProductUpdate(BaseModel):
    """Product changes; stock is only changed through movements."""
    sku: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    unit: Optional[str] = None
    min_stock: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    supplier_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class ProductRead(BaseModel):
    """Read model for a product."""
    id: UUID = Field(..., description="Product ID")
    sku: str
    name: str
    category: Optional[str] = None
    unit: str
    stock_quantity: float
    min_stock: float
    cost_price: Optional[float] = None
    supplier_id: Optional[UUID] = None
    is_active: bool
    low_stock: bool = Field(False, description="Stock below the minimum")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockMovementCreate(BaseModel):
    product_id: UUID
    movement_type: MovementType
    quantity: float = Field(..., ge=0, description="Amount moved, or the new absolute stock for adjustments")
    reason: Optional[str] = None
    reference: Optional[str] = None


class StockMovementRead(BaseModel):
    """Read model for a stock movement."""
    id: UUID
    product_id: UUID
    movement_type: str
    quantity: float
    stock_after: float
    reason: Optional[str] = None
    reference: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InventoryDashboard(BaseModel):
    """Warehouse totals."""
    total_products: int
    low_stock_count: int
    stock_value: float
    low_stock_products: List[ProductRead] = Field(default_factory=list)
