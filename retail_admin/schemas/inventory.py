"""Inventory and variant schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class LocationIn(BaseModel):
    """A branch or a warehouse."""
    kind: str  # "branch" or "warehouse"
    id: str


class InventoryResponse(BaseModel):
    """Response schema for inventory rows."""
    id: str
    product_id: str
    product_name: Optional[str] = None
    branch_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    quantity: int
    min_stock: int
    last_updated: Optional[datetime] = None


class InventoryUpdate(BaseModel):
    """Schema for setting absolute values."""
    quantity: Optional[int] = None
    min_stock: Optional[int] = None


class InventoryAdjust(BaseModel):
    """Schema for a relative adjustment."""
    product_id: str
    location: LocationIn
    delta: int


class VariantResponse(BaseModel):
    """Response schema for product variants."""
    id: str
    product_id: str
    branch_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    variant_type: str
    name: str
    quantity: int
    value: Optional[str] = None
    image_url: Optional[str] = None


class VariantAdjust(BaseModel):
    product_id: str
    location: LocationIn
    name: str
    delta: int
    variant_type: str = "color"
