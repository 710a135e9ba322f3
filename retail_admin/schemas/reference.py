"""Reference data schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class LocationResponse(BaseModel):
    """Schema for branch and warehouse responses."""
    id: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecordResponse(BaseModel):
    """Schema for record responses."""
    id: str
    name: str
    branch_id: Optional[str] = None
    is_active: Optional[bool] = None
    is_primary: Optional[bool] = None

    class Config:
        from_attributes = True


class PartyResponse(BaseModel):
    """Schema for customer and supplier responses."""
    id: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    account_balance: Optional[float] = None

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    """Schema for product responses."""
    id: str
    name: str
    barcode: Optional[str] = None
    price: float
    cost_price: float
    main_image_url: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        from_attributes = True
