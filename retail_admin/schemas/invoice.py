"""Invoice schemas."""
from typing import Optional, List
from pydantic import BaseModel

from retail_admin.schemas.cart import CartLineIn
from retail_admin.schemas.inventory import LocationIn


class SalesInvoiceCreate(BaseModel):
    """Schema for creating a sales invoice or return."""
    lines: List[CartLineIn]
    branch_id: Optional[str] = None
    record_id: Optional[str] = None
    customer_id: Optional[str] = None  # Falls back to the default customer
    is_return: bool = False
    payment_method: str = "cash"
    notes: Optional[str] = None


class PurchaseInvoiceCreate(BaseModel):
    """Schema for creating a purchase invoice or return."""
    lines: List[CartLineIn]
    supplier_id: Optional[str] = None
    location: Optional[LocationIn] = None
    record_id: Optional[str] = None
    is_return: bool = False
    notes: Optional[str] = None


class TransferInvoiceCreate(BaseModel):
    """Schema for moving stock between locations."""
    lines: List[CartLineIn]
    from_location: Optional[LocationIn] = None
    to_location: Optional[LocationIn] = None


class InvoiceResponse(BaseModel):
    invoice_id: str
    invoice_number: str
    total_amount: float
    mirror_invoice_number: Optional[str] = None

    class Config:
        from_attributes = True
