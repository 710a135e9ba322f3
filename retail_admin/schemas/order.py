"""Order schemas."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class GroupedItemResponse(BaseModel):
    """One product line of an order, merged across duplicate rows."""
    key: str
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: int
    unit_price: float
    notes: Optional[str] = None
    is_prepared: bool = False
    prepared_by: Optional[str] = None
    prepared_at: Optional[datetime] = None
    item_ids: List[str] = []

    class Config:
        from_attributes = True


class TimeRemainingResponse(BaseModel):
    """Time left before the sweeper acts on the order."""
    unit: str
    value: int

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    """Summary schema for order list."""
    id: str
    order_number: str
    customer_name: str
    customer_phone: Optional[str] = None
    delivery_type: Optional[str] = None
    status: str
    status_label: str
    total_amount: float
    subtotal_amount: Optional[float] = None
    shipping_amount: Optional[float] = None
    item_count: int = 0
    progress: float = 0
    time_remaining: Optional[TimeRemainingResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderResponse(OrderSummary):
    """Response schema for a single order."""
    customer_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[GroupedItemResponse] = []


class InvoiceGateRequest(BaseModel):
    """Operator input for an invoice-required transition."""
    confirmed: bool = False
    branch_id: Optional[str] = None
    record_id: Optional[str] = None
    paid_amount: Optional[float] = None  # Defaults to the invoiceable amount
    notes: Optional[str] = None


class AdvanceResponse(BaseModel):
    order: OrderResponse
    invoice_number: Optional[str] = None


class MarkRequest(BaseModel):
    """Schema for marking an order cancelled or as an issue."""
    status: str


class TogglePreparedRequest(BaseModel):
    prepared_by: Optional[str] = None


class ItemEditRequest(BaseModel):
    item_id: str
    quantity: int
    notes: Optional[str] = None


class OrderItemsUpdate(BaseModel):
    """The complete set of items the order keeps."""
    items: List[ItemEditRequest]


class SweepResponse(BaseModel):
    deleted: List[str] = []
    delivered: List[str] = []
    failed: List[str] = []

    class Config:
        from_attributes = True
