"""Cart schemas."""
from typing import Optional, List, Dict
from pydantic import BaseModel


class CartLineIn(BaseModel):
    """A submitted cart line."""
    product_id: str
    quantity: int = 1
    price: Optional[float] = None  # Defaults to the product price
    selected_colors: Optional[Dict[str, int]] = None


class CartPreviewRequest(BaseModel):
    lines: List[CartLineIn]


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    price: float
    total: float
    selected_colors: Dict[str, int] = {}
    notes: Optional[str] = None


class CartPreviewResponse(BaseModel):
    lines: List[CartLineResponse]
    total: float


class VariantOptionResponse(BaseModel):
    """A selectable color for a product at one branch."""
    name: str
    hex: str
    available: int
    image_url: Optional[str] = None

    class Config:
        from_attributes = True
