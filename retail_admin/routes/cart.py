"""Cart routes."""
from typing import List

from fastapi import APIRouter, Depends, Query

from retail_admin.dependencies import get_store
from retail_admin.exceptions import NotFoundError
from retail_admin.schemas.cart import (
    CartLineResponse, CartPreviewRequest, CartPreviewResponse, VariantOptionResponse,
)
from retail_admin.services.cart import describe_selection, discover_variant_options, load_cart
from retail_admin.services.inventory_ledger import InventoryLedger, Location
from retail_admin.services.variant_ledger import VariantLedger
from retail_admin.store.base import Store

router = APIRouter(tags=["Cart"])


@router.post("/cart/preview", response_model=CartPreviewResponse)
async def preview_cart(data: CartPreviewRequest, store: Store = Depends(get_store)):
    """Price submitted lines without writing anything."""
    cart = load_cart(store, [line.model_dump() for line in data.lines])
    return CartPreviewResponse(
        lines=[
            CartLineResponse(
                line_id=line.line_id,
                product_id=line.product_id,
                product_name=line.product.get("name"),
                quantity=line.quantity,
                price=line.price,
                total=line.total,
                selected_colors=line.selected_colors,
                notes=describe_selection(line.selected_colors),
            )
            for line in cart
        ],
        total=cart.total,
    )


@router.get("/products/{product_id}/variant-options", response_model=List[VariantOptionResponse])
async def variant_options(
    product_id: str,
    branch_id: str = Query(..., description="Active branch"),
    store: Store = Depends(get_store),
):
    """Colors selectable for a product at a branch."""
    product = store.select_one("products", {"id": product_id})
    if product is None:
        raise NotFoundError(f"المنتج غير موجود: {product_id}")

    location = Location.branch(branch_id)
    inventory = InventoryLedger(store).get(product_id, location)
    variants = VariantLedger(store).list(product_id, location)
    return discover_variant_options(product, inventory["quantity"] if inventory else 0, variants)
