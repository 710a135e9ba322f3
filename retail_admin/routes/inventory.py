"""Inventory and variant routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from retail_admin.dependencies import get_store
from retail_admin.exceptions import NotFoundError
from retail_admin.schemas.inventory import (
    InventoryAdjust, InventoryResponse, InventoryUpdate, VariantAdjust, VariantResponse,
)
from retail_admin.services.inventory_ledger import BRANCH, WAREHOUSE, InventoryLedger, Location
from retail_admin.services.variant_ledger import VariantLedger
from retail_admin.store.base import Row, Store

router = APIRouter(tags=["Inventory"])


def _query_location(branch_id: Optional[str], warehouse_id: Optional[str]) -> Location:
    if bool(branch_id) == bool(warehouse_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of branch_id or warehouse_id",
        )
    return Location(BRANCH, branch_id) if branch_id else Location(WAREHOUSE, warehouse_id)


def _inventory_response(row: Row) -> InventoryResponse:
    product = row.get("product") or {}
    return InventoryResponse(**row, product_name=product.get("name"))


@router.get("/inventory", response_model=List[InventoryResponse])
async def list_inventory(
    branch_id: Optional[str] = None,
    warehouse_id: Optional[str] = None,
    store: Store = Depends(get_store),
):
    """List stock at one location."""
    rows = InventoryLedger(store).list(_query_location(branch_id, warehouse_id))
    return [_inventory_response(row) for row in rows]


@router.get("/inventory/low-stock", response_model=List[InventoryResponse])
async def list_low_stock(
    branch_id: Optional[str] = None,
    warehouse_id: Optional[str] = None,
    store: Store = Depends(get_store),
):
    """Rows at or below their minimum stock."""
    rows = InventoryLedger(store).low_stock(_query_location(branch_id, warehouse_id))
    return [_inventory_response(row) for row in rows]


@router.put("/inventory/{inventory_id}", response_model=InventoryResponse)
async def update_inventory(inventory_id: str, data: InventoryUpdate, store: Store = Depends(get_store)):
    """Set quantity and/or minimum stock."""
    return InventoryLedger(store).set_quantity(inventory_id, data.quantity, data.min_stock)


@router.post("/inventory/adjust", response_model=InventoryResponse)
async def adjust_inventory(data: InventoryAdjust, store: Store = Depends(get_store)):
    """Apply a signed quantity change, floored at zero."""
    location = Location(data.location.kind, data.location.id)
    row = InventoryLedger(store).adjust(data.product_id, location, data.delta, create_missing=True)
    if row is None:
        raise NotFoundError("Inventory row not found")
    return row


@router.get("/variants", response_model=List[VariantResponse])
async def list_variants(
    product_id: str = Query(...),
    branch_id: Optional[str] = None,
    warehouse_id: Optional[str] = None,
    store: Store = Depends(get_store),
):
    """List variants of a product at one location."""
    return VariantLedger(store).list(product_id, _query_location(branch_id, warehouse_id))


@router.post("/variants/adjust", response_model=VariantResponse)
async def adjust_variant(data: VariantAdjust, store: Store = Depends(get_store)):
    """Apply a signed quantity change to a named variant."""
    location = Location(data.location.kind, data.location.id)
    row = VariantLedger(store).adjust(data.product_id, location, data.name, data.delta, data.variant_type)
    if row is None:
        raise NotFoundError("Variant not found")
    return row
