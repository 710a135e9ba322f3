"""Order routes."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from retail_admin.clock import Clock
from retail_admin.dependencies import get_clock, get_store
from retail_admin.schemas.order import (
    AdvanceResponse, GroupedItemResponse, InvoiceGateRequest, MarkRequest,
    OrderItemsUpdate, OrderResponse, OrderSummary, SweepResponse, TimeRemainingResponse,
    TogglePreparedRequest,
)
from retail_admin.services.order_sweeper import sweep_orders
from retail_admin.services.orders import (
    InvoiceGate, ItemEdit, OrderLifecycle, group_order_items, preparation_progress,
    status_label, time_remaining,
)
from retail_admin.store.base import Row, Store

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_lifecycle(store: Store = Depends(get_store), clock: Clock = Depends(get_clock)) -> OrderLifecycle:
    return OrderLifecycle(store, clock)


def _order_response(order: Row, clock: Clock, model=OrderResponse):
    groups = group_order_items(order.get("order_items", []))
    remaining = time_remaining(order, clock.now())
    return model(
        **{k: v for k, v in order.items() if k in model.model_fields},
        status_label=status_label(order["status"]),
        item_count=len(groups),
        progress=preparation_progress(groups),
        time_remaining=TimeRemainingResponse.model_validate(remaining) if remaining else None,
        **({"items": [GroupedItemResponse.model_validate(g) for g in groups]}
           if model is OrderResponse else {}),
    )


@router.get("/", response_model=List[OrderSummary])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    tab: Optional[str] = Query(None, description="completed or active"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    """List orders, newest first."""
    orders = lifecycle.list_orders(status_filter, tab, date_from, date_to)
    return [_order_response(order, lifecycle.clock, OrderSummary) for order in orders]


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(store: Store = Depends(get_store), clock: Clock = Depends(get_clock)):
    """Apply the cancelled-expiry and shipped auto-delivery rules now."""
    return sweep_orders(store, clock.now())


@router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """Get an order with its grouped items."""
    return _order_response(lifecycle.get(order_number), lifecycle.clock)


@router.post("/{order_number}/start-preparation", response_model=OrderResponse)
async def start_preparation(order_number: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    lifecycle.start_preparation(order_number)
    return _order_response(lifecycle.get(order_number), lifecycle.clock)


@router.post("/{order_number}/items/{item_id}/toggle-prepared", response_model=GroupedItemResponse)
async def toggle_item_prepared(
    order_number: str,
    item_id: str,
    body: Optional[TogglePreparedRequest] = None,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    """Flip the prepared flag of an item group."""
    prepared_by = body.prepared_by if body else None
    return lifecycle.toggle_item_prepared(order_number, item_id, prepared_by)


@router.post("/{order_number}/complete-preparation", response_model=OrderResponse)
async def complete_preparation(order_number: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    lifecycle.complete_preparation(order_number)
    return _order_response(lifecycle.get(order_number), lifecycle.clock)


@router.post("/{order_number}/advance", response_model=AdvanceResponse)
async def advance_order(
    order_number: str,
    gate: Optional[InvoiceGateRequest] = None,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    """Advance a ready or shipped order. Ready orders need a confirmed invoice gate."""
    result = lifecycle.advance(order_number, InvoiceGate(**gate.model_dump()) if gate else None)
    order = lifecycle.get(order_number)
    return AdvanceResponse(order=_order_response(order, lifecycle.clock),
                           invoice_number=result.invoice_number)


@router.post("/{order_number}/mark", response_model=OrderResponse)
async def mark_order(order_number: str, body: MarkRequest, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """Mark an open order as cancelled or as an issue."""
    lifecycle.mark(order_number, body.status)
    return _order_response(lifecycle.get(order_number), lifecycle.clock)


@router.put("/{order_number}/items", response_model=OrderResponse)
async def edit_order_items(
    order_number: str,
    body: OrderItemsUpdate,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    """Replace the order's items; rows left out are removed."""
    order = lifecycle.edit_items(
        order_number, [ItemEdit(e.item_id, e.quantity, e.notes) for e in body.items]
    )
    return _order_response(order, lifecycle.clock)
