"""Invoice routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse

from retail_admin.clock import Clock
from retail_admin.dependencies import get_clock, get_store
from retail_admin.schemas.invoice import (
    InvoiceResponse, PurchaseInvoiceCreate, SalesInvoiceCreate, TransferInvoiceCreate,
)
from retail_admin.schemas.inventory import LocationIn
from retail_admin.services.cart import check_variant_availability, load_cart
from retail_admin.services.inventory_ledger import Location
from retail_admin.services.invoices import (
    PurchaseInvoiceCommitter, PurchaseSelections, SalesInvoiceCommitter, SalesSelections,
    TransferInvoiceCommitter,
)
from retail_admin.services.receipt import load_receipt_snapshot, render_receipt
from retail_admin.store.base import Store

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def _location(location: LocationIn):
    return Location(location.kind, location.id) if location else None


def _cart_lines(store: Store, lines):
    return load_cart(store, [line.model_dump() for line in lines]).lines


@router.post("/sales", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_sales_invoice(
    data: SalesInvoiceCreate,
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Create a sales invoice (or return) and adjust branch stock."""
    committer = SalesInvoiceCommitter(store, clock)
    selections = SalesSelections(data.branch_id, data.record_id, data.customer_id)
    committer.validate(data.lines, selections)
    lines = _cart_lines(store, data.lines)
    if not data.is_return:
        check_variant_availability(store, lines, Location.branch(data.branch_id))
    return committer.commit(
        lines,
        selections,
        is_return=data.is_return,
        notes=data.notes,
        payment_method=data.payment_method,
    )


@router.post("/purchases", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_invoice(
    data: PurchaseInvoiceCreate,
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Create a purchase invoice (or return) and receive stock."""
    committer = PurchaseInvoiceCommitter(store, clock)
    selections = PurchaseSelections(data.supplier_id, _location(data.location), data.record_id)
    committer.validate(data.lines, selections)
    return committer.commit(
        _cart_lines(store, data.lines),
        selections,
        is_return=data.is_return,
        notes=data.notes,
    )


@router.post("/transfers", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer_invoice(
    data: TransferInvoiceCreate,
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Move stock between two locations."""
    committer = TransferInvoiceCommitter(store, clock)
    from_location, to_location = _location(data.from_location), _location(data.to_location)
    committer.validate(data.lines, from_location, to_location)
    return committer.commit(_cart_lines(store, data.lines), from_location, to_location)


@router.get("/sales/{invoice_number}/receipt", response_class=HTMLResponse)
async def sales_receipt(
    invoice_number: str,
    operator: Optional[str] = Query(None, description="Name printed in the footer"),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Printable 80mm receipt for a stored sales invoice."""
    snapshot = load_receipt_snapshot(
        store, invoice_number, printed_at=clock.now(), operator_name=operator
    )
    return HTMLResponse(content=render_receipt(snapshot))
