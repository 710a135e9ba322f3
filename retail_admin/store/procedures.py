"""Server-side procedures run by ``SqlStore.rpc`` inside one transaction."""
import functools
from typing import Dict, Optional

from retail_admin.clock import Clock, SystemClock
from retail_admin.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from retail_admin.models.order import OrderStatus
from retail_admin.services.cart import CartLine
from retail_admin.services.invoices import SalesInvoiceCommitter, SalesSelections
from retail_admin.services.orders import ADVANCE
from retail_admin.store.base import Row, Store


def _invoiceable_statuses(next_status: Optional[str]):
    """Ready states whose invoice-gated advance leads to ``next_status``."""
    return {
        status for status, (target, needs_invoice) in ADVANCE.items()
        if needs_invoice and (next_status is None or target == next_status)
    }


def create_invoice(
    tx: Store,
    order_number: str,
    paid_amount: Optional[float],
    branch_id: Optional[str],
    record_id: Optional[str],
    notes: Optional[str] = None,
    next_status: Optional[str] = None,
    *,
    clock: Clock,
) -> Row:
    """Raise a sales invoice for an order and move the order on.

    Only an order waiting in the ready state that leads to ``next_status``
    is invoiced. Header, items, main-record copy, stock adjustments and
    the status write all share ``tx``; any failure leaves nothing behind.
    """
    order = tx.select_one(
        "orders", {"order_number": order_number}, expand={"order_items": {"product": {}}}
    )
    if order is None:
        raise NotFoundError(f"الطلب غير موجود: {order_number}")
    if next_status is not None and next_status not in {s.value for s in OrderStatus}:
        raise ValidationError(f"حالة غير معروفة: {next_status}")
    current_status = order["status"]
    if current_status not in _invoiceable_statuses(next_status):
        raise InvalidTransitionError(
            f"لا يمكن إنشاء فاتورة لطلب بحالة {current_status}",
            current_status=current_status,
        )

    lines = []
    for item in order["order_items"]:
        if item.get("product") is None:
            raise ValidationError(f"منتج غير موجود في الطلب {order_number}")
        lines.append(CartLine(product=item["product"], quantity=item["quantity"],
                              price=item["unit_price"]))

    committer = SalesInvoiceCommitter(tx, clock=clock, tolerate_secondary_failures=False)
    result = committer.commit(
        lines,
        SalesSelections(branch_id, record_id, order.get("customer_id")),
        notes=notes,
        paid_amount=paid_amount,
        order_number=order_number,
    )

    if next_status is not None:
        moved = tx.update(
            "orders",
            {"status": next_status, "updated_at": clock.now()},
            {"id": order["id"], "status": current_status},
        )
        if not moved:
            raise InvalidTransitionError(
                f"تغيرت حالة الطلب {order_number} أثناء إنشاء الفاتورة",
                current_status=current_status,
            )

    return {
        "success": True,
        "sale_id": result.invoice_id,
        "invoice_number": result.invoice_number,
    }


def default_procedures(clock: Optional[Clock] = None) -> Dict[str, functools.partial]:
    clock = clock or SystemClock()
    return {"create_invoice": functools.partial(create_invoice, clock=clock)}
