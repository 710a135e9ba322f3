"""
Order lifecycle.

    pending -> processing -> ready_for_pickup   -> delivered
                          -> ready_for_shipping -> shipped -> delivered

Any open order can also be marked ``cancelled`` or ``issue``. Leaving a
ready state requires a sales invoice first; the invoice and the status
write happen together in the ``create_invoice`` store procedure, so the
status never moves unless the invoice exists.

``updated_at`` is rewritten on every status change because the sweeper
measures cancelled expiry and shipped auto-delivery from it.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from retail_admin.clock import Clock, SystemClock, as_utc
from retail_admin.config import settings
from retail_admin.exceptions import (
    CommitError, GateDeclinedError, InvalidTransitionError, NotFoundError,
    StoreError, ValidationError,
)
from retail_admin.logging_config import get_logger
from retail_admin.models.order import DeliveryType, OrderStatus, STATUS_LABELS
from retail_admin.store.base import Row, Store

logger = get_logger(__name__)

NOTES_SEPARATOR = " | "

OPEN_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.READY_FOR_PICKUP.value,
    OrderStatus.READY_FOR_SHIPPING.value,
    OrderStatus.SHIPPED.value,
)
EDITABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)

# status -> (next status, needs an invoice first)
ADVANCE = {
    OrderStatus.READY_FOR_PICKUP.value: (OrderStatus.DELIVERED.value, True),
    OrderStatus.READY_FOR_SHIPPING.value: (OrderStatus.SHIPPED.value, True),
    OrderStatus.SHIPPED.value: (OrderStatus.DELIVERED.value, False),
}

TAB_COMPLETED = "completed"
TAB_ACTIVE = "active"

ORDER_EXPAND = {"order_items": {"product": {}}}


@dataclass
class GroupedItem:
    """Display item covering every raw row of one product."""
    key: str
    product_id: Optional[str]
    product_name: Optional[str]
    quantity: int
    unit_price: float
    notes: Optional[str]
    is_prepared: bool
    prepared_by: Optional[str] = None
    prepared_at: Optional[datetime] = None
    item_ids: List[str] = field(default_factory=list)


def _product_name(item: Row) -> Optional[str]:
    product = item.get("product") or {}
    return product.get("name") or item.get("name")


def group_order_items(items: List[Row]) -> List[GroupedItem]:
    """Merge raw rows by product id, falling back to the product name.

    Quantities add up, the group counts as prepared when any row is, and
    distinct notes are joined with `` | ``.
    """
    groups = {}
    for item in items:
        key = item.get("product_id") or _product_name(item) or f"item:{item['id']}"
        group = groups.get(key)
        if group is None:
            groups[key] = GroupedItem(
                key=key,
                product_id=item.get("product_id"),
                product_name=_product_name(item),
                quantity=item.get("quantity") or 0,
                unit_price=item.get("unit_price") or 0,
                notes=item.get("notes") or None,
                is_prepared=bool(item.get("is_prepared")),
                prepared_by=item.get("prepared_by"),
                prepared_at=item.get("prepared_at"),
                item_ids=[item["id"]],
            )
            continue

        group.quantity += item.get("quantity") or 0
        group.is_prepared = group.is_prepared or bool(item.get("is_prepared"))
        group.prepared_by = group.prepared_by or item.get("prepared_by")
        group.prepared_at = group.prepared_at or item.get("prepared_at")
        group.item_ids.append(item["id"])
        note = item.get("notes")
        if note and note not in (group.notes or "").split(NOTES_SEPARATOR):
            group.notes = f"{group.notes}{NOTES_SEPARATOR}{note}" if group.notes else note
    return list(groups.values())


def preparation_progress(groups: List[GroupedItem]) -> float:
    """Percentage of grouped items marked prepared."""
    if not groups:
        return 0.0
    return sum(1 for group in groups if group.is_prepared) / len(groups) * 100


@dataclass
class TimeRemaining:
    unit: str
    value: int


def time_remaining(
    order: Row,
    now: datetime,
    cancelled_ttl_hours: Optional[int] = None,
    auto_deliver_days: Optional[int] = None,
) -> Optional[TimeRemaining]:
    """Whole hours until a cancelled order is deleted, or whole days until
    a shipped order is delivered. Non-positive values mean the next sweep
    acts on it.
    """
    ttl = settings.CANCELLED_ORDER_TTL_HOURS if cancelled_ttl_hours is None else cancelled_ttl_hours
    days = settings.SHIPPED_AUTO_DELIVER_DAYS if auto_deliver_days is None else auto_deliver_days
    updated_at = as_utc(order.get("updated_at"))
    if updated_at is None:
        return None

    elapsed = as_utc(now) - updated_at
    if order["status"] == OrderStatus.CANCELLED.value:
        return TimeRemaining("hours", ttl - math.floor(elapsed / timedelta(hours=1)))
    if order["status"] == OrderStatus.SHIPPED.value:
        return TimeRemaining("days", days - math.floor(elapsed / timedelta(days=1)))
    return None


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def invoiceable_amount(order: Row) -> float:
    """Subtotal when both subtotal and shipping are known, else the total."""
    if order.get("subtotal_amount") is not None and order.get("shipping_amount") is not None:
        return order["subtotal_amount"]
    return order.get("total_amount") or 0


@dataclass
class InvoiceGate:
    """Operator input collected before an invoice-required transition."""
    confirmed: bool
    branch_id: Optional[str] = None
    record_id: Optional[str] = None
    paid_amount: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class ItemEdit:
    item_id: str
    quantity: int
    notes: Optional[str] = None


@dataclass
class AdvanceResult:
    order: Row
    invoice_number: Optional[str] = None


class OrderLifecycle:
    """Operator-driven order transitions."""

    def __init__(self, store: Store, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def get(self, order_number: str) -> Row:
        order = self.store.select_one("orders", {"order_number": order_number}, expand=ORDER_EXPAND)
        if order is None:
            raise NotFoundError(f"الطلب غير موجود: {order_number}")
        return order

    def list_orders(
        self,
        status: Optional[str] = None,
        tab: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Row]:
        filters = {}
        if status:
            filters["status"] = status
        elif tab == TAB_COMPLETED:
            filters["status"] = OrderStatus.DELIVERED.value
        elif tab == TAB_ACTIVE:
            filters["status"] = [s.value for s in OrderStatus if s != OrderStatus.DELIVERED]
        elif tab:
            raise ValidationError(f"تبويب غير معروف: {tab}")

        orders = self.store.select("orders", filters, order_by="-created_at", expand=ORDER_EXPAND)

        start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
        end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc) if date_to else None
        if start or end:
            orders = [
                order for order in orders
                if (start is None or as_utc(order["created_at"]) >= start)
                and (end is None or as_utc(order["created_at"]) < end)
            ]
        return orders

    def _require(self, order: Row, allowed, action: str) -> None:
        if order["status"] not in allowed:
            raise InvalidTransitionError(
                f"لا يمكن {action} لطلب بحالة {status_label(order['status'])}",
                current_status=order["status"],
            )

    def _set_status(self, order: Row, status: str) -> Row:
        rows = self.store.update(
            "orders", {"status": status, "updated_at": self.clock.now()}, {"id": order["id"]}
        )
        logger.info(
            f"Order {order['order_number']} moved to {status}",
            extra={"extra_fields": {
                "order_number": order["order_number"],
                "from_status": order["status"],
                "to_status": status,
            }},
        )
        return rows[0]

    def start_preparation(self, order_number: str) -> Row:
        order = self.get(order_number)
        self._require(order, (OrderStatus.PENDING.value,), "بدء التحضير")
        return self._set_status(order, OrderStatus.PROCESSING.value)

    def toggle_item_prepared(self, order_number: str, item_id: str,
                             prepared_by: Optional[str] = None) -> GroupedItem:
        """Flip the prepared flag of the group containing ``item_id``."""
        order = self.get(order_number)
        self._require(order, (OrderStatus.PROCESSING.value,), "تحضير عناصر")
        group = next(
            (g for g in group_order_items(order["order_items"]) if item_id in g.item_ids), None
        )
        if group is None:
            raise NotFoundError(f"العنصر غير موجود في الطلب {order_number}")

        prepared = not group.is_prepared
        now = self.clock.now()
        self.store.update(
            "order_items",
            {
                "is_prepared": prepared,
                "prepared_by": prepared_by if prepared else None,
                "prepared_at": now if prepared else None,
            },
            {"id": group.item_ids},
        )
        group.is_prepared = prepared
        group.prepared_by = prepared_by if prepared else None
        group.prepared_at = now if prepared else None
        return group

    def complete_preparation(self, order_number: str) -> Row:
        order = self.get(order_number)
        self._require(order, (OrderStatus.PROCESSING.value,), "إكمال التحضير")
        groups = group_order_items(order["order_items"])
        if not groups or not all(group.is_prepared for group in groups):
            raise ValidationError("يجب تحضير جميع العناصر قبل إكمال التحضير")

        if order.get("delivery_type") == DeliveryType.DELIVERY.value:
            next_status = OrderStatus.READY_FOR_SHIPPING.value
        else:
            next_status = OrderStatus.READY_FOR_PICKUP.value
        return self._set_status(order, next_status)

    def advance(self, order_number: str, gate: Optional[InvoiceGate] = None) -> AdvanceResult:
        """Move a ready or shipped order forward.

        Leaving a ready state raises the sales invoice and writes the new
        status in one procedure call. A failed invoice leaves the order
        exactly as it was.
        """
        order = self.get(order_number)
        if order["status"] not in ADVANCE:
            raise InvalidTransitionError(
                f"لا يمكن تقديم طلب بحالة {status_label(order['status'])}",
                current_status=order["status"],
            )
        next_status, needs_invoice = ADVANCE[order["status"]]
        if not needs_invoice:
            return AdvanceResult(self._set_status(order, next_status))

        if gate is None or not gate.confirmed:
            raise GateDeclinedError("تم إلغاء إنشاء الفاتورة")
        if not gate.branch_id or not gate.record_id:
            raise ValidationError("يجب تحديد الفرع والسجل قبل إنشاء الفاتورة")
        limit = invoiceable_amount(order)
        paid = limit if gate.paid_amount is None else gate.paid_amount
        if paid < 0 or paid > limit:
            raise ValidationError(f"المبلغ المدفوع يجب أن يكون بين 0 و {limit}")

        try:
            result = self.store.rpc("create_invoice", {
                "order_number": order_number,
                "paid_amount": paid,
                "branch_id": gate.branch_id,
                "record_id": gate.record_id,
                "notes": gate.notes,
                "next_status": next_status,
            })
        except StoreError as exc:
            raise CommitError(f"خطأ في إنشاء الفاتورة: {exc.message}") from exc
        if not result.get("success"):
            raise CommitError(f"خطأ في إنشاء الفاتورة: {result.get('error')}")

        logger.info(
            f"Order {order_number} invoiced as {result['invoice_number']}",
            extra={"extra_fields": {
                "order_number": order_number,
                "invoice_number": result["invoice_number"],
                "to_status": next_status,
            }},
        )
        return AdvanceResult(self.get(order_number), result["invoice_number"])

    def mark(self, order_number: str, status: str) -> Row:
        if status not in (OrderStatus.CANCELLED.value, OrderStatus.ISSUE.value):
            raise ValidationError(f"حالة غير مسموحة: {status}")
        order = self.get(order_number)
        self._require(order, OPEN_STATUSES, f"تحويل الطلب إلى {status_label(status)}")
        return self._set_status(order, status)

    def edit_items(self, order_number: str, edits: List[ItemEdit]) -> Row:
        """Replace the order's items with ``edits`` and recompute totals.

        Rows missing from ``edits`` are deleted.
        """
        order = self.get(order_number)
        self._require(order, EDITABLE_STATUSES, "تعديل")
        if not edits:
            raise ValidationError("يجب أن يحتوي الطلب على عنصر واحد على الأقل")

        existing = {item["id"]: item for item in order["order_items"]}
        for edit in edits:
            if edit.item_id not in existing:
                raise NotFoundError(f"العنصر غير موجود في الطلب {order_number}")
            if edit.quantity < 1:
                raise ValidationError("الكمية يجب أن تكون 1 على الأقل")

        kept = {edit.item_id for edit in edits}
        removed = [item_id for item_id in existing if item_id not in kept]
        if removed:
            self.store.delete("order_items", {"id": removed})
        for edit in edits:
            self.store.update(
                "order_items", {"quantity": edit.quantity, "notes": edit.notes}, {"id": edit.item_id}
            )

        items_total = sum(edit.quantity * (existing[edit.item_id]["unit_price"] or 0) for edit in edits)
        values = {"total_amount": items_total, "updated_at": self.clock.now()}
        if order.get("subtotal_amount") is not None and order.get("shipping_amount") is not None:
            values["subtotal_amount"] = items_total
            values["total_amount"] = items_total + order["shipping_amount"]
        self.store.update("orders", values, {"id": order["id"]})
        return self.get(order_number)
