"""
Invoice committers.

A commit is a fixed sequence of store calls: header, line items, the
main-record mirror, then stock adjustments. Only the header and the
line items are allowed to fail the commit. A line-item failure deletes
the header again so no orphan header is left behind. Mirror and stock
failures are logged and swallowed because the invoice itself is the
authoritative record; stock may therefore drift from invoices until it
is corrected by hand.

Inside a store procedure the same committers run with
``tolerate_secondary_failures=False`` so every step shares the
procedure's transaction and any failure rolls everything back.
"""
import random
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from retail_admin.clock import Clock, SystemClock, epoch_millis
from retail_admin.config import settings
from retail_admin.exceptions import CommitError, PartialCommitError, StoreError, ValidationError
from retail_admin.logging_config import get_logger
from retail_admin.models.invoice import InvoiceType
from retail_admin.services.cart import CartLine, describe_selection
from retail_admin.services.inventory_ledger import BRANCH, InventoryLedger, Location
from retail_admin.services.variant_ledger import VariantLedger
from retail_admin.store.base import Row, Store

logger = get_logger(__name__)

PURCHASE_UNSPECIFIED_NOTE = "غير محدد - وضع الشراء"
TRANSFER_NOTE_PREFIX = "[TRANSFER]"
INVOICE_NUMBER_ATTEMPTS = 10


@dataclass
class SalesSelections:
    branch_id: Optional[str]
    record_id: Optional[str]
    customer_id: Optional[str] = None


@dataclass
class PurchaseSelections:
    supplier_id: Optional[str]
    location: Optional[Location]
    record_id: Optional[str]


@dataclass
class InvoiceResult:
    invoice_id: str
    invoice_number: str
    total_amount: float
    mirror_invoice_number: Optional[str] = None


class InvoiceCommitter:
    """Shared header/items/mirror sequence."""

    header_table: str = ""
    items_table: str = ""
    items_fk: str = ""
    number_prefix: str = ""
    header_error: str = "خطأ في إنشاء الفاتورة"
    items_error: str = "خطأ في إضافة عناصر الفاتورة"
    mirror_note: str = "نسخة من الفاتورة الأصلية"

    def __init__(
        self,
        store: Store,
        clock: Optional[Clock] = None,
        main_record_id: Optional[str] = None,
        tolerate_secondary_failures: bool = True,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.main_record_id = main_record_id or settings.MAIN_RECORD_ID
        self.tolerate_secondary_failures = tolerate_secondary_failures
        self.inventory = InventoryLedger(store)
        self.variants = VariantLedger(store)

    def _candidate_number(self, attempt: int) -> str:
        return f"{self.number_prefix}-{epoch_millis(self.clock.now())}-{random.randint(0, 999)}"

    def new_invoice_number(self) -> str:
        """A number no header in ``header_table`` carries yet."""
        for attempt in range(INVOICE_NUMBER_ATTEMPTS):
            number = self._candidate_number(attempt)
            if self.store.select_one(self.header_table, {"invoice_number": number}) is None:
                return number
        raise CommitError(f"{self.header_error}: تعذر توليد رقم فاتورة جديد")

    def _insert_header(self, header: Row) -> Row:
        try:
            return self.store.insert(self.header_table, header)[0]
        except StoreError as exc:
            raise CommitError(f"{self.header_error}: {exc.message}") from exc

    def _insert_items(self, header_row: Row, items: List[Row]) -> List[Row]:
        rows = [{**item, self.items_fk: header_row["id"]} for item in items]
        try:
            return self.store.insert(self.items_table, rows)
        except StoreError as exc:
            self._delete_header(header_row)
            raise PartialCommitError(f"{self.items_error}: {exc.message}") from exc

    def _delete_header(self, header_row: Row) -> None:
        try:
            self.store.delete(self.header_table, {"id": header_row["id"]})
        except StoreError:
            logger.error(
                f"Could not roll back invoice header {header_row['invoice_number']}",
                exc_info=True,
                extra={"extra_fields": {"invoice_number": header_row["invoice_number"]}},
            )

    def _mirror_notes(self, invoice_number: str, notes: Optional[str]) -> str:
        text = f"{self.mirror_note}: {invoice_number}"
        return f"{text} - {notes}" if notes else text

    def _mirror(self, header: Row, items: List[Row], notes: Optional[str]) -> Optional[Row]:
        """Copy the invoice under the main record unless it is already there."""
        if header["record_id"] == self.main_record_id:
            return None

        invoice_number = header["invoice_number"]
        mirror = {
            **header,
            "invoice_number": f"{invoice_number}-MAIN",
            "record_id": self.main_record_id,
            "notes": self._mirror_notes(invoice_number, notes),
        }
        try:
            mirror_row = self.store.insert(self.header_table, mirror)[0]
        except StoreError:
            if not self.tolerate_secondary_failures:
                raise
            logger.warning(
                f"Main record copy of {invoice_number} was not created",
                exc_info=True,
                extra={"extra_fields": {"invoice_number": invoice_number}},
            )
            return None

        try:
            self.store.insert(
                self.items_table,
                [{**item, self.items_fk: mirror_row["id"]} for item in items],
            )
        except StoreError:
            if not self.tolerate_secondary_failures:
                raise
            logger.warning(
                f"Main record copy of {invoice_number} has no items; removing it",
                exc_info=True,
                extra={"extra_fields": {"invoice_number": invoice_number}},
            )
            self._delete_header(mirror_row)
            return None
        return mirror_row

    def _stock_write(self, description: str, write: Callable[[], object], **fields) -> None:
        try:
            write()
        except StoreError:
            if not self.tolerate_secondary_failures:
                raise
            logger.warning(f"{description} failed", exc_info=True, extra={"extra_fields": fields})

    def _time_fields(self) -> Row:
        now = self.clock.now()
        return {"time": now.strftime("%H:%M:%S")}


class SalesInvoiceCommitter(InvoiceCommitter):
    header_table = "sales"
    items_table = "sale_items"
    items_fk = "sale_id"
    number_prefix = "INV"

    def __init__(self, store: Store, clock: Optional[Clock] = None,
                 main_record_id: Optional[str] = None,
                 default_customer_id: Optional[str] = None,
                 tolerate_secondary_failures: bool = True):
        super().__init__(store, clock, main_record_id, tolerate_secondary_failures)
        self.default_customer_id = default_customer_id or settings.DEFAULT_CUSTOMER_ID

    def validate(self, lines, selections: SalesSelections) -> None:
        if not selections.branch_id or not selections.record_id:
            raise ValidationError("يجب تحديد الفرع والسجل قبل إنشاء الفاتورة")
        if not lines:
            raise ValidationError("لا يمكن إنشاء فاتورة بدون منتجات")

    def commit(
        self,
        cart_lines: Iterable[CartLine],
        selections: SalesSelections,
        is_return: bool = False,
        notes: Optional[str] = None,
        payment_method: str = "cash",
        paid_amount: Optional[float] = None,
        order_number: Optional[str] = None,
    ) -> InvoiceResult:
        lines = list(cart_lines)
        self.validate(lines, selections)

        sign = -1 if is_return else 1
        total = sign * sum(line.total for line in lines)
        profit = sign * sum((line.price - line.cost_price) * line.quantity for line in lines)

        header = {
            "invoice_number": self.new_invoice_number(),
            "invoice_type": (InvoiceType.SALE_RETURN if is_return else InvoiceType.SALE_INVOICE).value,
            "total_amount": total,
            "tax_amount": 0,
            "discount_amount": 0,
            "profit": profit,
            "paid_amount": paid_amount,
            "payment_method": payment_method,
            "branch_id": selections.branch_id,
            "customer_id": selections.customer_id or self.default_customer_id,
            "record_id": selections.record_id,
            "order_number": order_number,
            "notes": notes or None,
            **self._time_fields(),
        }
        items = [
            {
                "product_id": line.product_id,
                "quantity": sign * line.quantity,
                "unit_price": line.price,
                "cost_price": line.cost_price,
                "discount": 0,
                "notes": describe_selection(line.selected_colors),
            }
            for line in lines
        ]

        header_row = self._insert_header(header)
        self._insert_items(header_row, items)
        mirror_row = self._mirror(header, items, notes)

        location = Location.branch(selections.branch_id)
        for line in lines:
            delta = line.quantity if is_return else -line.quantity
            self._stock_write(
                "Inventory update",
                lambda: self.inventory.adjust(line.product_id, location, delta),
                invoice_number=header["invoice_number"],
                product_id=line.product_id,
                branch_id=location.id,
            )
            for name, quantity in line.selected_colors.items():
                self._stock_write(
                    "Variant update",
                    lambda: self.variants.adjust(
                        line.product_id, location, name, quantity if is_return else -quantity
                    ),
                    invoice_number=header["invoice_number"],
                    product_id=line.product_id,
                    branch_id=location.id,
                    variant=name,
                )

        logger.info(
            f"Sales invoice {header['invoice_number']} created",
            extra={"extra_fields": {
                "invoice_number": header["invoice_number"],
                "total_amount": total,
                "lines": len(lines),
                "is_return": is_return,
            }},
        )
        return InvoiceResult(
            invoice_id=header_row["id"],
            invoice_number=header["invoice_number"],
            total_amount=total,
            mirror_invoice_number=mirror_row["invoice_number"] if mirror_row else None,
        )


class PurchaseInvoiceCommitter(InvoiceCommitter):
    header_table = "purchase_invoices"
    items_table = "purchase_invoice_items"
    items_fk = "purchase_invoice_id"
    number_prefix = "PINV"
    header_error = "خطأ في إنشاء فاتورة الشراء"
    items_error = "خطأ في إضافة عناصر فاتورة الشراء"
    mirror_note = "نسخة من فاتورة الشراء الأصلية"

    def validate(self, lines, selections: PurchaseSelections) -> None:
        if not selections.supplier_id or selections.location is None or not selections.record_id:
            raise ValidationError("يجب تحديد المورد والمخزن والسجل قبل إنشاء فاتورة الشراء")
        if not lines:
            raise ValidationError("لا يمكن إنشاء فاتورة شراء بدون منتجات")

    def commit(
        self,
        cart_lines: Iterable[CartLine],
        selections: PurchaseSelections,
        is_return: bool = False,
        notes: Optional[str] = None,
    ) -> InvoiceResult:
        lines = list(cart_lines)
        self.validate(lines, selections)

        sign = -1 if is_return else 1
        total = sign * sum(line.total for line in lines)
        location = selections.location

        header = {
            "invoice_number": self.new_invoice_number(),
            "invoice_type": (InvoiceType.PURCHASE_RETURN if is_return else InvoiceType.PURCHASE_INVOICE).value,
            "invoice_date": self.clock.now().date(),
            "supplier_id": selections.supplier_id,
            "total_amount": total,
            "tax_amount": 0,
            "discount_amount": 0,
            "net_amount": total,
            "payment_status": "pending",
            "record_id": selections.record_id,
            "notes": notes or None,
            "is_active": True,
            **location.columns(),
            **self._time_fields(),
        }
        items = [
            {
                "product_id": line.product_id,
                "quantity": sign * line.quantity,
                "unit_purchase_price": line.price,
                "total_price": sign * line.total,
                "discount_amount": 0,
                "tax_amount": 0,
                "notes": describe_selection(line.selected_colors) or PURCHASE_UNSPECIFIED_NOTE,
            }
            for line in lines
        ]

        header_row = self._insert_header(header)
        self._insert_items(header_row, items)
        mirror_row = self._mirror(header, items, notes)

        for line in lines:
            delta = -line.quantity if is_return else line.quantity
            fields = {
                "invoice_number": header["invoice_number"],
                "product_id": line.product_id,
                location.column: location.id,
            }
            # A return never materializes a missing inventory row.
            self._stock_write(
                "Inventory update",
                lambda: self.inventory.adjust(line.product_id, location, delta,
                                              create_missing=not is_return),
                **fields,
            )
            self._stock_write(
                "Unspecified variant update",
                lambda: self.variants.receive_into_bucket(line.product_id, location, delta),
                **fields,
            )

        logger.info(
            f"Purchase invoice {header['invoice_number']} created",
            extra={"extra_fields": {
                "invoice_number": header["invoice_number"],
                "total_amount": total,
                "lines": len(lines),
                "is_return": is_return,
            }},
        )
        return InvoiceResult(
            invoice_id=header_row["id"],
            invoice_number=header["invoice_number"],
            total_amount=total,
            mirror_invoice_number=mirror_row["invoice_number"] if mirror_row else None,
        )


class TransferInvoiceCommitter(InvoiceCommitter):
    """Moves stock between two locations under the transfer record.

    Unlike sales and purchases, a stock failure here aborts the transfer.
    """

    header_table = "purchase_invoices"
    items_table = "purchase_invoice_items"
    items_fk = "purchase_invoice_id"
    number_prefix = "TR"
    header_error = "خطأ في إنشاء فاتورة النقل"
    items_error = "خطأ في إنشاء عناصر النقل"

    def __init__(self, store: Store, clock: Optional[Clock] = None,
                 transfer_record_name: Optional[str] = None):
        super().__init__(store, clock, tolerate_secondary_failures=False)
        self.transfer_record_name = transfer_record_name or settings.TRANSFER_RECORD_NAME

    def _candidate_number(self, attempt: int) -> str:
        number = f"{self.number_prefix}-{epoch_millis(self.clock.now())}"
        return f"{number}-{attempt}" if attempt else number

    def validate(self, lines, from_location: Optional[Location], to_location: Optional[Location]) -> None:
        if not lines:
            raise ValidationError("لا يمكن إنشاء فاتورة نقل بدون منتجات")
        if from_location is None or to_location is None or from_location == to_location:
            raise ValidationError("يجب تحديد موقعين مختلفين للنقل")

    def transfer_record(self) -> Row:
        """The transfer record, created the first time it is needed."""
        record = self.store.select_one("records", {"name": self.transfer_record_name})
        if record is None:
            record = self.store.insert("records", {
                "name": self.transfer_record_name,
                "is_active": True,
                "is_primary": False,
            })[0]
            logger.info(f"Created transfer record {record['id']}")
        return record

    def _location_name(self, location: Location) -> str:
        table = "branches" if location.kind == BRANCH else "warehouses"
        row = self.store.select_one(table, {"id": location.id})
        return row["name"] if row else location.id

    def commit(self, cart_lines: Iterable[CartLine], from_location: Optional[Location],
               to_location: Optional[Location]) -> InvoiceResult:
        lines = list(cart_lines)
        self.validate(lines, from_location, to_location)

        record = self.transfer_record()
        note = (
            f"{TRANSFER_NOTE_PREFIX} نقل من {self._location_name(from_location)} "
            f"إلى {self._location_name(to_location)}"
        )
        header = {
            "invoice_number": self.new_invoice_number(),
            "invoice_type": InvoiceType.PURCHASE_INVOICE.value,
            "invoice_date": self.clock.now().date(),
            "supplier_id": None,
            "total_amount": 0,
            "tax_amount": 0,
            "discount_amount": 0,
            "net_amount": 0,
            "record_id": record["id"],
            "notes": note,
            "is_active": True,
            **to_location.columns(),
            **self._time_fields(),
        }
        items = [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "unit_purchase_price": 0,
                "total_price": 0,
                "notes": note,
            }
            for line in lines
        ]

        header_row = self._insert_header(header)
        self._insert_items(header_row, items)

        for line in lines:
            if self.inventory.get(line.product_id, from_location) is None:
                name = line.product.get("name", line.product_id)
                raise CommitError(f"خطأ في الحصول على المخزون الحالي للمنتج {name}")
            self.inventory.adjust(line.product_id, from_location, -line.quantity)
            self.inventory.adjust(line.product_id, to_location, line.quantity, create_missing=True)

        logger.info(
            f"Transfer invoice {header['invoice_number']} created",
            extra={"extra_fields": {
                "invoice_number": header["invoice_number"],
                "from": from_location.id,
                "to": to_location.id,
                "lines": len(lines),
            }},
        )
        return InvoiceResult(
            invoice_id=header_row["id"],
            invoice_number=header["invoice_number"],
            total_amount=0,
        )
