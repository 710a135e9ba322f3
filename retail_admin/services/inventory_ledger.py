"""Per-product, per-location stock quantities."""
from dataclasses import dataclass
from typing import List, Optional

from retail_admin.exceptions import NotFoundError, ValidationError
from retail_admin.logging_config import get_logger
from retail_admin.store.base import Row, Store

logger = get_logger(__name__)

BRANCH = "branch"
WAREHOUSE = "warehouse"


@dataclass(frozen=True)
class Location:
    """A branch or a warehouse. Stock rows reference exactly one of them."""
    kind: str
    id: str

    def __post_init__(self):
        if self.kind not in (BRANCH, WAREHOUSE):
            raise ValidationError(f"نوع موقع غير معروف: {self.kind}")
        if not self.id:
            raise ValidationError("يجب تحديد الموقع")

    @classmethod
    def branch(cls, branch_id: str) -> "Location":
        return cls(BRANCH, branch_id)

    @classmethod
    def warehouse(cls, warehouse_id: str) -> "Location":
        return cls(WAREHOUSE, warehouse_id)

    @property
    def column(self) -> str:
        return "branch_id" if self.kind == BRANCH else "warehouse_id"

    def filters(self) -> dict:
        """Filter matching this location and nothing else."""
        other = "warehouse_id" if self.kind == BRANCH else "branch_id"
        return {self.column: self.id, other: None}

    def columns(self) -> dict:
        """Column values for a new row at this location."""
        return {"branch_id": None, "warehouse_id": None, self.column: self.id}


class InventoryLedger:
    """Quantity and low-stock threshold per (product, location)."""

    table = "inventory"

    def __init__(self, store: Store):
        self.store = store

    def get(self, product_id: str, location: Location) -> Optional[Row]:
        return self.store.select_one(self.table, {"product_id": product_id, **location.filters()})

    def list(self, location: Location) -> List[Row]:
        return self.store.select(self.table, location.filters(), expand={"product": {}})

    def low_stock(self, location: Location) -> List[Row]:
        """Rows at or below their minimum stock."""
        return [row for row in self.list(location) if row["quantity"] <= row["min_stock"]]

    def adjust(self, product_id: str, location: Location, delta: int,
               create_missing: bool = False) -> Optional[Row]:
        """Apply a signed delta, floored at 0.

        A missing row is left missing unless ``create_missing`` is set and
        the delta is positive, in which case it is inserted with
        ``min_stock = 0``. Returns the resulting row or None.
        """
        row = self.get(product_id, location)
        if row is None:
            if create_missing and delta > 0:
                return self.store.insert(self.table, {
                    "product_id": product_id,
                    "quantity": delta,
                    "min_stock": 0,
                    **location.columns(),
                })[0]
            logger.info(
                "No inventory row to adjust",
                extra={"extra_fields": {"product_id": product_id, location.column: location.id}},
            )
            return None

        updated = self.store.increment(self.table, "quantity", delta, {"id": row["id"]})
        return updated[0] if updated else None

    def set_quantity(self, inventory_id: str, quantity: Optional[int] = None,
                     min_stock: Optional[int] = None) -> Row:
        values = {}
        if quantity is not None:
            if quantity < 0:
                raise ValidationError("الكمية لا يمكن أن تكون سالبة")
            values["quantity"] = quantity
        if min_stock is not None:
            if min_stock < 0:
                raise ValidationError("الحد الأدنى لا يمكن أن يكون سالباً")
            values["min_stock"] = min_stock
        if not values:
            raise ValidationError("لا توجد قيم للتحديث")

        rows = self.store.update(self.table, values, {"id": inventory_id})
        if not rows:
            raise NotFoundError("Inventory row not found")
        return rows[0]
