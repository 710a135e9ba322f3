"""Named sub-quantities (colors, shapes) per product and location.

The reserved name ``UNSPECIFIED`` holds stock not attributed to any
concrete variant. Purchase receiving writes into it, and earlier races
left some locations with several such rows; ``receive_into_bucket``
folds them back into one on every call.
"""
import json
from typing import List, Optional

from retail_admin.logging_config import get_logger
from retail_admin.models.inventory import VariantType
from retail_admin.services.inventory_ledger import Location
from retail_admin.store.base import Row, Store

logger = get_logger(__name__)

UNSPECIFIED = "غير محدد"
# Pseudo-variant offered in the cart; allocates from the UNSPECIFIED bucket.
TOTAL_UNSPECIFIED = "غير محدد الكلي"

DEFAULT_VARIANT_COLOR = "#6B7280"
UNSPECIFIED_VALUE = json.dumps(
    {"color": DEFAULT_VARIANT_COLOR, "description": "كمية غير محددة اللون - وضع الشراء"},
    ensure_ascii=False,
)


class VariantLedger:
    """Variant rows keyed by (product, location, variant_type, name)."""

    table = "product_variants"

    def __init__(self, store: Store):
        self.store = store

    def list(self, product_id: str, location: Location) -> List[Row]:
        return self.store.select(
            self.table,
            {"product_id": product_id, **location.filters()},
            order_by="created_at",
        )

    def find(self, product_id: str, location: Location, name: str,
             variant_type: str = VariantType.COLOR.value) -> List[Row]:
        return self.store.select(
            self.table,
            {
                "product_id": product_id,
                "variant_type": variant_type,
                "name": name,
                **location.filters(),
            },
            order_by="created_at",
        )

    def adjust(self, product_id: str, location: Location, name: str, delta: int,
               variant_type: str = VariantType.COLOR.value) -> Optional[Row]:
        """Apply a signed delta to a named variant, floored at 0.

        Selling the total-unspecified pseudo-variant draws from the
        unspecified bucket. A missing variant row is not created.
        """
        if name in (UNSPECIFIED, TOTAL_UNSPECIFIED):
            return self.receive_into_bucket(product_id, location, delta)

        rows = self.find(product_id, location, name, variant_type)
        if not rows:
            logger.info(
                f"No variant row named {name}",
                extra={"extra_fields": {"product_id": product_id, location.column: location.id}},
            )
            return None
        updated = self.store.increment(self.table, "quantity", delta, {"id": rows[0]["id"]})
        return updated[0] if updated else None

    def receive_into_bucket(self, product_id: str, location: Location, delta: int) -> Optional[Row]:
        """Fold every unspecified row into one, then apply ``delta``.

        The surviving row holds ``max(0, sum + delta)``; duplicates are
        deleted. With no existing row one is inserted, but only for a
        positive delta.
        """
        rows = self.find(product_id, location, UNSPECIFIED)
        if not rows:
            if delta <= 0:
                return None
            return self.store.insert(self.table, {
                "product_id": product_id,
                "variant_type": VariantType.COLOR.value,
                "name": UNSPECIFIED,
                "quantity": delta,
                "value": UNSPECIFIED_VALUE,
                **location.columns(),
            })[0]

        keep, duplicates = rows[0], rows[1:]
        total = max(0, sum(row["quantity"] or 0 for row in rows) + delta)
        updated = self.store.update(self.table, {"quantity": total}, {"id": keep["id"]})
        if duplicates:
            self.store.delete(self.table, {"id": [row["id"] for row in duplicates]})
            logger.info(
                f"Merged {len(duplicates)} duplicate unspecified variant rows",
                extra={"extra_fields": {"product_id": product_id, location.column: location.id}},
            )
        return updated[0] if updated else None

    def unspecified_total(self, product_id: str, location: Location) -> int:
        return sum(row["quantity"] or 0 for row in self.find(product_id, location, UNSPECIFIED))
