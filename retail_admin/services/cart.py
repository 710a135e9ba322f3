"""Cart accumulation and variant quantity selection."""
import json
import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from retail_admin.exceptions import NotFoundError, ValidationError
from retail_admin.models.inventory import VariantType
from retail_admin.services.inventory_ledger import InventoryLedger, Location
from retail_admin.services.variant_ledger import (
    DEFAULT_VARIANT_COLOR, TOTAL_UNSPECIFIED, UNSPECIFIED, VariantLedger,
)
from retail_admin.store.base import Row, Store

MIN_MANUAL_QUANTITY = 1
MAX_MANUAL_QUANTITY = 9999

COLOR_HEX = {
    "أسود": "#000000",
    "أبيض": "#FFFFFF",
    "أحمر": "#FF0000",
    "أزرق": "#0000FF",
    "أخضر": "#008000",
    "أصفر": "#FFFF00",
    "برتقالي": "#FFA500",
    "بنفسجي": "#800080",
    "وردي": "#FFC0CB",
    "بني": "#A52A2A",
    "رمادي": "#808080",
    "فضي": "#C0C0C0",
    "ذهبي": "#FFD700",
    "كاشمير": "#D2B48C",
    "كحلي": "#000080",
    "زهري": "#FF69B4",
    "بيج": "#F5F5DC",
    "خمري": "#800000",
    "نيلي": "#4B0082",
}


@dataclass
class CartLine:
    """One pending line. ``price`` is a snapshot and may be edited later."""
    product: Row
    quantity: int
    price: float
    selected_colors: Dict[str, int] = field(default_factory=dict)
    line_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def product_id(self) -> str:
        return self.product["id"]

    @property
    def cost_price(self) -> float:
        return self.product.get("cost_price") or 0

    @property
    def total(self) -> float:
        return self.price * self.quantity


class Cart:
    """Ordered list of cart lines.

    Adding never merges: the same product added twice gives two lines,
    each with its own price.
    """

    def __init__(self):
        self.lines: List[CartLine] = []

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def add(self, product: Row, quantity: int, selected_colors: Optional[Dict[str, int]] = None,
            price: Optional[float] = None) -> CartLine:
        if quantity < MIN_MANUAL_QUANTITY:
            raise ValidationError("الكمية يجب أن تكون 1 على الأقل")
        if quantity > MAX_MANUAL_QUANTITY:
            raise ValidationError(f"الكمية لا يمكن أن تتجاوز {MAX_MANUAL_QUANTITY}")
        selected = {name: qty for name, qty in (selected_colors or {}).items() if qty > 0}
        if selected and sum(selected.values()) != quantity:
            raise ValidationError("مجموع كميات الألوان لا يطابق الكمية المطلوبة")

        line = CartLine(
            product=dict(product),
            quantity=quantity,
            price=product.get("price", 0) if price is None else price,
            selected_colors=selected,
        )
        self.lines.append(line)
        return line

    def _line(self, line_id: str) -> CartLine:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        raise NotFoundError("Cart line not found")

    def remove(self, line_id: str) -> None:
        self.lines.remove(self._line(line_id))

    def update_price(self, line_id: str, price: float) -> CartLine:
        if price < 0:
            raise ValidationError("السعر لا يمكن أن يكون سالباً")
        line = self._line(line_id)
        line.price = price
        return line

    @property
    def total(self) -> float:
        return sum(line.total for line in self.lines)

    def clear(self) -> None:
        self.lines = []


def load_cart(store: Store, lines: Iterable[Mapping]) -> Cart:
    """Build a cart from submitted lines, reading each product once."""
    lines = list(lines)
    ids = list({line["product_id"] for line in lines})
    products = {p["id"]: p for p in store.select("products", {"id": ids})} if ids else {}

    cart = Cart()
    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise NotFoundError(f"المنتج غير موجود: {line['product_id']}")
        cart.add(product, line["quantity"], line.get("selected_colors"), line.get("price"))
    return cart


class ManualQuantitySelector:
    """Stepper used when a product has no variants."""

    def __init__(self, value: int = MIN_MANUAL_QUANTITY):
        self.value = self._clamp(value)

    @staticmethod
    def _clamp(value: int) -> int:
        return max(MIN_MANUAL_QUANTITY, min(MAX_MANUAL_QUANTITY, value))

    def set(self, value: int) -> int:
        self.value = self._clamp(value)
        return self.value

    def increment(self) -> int:
        return self.set(self.value + 1)

    def decrement(self) -> int:
        return self.set(self.value - 1)


@dataclass
class VariantOption:
    name: str
    hex: str
    available: int
    image_url: Optional[str] = None


class VariantQuantitySelector:
    """Per-variant quantities; the line quantity is their sum."""

    def __init__(self, options: List[VariantOption]):
        self.options = {option.name: option for option in options}
        self.selections: Dict[str, int] = {name: 0 for name in self.options}

    def set(self, name: str, quantity: int) -> int:
        option = self.options.get(name)
        if option is None:
            raise ValidationError(f"اللون غير متوفر: {name}")
        self.selections[name] = max(0, min(option.available, quantity))
        return self.selections[name]

    @property
    def total(self) -> int:
        return sum(self.selections.values())

    def validate(self, expected_total: Optional[int] = None) -> Dict[str, int]:
        """Return the non-zero selections, or raise when they cannot be added."""
        if self.total == 0:
            raise ValidationError("يجب اختيار كمية من لون واحد على الأقل")
        if expected_total is not None and expected_total != self.total:
            raise ValidationError("مجموع كميات الألوان لا يطابق الكمية المطلوبة")
        return {name: qty for name, qty in self.selections.items() if qty > 0}


def _load_json(text: Optional[str]):
    # Legacy columns hold either JSON or plain text.
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _variant_hex(row: Row) -> str:
    value = _load_json(row.get("value"))
    if isinstance(value, dict) and value.get("color"):
        return value["color"]
    return COLOR_HEX.get(row["name"], DEFAULT_VARIANT_COLOR)


def _variant_image(row: Row) -> Optional[str]:
    if row.get("image_url"):
        return row["image_url"]
    value = _load_json(row.get("value"))
    if isinstance(value, dict):
        return value.get("image")
    return None


def discover_variant_options(product: Row, branch_quantity: int,
                             variant_rows: List[Row]) -> List[VariantOption]:
    """Merge description colors with explicit variant rows for one branch.

    Description colors share the branch quantity evenly. Explicit rows
    whose name is already offered are skipped. The total-unspecified
    pseudo-variant is appended when a concrete color exists and the
    unspecified bucket holds stock.
    """
    options: List[VariantOption] = []
    seen = set()

    description = _load_json(product.get("description"))
    colors = description.get("colors") if isinstance(description, dict) else None
    if isinstance(colors, list) and colors:
        images = _load_json(product.get("video_url"))
        images = images if isinstance(images, list) else []
        per_color = math.floor((branch_quantity or 0) / len(colors))
        for index, color in enumerate(colors):
            if isinstance(color, str):
                color = {"name": color}
            if not isinstance(color, dict) or not color.get("name"):
                continue
            name = color["name"]
            image = color.get("image") or (images[index] if index < len(images) else None)
            options.append(VariantOption(
                name=name,
                hex=color.get("color") or COLOR_HEX.get(name, DEFAULT_VARIANT_COLOR),
                available=per_color,
                image_url=image,
            ))
            seen.add(name)

    unspecified = 0
    for row in variant_rows:
        if row.get("variant_type", VariantType.COLOR.value) != VariantType.COLOR.value:
            continue
        if row["name"] == UNSPECIFIED:
            unspecified += row.get("quantity") or 0
            continue
        if row["name"] in seen:
            continue
        options.append(VariantOption(
            name=row["name"],
            hex=_variant_hex(row),
            available=row.get("quantity") or 0,
            image_url=_variant_image(row),
        ))
        seen.add(row["name"])

    if options and unspecified > 0:
        options.append(VariantOption(TOTAL_UNSPECIFIED, DEFAULT_VARIANT_COLOR, unspecified))
    return options


def check_variant_availability(store: Store, lines: Iterable[CartLine], location: Location) -> None:
    """Reject color selections larger than what ``location`` offers.

    Lines of the same product draw on the same options, so their
    selections add up before being compared.
    """
    inventory = InventoryLedger(store)
    variants = VariantLedger(store)
    selectors: Dict[str, VariantQuantitySelector] = {}
    for line in lines:
        if not line.selected_colors:
            continue
        selector = selectors.get(line.product_id)
        if selector is None:
            stock = inventory.get(line.product_id, location)
            options = discover_variant_options(
                line.product,
                stock["quantity"] if stock else 0,
                variants.list(line.product_id, location),
            )
            selector = selectors[line.product_id] = VariantQuantitySelector(options)
        for name, quantity in line.selected_colors.items():
            wanted = selector.selections.get(name, 0) + quantity
            if selector.set(name, wanted) != wanted:
                raise ValidationError(
                    f"الكمية المطلوبة من {name} ({wanted}) أكبر من المتاح "
                    f"({selector.options[name].available})"
                )


def describe_selection(selected_colors: Dict[str, int]) -> Optional[str]:
    """Readable line note, e.g. ``الألوان: أحمر (2), أزرق (1)``."""
    parts = [f"{name} ({qty})" for name, qty in selected_colors.items() if qty > 0]
    if not parts:
        return None
    return "الألوان: " + ", ".join(parts)
