import json

import pytest

from retail_admin.exceptions import NotFoundError, ValidationError
from retail_admin.services.cart import (
    MAX_MANUAL_QUANTITY, Cart, ManualQuantitySelector, VariantOption, VariantQuantitySelector,
    describe_selection, discover_variant_options, load_cart,
)
from retail_admin.services.variant_ledger import DEFAULT_VARIANT_COLOR, TOTAL_UNSPECIFIED, UNSPECIFIED

SHIRT = {"id": "p1", "name": "قميص", "price": 100, "cost_price": 60}


def test_same_product_twice_gives_independent_lines():
    cart = Cart()
    red = cart.add(SHIRT, 2, {"أحمر": 2})
    blue = cart.add(SHIRT, 1, {"أزرق": 1})

    assert len(cart) == 2
    assert red.line_id != blue.line_id
    assert cart.total == 300

    cart.update_price(blue.line_id, 80)
    assert red.price == 100
    assert blue.price == 80
    assert cart.total == sum(line.total for line in cart) == 280


def test_add_rejects_bad_quantities():
    cart = Cart()
    with pytest.raises(ValidationError):
        cart.add(SHIRT, 0)
    with pytest.raises(ValidationError):
        cart.add(SHIRT, 3, {"أحمر": 1, "أزرق": 1})
    with pytest.raises(ValidationError):
        cart.add(SHIRT, MAX_MANUAL_QUANTITY + 1)
    cart.add(SHIRT, MAX_MANUAL_QUANTITY)
    assert len(cart) == 1


def test_remove_and_price_edits():
    cart = Cart()
    line = cart.add(SHIRT, 1)
    with pytest.raises(ValidationError):
        cart.update_price(line.line_id, -1)
    with pytest.raises(NotFoundError):
        cart.update_price("missing", 5)

    cart.remove(line.line_id)
    assert cart.total == 0


def test_load_cart_reads_products(store, seed):
    cart = load_cart(store, [
        {"product_id": seed["shirt"]["id"], "quantity": 2},
        {"product_id": seed["mug"]["id"], "quantity": 1, "price": 20},
    ])
    assert [line.price for line in cart] == [100, 20]
    assert cart.total == 220

    with pytest.raises(NotFoundError):
        load_cart(store, [{"product_id": "missing", "quantity": 1}])


def test_manual_selector_clamps():
    selector = ManualQuantitySelector()
    assert selector.decrement() == 1
    assert selector.set(20000) == 9999
    assert selector.increment() == 9999
    assert selector.set(5) == 5


def test_variant_selector_caps_at_available():
    selector = VariantQuantitySelector([VariantOption("أحمر", "#FF0000", 3), VariantOption("أزرق", "#0000FF", 2)])

    assert selector.set("أحمر", 5) == 3
    assert selector.set("أزرق", -1) == 0
    with pytest.raises(ValidationError):
        selector.set("أخضر", 1)
    with pytest.raises(ValidationError):
        selector.validate()

    selector.set("أزرق", 1)
    assert selector.total == 4
    assert selector.validate(4) == {"أحمر": 3, "أزرق": 1}
    with pytest.raises(ValidationError):
        selector.validate(5)


def test_discover_splits_description_colors_evenly():
    product = {
        **SHIRT,
        "description": json.dumps({"colors": [{"name": "أحمر"}, {"name": "أزرق", "color": "#123456"}]}),
        "video_url": json.dumps(["red.jpg", "blue.jpg"]),
    }
    options = discover_variant_options(product, 7, [])

    assert [(o.name, o.hex, o.available, o.image_url) for o in options] == [
        ("أحمر", "#FF0000", 3, "red.jpg"),
        ("أزرق", "#123456", 3, "blue.jpg"),
    ]


def test_discover_merges_variant_rows():
    product = {**SHIRT, "description": json.dumps({"colors": ["أحمر"]})}
    rows = [
        {"name": "أحمر", "quantity": 9, "variant_type": "color"},
        {"name": "كحلي", "quantity": 2, "variant_type": "color",
         "value": json.dumps({"image": "navy.jpg"})},
        {"name": "دائري", "quantity": 5, "variant_type": "shape"},
        {"name": UNSPECIFIED, "quantity": 3, "variant_type": "color"},
        {"name": UNSPECIFIED, "quantity": 1, "variant_type": "color"},
    ]
    options = discover_variant_options(product, 4, rows)

    assert [(o.name, o.available) for o in options] == [
        ("أحمر", 4), ("كحلي", 2), (TOTAL_UNSPECIFIED, 4),
    ]
    assert options[1].hex == "#000080"
    assert options[1].image_url == "navy.jpg"
    assert options[2].hex == DEFAULT_VARIANT_COLOR


def test_discover_without_concrete_colors_offers_nothing():
    rows = [{"name": UNSPECIFIED, "quantity": 3, "variant_type": "color"}]
    assert discover_variant_options({**SHIRT, "description": "قطن 100%"}, 3, rows) == []


def test_describe_selection():
    assert describe_selection({"أحمر": 2, "أزرق": 1, "أخضر": 0}) == "الألوان: أحمر (2), أزرق (1)"
    assert describe_selection({}) is None
