import re

import pytest

from retail_admin.config import settings
from retail_admin.exceptions import CommitError, PartialCommitError, ValidationError
from retail_admin.services.cart import Cart
from retail_admin.services.inventory_ledger import InventoryLedger
from retail_admin.services.invoices import SalesInvoiceCommitter, SalesSelections
from retail_admin.services.variant_ledger import VariantLedger


@pytest.fixture
def stocked(store, seed):
    location = seed["branch_location"]
    store.insert("inventory", [
        {"product_id": seed["shirt"]["id"], "quantity": 5, **location.columns()},
        {"product_id": seed["mug"]["id"], "quantity": 10, **location.columns()},
    ])
    store.insert("product_variants", [
        {"product_id": seed["shirt"]["id"], "name": "أحمر", "quantity": 3, **location.columns()},
        {"product_id": seed["shirt"]["id"], "name": "أزرق", "quantity": 2, **location.columns()},
    ])
    return seed


def _selections(seed, record=None):
    return SalesSelections(seed["branch"]["id"], (record or seed["record"])["id"])


def _quantity(store, seed, product):
    return InventoryLedger(store).get(product["id"], seed["branch_location"])["quantity"]


def test_sale_writes_header_items_and_mirror(store, clock, stocked):
    cart = Cart()
    cart.add(stocked["shirt"], 2, {"أحمر": 2})
    cart.add(stocked["mug"], 1, price=20)

    result = SalesInvoiceCommitter(store, clock).commit(cart, _selections(stocked), notes="هدية")

    assert re.fullmatch(r"INV-\d{13}-\d{1,3}", result.invoice_number)
    assert result.mirror_invoice_number == f"{result.invoice_number}-MAIN"
    assert result.total_amount == 220

    original = store.select_one("sales", {"invoice_number": result.invoice_number},
                                expand={"sale_items": {}})
    mirror = store.select_one("sales", {"invoice_number": result.mirror_invoice_number},
                              expand={"sale_items": {}})
    assert original["record_id"] == stocked["record"]["id"]
    assert original["invoice_type"] == "Sale Invoice"
    assert original["profit"] == (100 - 60) * 2 + (20 - 10)
    assert original["customer_id"] == settings.DEFAULT_CUSTOMER_ID
    assert original["time"] == "12:00:00"
    assert mirror["record_id"] == settings.MAIN_RECORD_ID
    assert mirror["notes"] == f"نسخة من الفاتورة الأصلية: {result.invoice_number} - هدية"

    def lines(sale):
        return sorted((i["product_id"], i["quantity"], i["unit_price"]) for i in sale["sale_items"])

    assert lines(original) == lines(mirror)
    notes = {i["product_id"]: i["notes"] for i in original["sale_items"]}
    assert notes[stocked["shirt"]["id"]] == "الألوان: أحمر (2)"


def test_sale_adjusts_inventory_and_variants(store, clock, stocked):
    cart = Cart()
    cart.add(stocked["shirt"], 3, {"أحمر": 2, "أزرق": 1})

    SalesInvoiceCommitter(store, clock).commit(cart, _selections(stocked))

    variants = {v["name"]: v["quantity"] for v in
                VariantLedger(store).list(stocked["shirt"]["id"], stocked["branch_location"])}
    assert _quantity(store, stocked, stocked["shirt"]) == 2
    assert variants == {"أحمر": 1, "أزرق": 1}


def test_sale_under_main_record_is_not_mirrored(store, clock, stocked):
    cart = Cart()
    cart.add(stocked["mug"], 1)

    result = SalesInvoiceCommitter(store, clock).commit(cart, _selections(stocked, stocked["main_record"]))

    assert result.mirror_invoice_number is None
    assert len(store.select("sales")) == 1


def test_sales_return_adds_stock_back(store, clock, stocked):
    cart = Cart()
    cart.add(stocked["shirt"], 2)

    result = SalesInvoiceCommitter(store, clock).commit(cart, _selections(stocked), is_return=True)

    sale = store.select_one("sales", {"invoice_number": result.invoice_number}, expand={"sale_items": {}})
    assert sale["invoice_type"] == "Sale Return"
    assert sale["total_amount"] == -200
    assert sale["sale_items"][0]["quantity"] == -2
    assert _quantity(store, stocked, stocked["shirt"]) == 7


def test_validation_happens_before_any_write(failing_store, clock, stocked):
    committer = SalesInvoiceCommitter(failing_store, clock)
    cart = Cart()
    cart.add(stocked["mug"], 1)

    with pytest.raises(ValidationError):
        committer.commit(cart, SalesSelections(None, stocked["record"]["id"]))
    with pytest.raises(ValidationError):
        committer.commit(Cart(), _selections(stocked))
    assert failing_store.calls == []


def test_header_failure_writes_nothing(store, failing_store, clock, stocked):
    failing_store.fail("insert", "sales")
    cart = Cart()
    cart.add(stocked["mug"], 1)

    with pytest.raises(CommitError):
        SalesInvoiceCommitter(failing_store, clock).commit(cart, _selections(stocked))

    assert store.select("sales") == []
    assert _quantity(store, stocked, stocked["mug"]) == 10


def test_item_failure_removes_header(store, failing_store, clock, stocked):
    failing_store.fail("insert", "sale_items")
    cart = Cart()
    cart.add(stocked["mug"], 1)

    with pytest.raises(PartialCommitError):
        SalesInvoiceCommitter(failing_store, clock).commit(cart, _selections(stocked))

    assert store.select("sales") == []
    assert _quantity(store, stocked, stocked["mug"]) == 10


def test_mirror_failure_keeps_invoice(store, failing_store, clock, stocked):
    failing_store.fail("insert", "sales", when=lambda row: row["record_id"] == settings.MAIN_RECORD_ID)
    cart = Cart()
    cart.add(stocked["mug"], 2)

    result = SalesInvoiceCommitter(failing_store, clock).commit(cart, _selections(stocked))

    assert result.mirror_invoice_number is None
    assert [s["invoice_number"] for s in store.select("sales")] == [result.invoice_number]
    assert _quantity(store, stocked, stocked["mug"]) == 8


def test_mirror_items_failure_removes_mirror_header(store, failing_store, clock, stocked):
    def mirror_items(rows):
        header = store.select_one("sales", {"id": rows[0]["sale_id"]})
        return header["record_id"] == settings.MAIN_RECORD_ID

    failing_store.fail("insert", "sale_items", when=mirror_items)
    cart = Cart()
    cart.add(stocked["mug"], 1)

    result = SalesInvoiceCommitter(failing_store, clock).commit(cart, _selections(stocked))

    assert result.mirror_invoice_number is None
    assert [s["invoice_number"] for s in store.select("sales")] == [result.invoice_number]


def test_stock_failure_is_swallowed(store, failing_store, clock, stocked):
    failing_store.fail("increment", "inventory")
    cart = Cart()
    cart.add(stocked["mug"], 1)

    result = SalesInvoiceCommitter(failing_store, clock).commit(cart, _selections(stocked))

    assert store.select_one("sales", {"invoice_number": result.invoice_number}) is not None
    assert _quantity(store, stocked, stocked["mug"]) == 10


def test_invoice_number_skips_numbers_already_taken(store, clock, stocked, monkeypatch):
    draws = iter([7, 7, 8])
    monkeypatch.setattr("retail_admin.services.invoices.random.randint", lambda low, high: next(draws))
    committer = SalesInvoiceCommitter(store, clock)

    numbers = []
    for _ in range(2):
        cart = Cart()
        cart.add(stocked["mug"], 1)
        numbers.append(committer.commit(cart, _selections(stocked)).invoice_number)

    millis = int(clock.now().timestamp() * 1000)
    assert numbers == [f"INV-{millis}-7", f"INV-{millis}-8"]


def test_invoice_number_gives_up_when_every_draw_is_taken(store, clock, stocked, monkeypatch):
    monkeypatch.setattr("retail_admin.services.invoices.random.randint", lambda low, high: 7)
    committer = SalesInvoiceCommitter(store, clock)
    cart = Cart()
    cart.add(stocked["mug"], 1)
    committer.commit(cart, _selections(stocked))

    with pytest.raises(CommitError):
        committer.commit(cart, _selections(stocked))
    assert len(store.select("sales", {"record_id": stocked["record"]["id"]})) == 1
