import pytest

from retail_admin.exceptions import NotFoundError
from retail_admin.services.cart import Cart
from retail_admin.services.invoices import SalesInvoiceCommitter, SalesSelections
from retail_admin.services.receipt import load_receipt_snapshot, render_receipt


def test_receipt_snapshot_and_render(store, clock, seed):
    cart = Cart()
    cart.add(seed["shirt"], 2)
    cart.add(seed["mug"], 1, price=20)
    result = SalesInvoiceCommitter(store, clock).commit(
        cart, SalesSelections(seed["branch"]["id"], seed["record"]["id"])
    )

    snapshot = load_receipt_snapshot(store, result.invoice_number, printed_at=clock.now())

    assert snapshot.total_amount == 220
    assert sorted((line.name, line.quantity, line.total) for line in snapshot.lines) == [
        ("قميص", 2, 200), ("كوب", 1, 20),
    ]
    assert snapshot.branch_name == "فرع المعادي"
    assert snapshot.record_name == "درج 1"

    html = render_receipt(snapshot)
    assert 'dir="rtl"' in html
    assert "80mm" in html
    assert result.invoice_number in html
    assert "220.00" in html
    assert "0100000000" in html


def test_receipt_escapes_text(store, clock, seed):
    product = store.insert("products", {"name": "<b>علبة</b>", "price": 5, "cost_price": 1})[0]
    cart = Cart()
    cart.add(product, 1)
    result = SalesInvoiceCommitter(store, clock).commit(
        cart, SalesSelections(seed["branch"]["id"], seed["main_record"]["id"])
    )

    html = render_receipt(load_receipt_snapshot(store, result.invoice_number))
    assert "&lt;b&gt;علبة&lt;/b&gt;" in html
    assert "<b>علبة</b>" not in html


def test_receipt_for_unknown_invoice(store):
    with pytest.raises(NotFoundError):
        load_receipt_snapshot(store, "INV-0-0")


def test_receipt_footer_names_operator_and_record(store, clock, seed):
    cart = Cart()
    cart.add(seed["mug"], 1)
    result = SalesInvoiceCommitter(store, clock).commit(
        cart, SalesSelections(seed["branch"]["id"], seed["record"]["id"])
    )

    snapshot = load_receipt_snapshot(store, result.invoice_number, printed_at=clock.now(),
                                     operator_name="سارة")

    assert snapshot.operator_name == "سارة"
    assert "سارة - درج 1" in render_receipt(snapshot)
    assert load_receipt_snapshot(store, result.invoice_number).operator_name is None
