"""80mm thermal receipt rendering."""
from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import List, Optional

from retail_admin.config import settings
from retail_admin.exceptions import NotFoundError
from retail_admin.store.base import Store


@dataclass
class ReceiptLine:
    name: str
    quantity: int
    unit_price: float

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class ReceiptSnapshot:
    invoice_number: str
    created_at: datetime
    total_amount: float
    lines: List[ReceiptLine] = field(default_factory=list)
    company_name: Optional[str] = None
    logo_url: Optional[str] = None
    branch_name: Optional[str] = None
    branch_phone: Optional[str] = None
    record_name: Optional[str] = None
    operator_name: Optional[str] = None
    printed_at: Optional[datetime] = None


def load_receipt_snapshot(store: Store, invoice_number: str,
                          printed_at: Optional[datetime] = None,
                          operator_name: Optional[str] = None) -> ReceiptSnapshot:
    """Build a snapshot of a stored sales invoice.

    ``operator_name`` is the person printing; the footer shows it beside
    the record name.
    """
    sale = store.select_one(
        "sales",
        {"invoice_number": invoice_number},
        expand={"sale_items": {"product": {}}, "branch": {}, "record": {}},
    )
    if sale is None:
        raise NotFoundError(f"الفاتورة غير موجودة: {invoice_number}")

    branch = sale.get("branch") or {}
    record = sale.get("record") or {}
    return ReceiptSnapshot(
        invoice_number=sale["invoice_number"],
        created_at=sale["created_at"],
        total_amount=sale["total_amount"],
        lines=[
            ReceiptLine(
                name=(item.get("product") or {}).get("name") or item["product_id"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
            )
            for item in sale["sale_items"]
        ],
        company_name=settings.COMPANY_NAME or settings.APP_NAME,
        logo_url=settings.COMPANY_LOGO_URL,
        branch_name=branch.get("name"),
        branch_phone=branch.get("phone"),
        record_name=record.get("name"),
        operator_name=operator_name,
        printed_at=printed_at,
    )


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _stamp(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def render_receipt(snapshot: ReceiptSnapshot) -> str:
    """Render the receipt as a standalone right-to-left HTML page."""
    logo_html = ""
    if snapshot.logo_url:
        logo_html = f'<img class="logo" src="{escape(snapshot.logo_url)}" alt="">'

    branch_html = ""
    if snapshot.branch_name:
        phone = f" - {escape(snapshot.branch_phone)}" if snapshot.branch_phone else ""
        branch_html = f'<div class="meta">{escape(snapshot.branch_name)}{phone}</div>'

    html = f"""<!DOCTYPE html>
<html dir="rtl" lang="ar">
<head>
    <meta charset="UTF-8">
    <title>{escape(snapshot.invoice_number)}</title>
    <style>
        @page {{
            size: 80mm auto;
            margin: 0;
        }}
        body {{
            width: 80mm;
            margin: 0;
            padding: 4mm;
            font-family: Arial, sans-serif;
            font-size: 10pt;
        }}
        .header {{
            text-align: center;
            margin-bottom: 6px;
        }}
        .logo {{
            max-width: 40mm;
            max-height: 20mm;
        }}
        .company {{
            font-weight: bold;
            font-size: 13pt;
        }}
        .meta {{
            font-size: 9pt;
            color: #333;
        }}
        table {{
            width: 100%;
            border-collapse: collapse;
        }}
        th, td {{
            padding: 2px 0;
            text-align: right;
        }}
        th {{
            border-bottom: 1px dashed #000;
        }}
        .num {{
            text-align: center;
        }}
        .total-row td {{
            border-top: 1px dashed #000;
            font-weight: bold;
        }}
        .footer {{
            text-align: center;
            margin-top: 8px;
            font-size: 9pt;
        }}
    </style>
</head>
<body>
    <div class="header">
        {logo_html}
        <div class="company">{escape(snapshot.company_name or "")}</div>
        <div class="meta">{_stamp(snapshot.created_at)}</div>
        {branch_html}
        <div class="meta">رقم الفاتورة: {escape(snapshot.invoice_number)}</div>
    </div>
    <table>
        <thead>
            <tr>
                <th>الصنف</th>
                <th class="num">الكمية</th>
                <th class="num">السعر</th>
                <th class="num">الإجمالي</th>
            </tr>
        </thead>
        <tbody>
"""

    for line in snapshot.lines:
        html += f"""
            <tr>
                <td>{escape(line.name)}</td>
                <td class="num">{line.quantity}</td>
                <td class="num">{_money(line.unit_price)}</td>
                <td class="num">{_money(line.total)}</td>
            </tr>
"""

    operator = " - ".join(name for name in (snapshot.operator_name, snapshot.record_name) if name)
    html += f"""
            <tr class="total-row">
                <td colspan="3">الإجمالي</td>
                <td class="num">{_money(snapshot.total_amount)}</td>
            </tr>
        </tbody>
    </table>
    <div class="footer">
        <div>{escape(operator)}</div>
        <div>{_stamp(snapshot.printed_at)}</div>
    </div>
</body>
</html>
"""
    return html
