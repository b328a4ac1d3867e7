"""PDF invoice and shipping label rendering (reportlab platypus)."""

from __future__ import annotations

from decimal import Decimal
from io import BytesIO
from typing import List

from django.conf import settings
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from modules.orders.constants import SHIPPING_LABEL_DEFAULTS
from modules.orders.models import Order

_HEADER_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#333333")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]
)


def _money(value: Decimal) -> str:
    return f"${Decimal(value):.2f}"


def _item_label(item) -> str:
    product = item.product
    if product.collection:
        return f"{product.collection} - {product.name}"[:45]
    return product.name[:45]


def _address_lines(shipping: dict) -> List[str]:
    city_line = " ".join(
        part for part in (f"{shipping.get('city', '')},", shipping.get("state", ""), shipping.get("zip", "")) if part
    )
    return [
        shipping.get("name", ""),
        shipping.get("address", ""),
        city_line.strip(", "),
        shipping.get("country", ""),
    ]


def render_invoice(order: Order) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=letter, rightMargin=50, leftMargin=50, topMargin=50, bottomMargin=50
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("InvoiceTitle", parent=styles["Heading1"], fontSize=22, spaceAfter=16)

    customer = order.customer
    shipping = order.shipping_info or {}
    elements = [
        Paragraph(settings.STORE_NAME, title_style),
        Paragraph(f"Invoice #{order.order_number}", styles["Heading2"]),
        Paragraph(f"Date: {order.created_at:%Y-%m-%d}", styles["Normal"]),
        Spacer(1, 16),
        Paragraph("<b>Bill To:</b>", styles["Normal"]),
        Paragraph(customer.full_name or customer.email, styles["Normal"]),
        Paragraph(customer.email, styles["Normal"]),
        Spacer(1, 8),
        Paragraph("<b>Ship To:</b>", styles["Normal"]),
    ]
    elements.extend(Paragraph(line, styles["Normal"]) for line in _address_lines(shipping) if line)
    elements.append(Spacer(1, 16))

    rows = [["Item", "Qty", "Price", "Total"]]
    subtotal = Decimal("0.00")
    for item in order.items.all():
        rows.append([_item_label(item), str(item.quantity), _money(item.unit_price), _money(item.subtotal)])
        subtotal += item.subtotal
    table = Table(rows, colWidths=[270, 50, 80, 80])
    table.setStyle(_HEADER_STYLE)
    elements.append(table)
    elements.append(Spacer(1, 16))

    totals = [["", "", "Subtotal:", _money(subtotal)]]
    if order.discount_amount:
        totals.append(["", "", f"Discount ({order.discount_code}):", f"-{_money(order.discount_amount)}"])
    totals.append(["", "", "Total:", _money(order.total_amount)])
    totals_table = Table(totals, colWidths=[270, 50, 80, 80])
    totals_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
                ("FONTNAME", (-2, -1), (-1, -1), "Helvetica-Bold"),
            ]
        )
    )
    elements.append(totals_table)
    elements.append(Spacer(1, 24))

    if (order.payment_intent_id or "").startswith("pi_"):
        method = "Credit Card"
    else:
        method = order.get_payment_method_display()
    elements.append(
        Paragraph(
            f"Payment: {method} ({order.get_payment_status_display()})", styles["Normal"]
        )
    )

    doc.build(elements)
    return buffer.getvalue()


def render_shipping_label(order: Order) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=(4 * inch, 6 * inch),
        rightMargin=12,
        leftMargin=12,
        topMargin=12,
        bottomMargin=12,
    )
    styles = getSampleStyleSheet()
    big = ParagraphStyle("LabelBig", parent=styles["Normal"], fontSize=12, leading=15)

    shipping = order.shipping_info or {}
    elements = [
        Paragraph(f"<b>FROM:</b> {settings.STORE_NAME}", styles["Normal"]),
        Spacer(1, 10),
        Paragraph("<b>SHIP TO:</b>", big),
    ]
    elements.extend(Paragraph(line, big) for line in _address_lines(shipping) if line)
    elements.append(Spacer(1, 10))

    details = [
        ["Order", order.order_number],
        ["Service", SHIPPING_LABEL_DEFAULTS["service_level"]],
        ["Weight", f"{SHIPPING_LABEL_DEFAULTS['weight']} lb"],
        ["Dimensions", f"{SHIPPING_LABEL_DEFAULTS['dimensions']} in"],
        ["Tracking", order.tracking_number or "Pending"],
    ]
    details_table = Table(details, colWidths=[70, 190])
    details_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
            ]
        )
    )
    elements.append(details_table)
    elements.append(Spacer(1, 10))

    contents = [["Contents", "Qty"]]
    contents.extend([_item_label(item), str(item.quantity)] for item in order.items.all())
    contents_table = Table(contents, colWidths=[220, 40])
    contents_table.setStyle(_HEADER_STYLE)
    elements.append(contents_table)

    doc.build(elements)
    return buffer.getvalue()
