"""
Invoice PDF rendering with ReportLab.
"""
import io
from decimal import Decimal
from typing import Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.models.company import Company
from app.models.customer import Customer
from app.models.invoice import Invoice, InvoiceItem

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN = 50


def _money(value, currency: str) -> str:
    return f"{currency} {Decimal(value or 0):.2f}"


def _date(value) -> str:
    return value.strftime("%d %B %Y") if value is not None else "-"


def render_invoice_pdf(
    invoice: Invoice,
    items: Sequence[InvoiceItem],
    *,
    company: Optional[Company] = None,
    customer: Optional[Customer] = None,
) -> bytes:
    buf = io.BytesIO()
    width, height = A4
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Invoice {invoice.invoice_number}")

    y = height - MARGIN
    c.setFont(FONT_BOLD, 20)
    c.drawString(MARGIN, y, "INVOICE")
    c.setFont(FONT, 10)
    c.drawRightString(width - MARGIN, y, invoice.invoice_number)

    y -= 30
    if company is not None:
        c.setFont(FONT_BOLD, 11)
        c.drawString(MARGIN, y, company.name)
        c.setFont(FONT, 9)
        for line in (company.email, company.phone):
            if line:
                y -= 13
                c.drawString(MARGIN, y, line)

    y -= 30
    c.setFont(FONT_BOLD, 10)
    c.drawString(MARGIN, y, "Bill to")
    c.setFont(FONT, 9)
    if customer is not None:
        for line in (customer.full_name, customer.address, customer.city, customer.postcode, customer.email):
            if line:
                y -= 13
                c.drawString(MARGIN, y, line)

    meta_y = y + 13 * 5
    c.drawRightString(width - MARGIN, meta_y, f"Issued: {_date(invoice.issued_at)}")
    c.drawRightString(width - MARGIN, meta_y - 13, f"Due: {_date(invoice.due_at)}")
    c.drawRightString(width - MARGIN, meta_y - 26, f"Status: {invoice.status}")

    y -= 35
    c.setFillColor(colors.HexColor("#f1f5f9"))
    c.rect(MARGIN, y - 5, width - 2 * MARGIN, 18, stroke=0, fill=1)
    c.setFillColor(colors.black)
    c.setFont(FONT_BOLD, 9)
    c.drawString(MARGIN + 5, y, "Description")
    c.drawRightString(width - MARGIN - 160, y, "Qty")
    c.drawRightString(width - MARGIN - 80, y, "Unit price")
    c.drawRightString(width - MARGIN - 5, y, "Amount")

    c.setFont(FONT, 9)
    for item in items:
        y -= 18
        c.drawString(MARGIN + 5, y, item.title[:70])
        c.drawRightString(width - MARGIN - 160, y, f"{Decimal(item.quantity or 0):.2f}")
        c.drawRightString(width - MARGIN - 80, y, _money(item.unit_price, invoice.currency))
        c.drawRightString(width - MARGIN - 5, y, _money(item.amount, invoice.currency))

    y -= 30
    for label, value in (
        ("Subtotal", invoice.subtotal),
        (f"Tax ({Decimal(invoice.tax_rate or 0):.2f}%)", invoice.tax_amount),
        ("Discount", invoice.discount_amount),
    ):
        c.drawRightString(width - MARGIN - 80, y, label)
        c.drawRightString(width - MARGIN - 5, y, _money(value, invoice.currency))
        y -= 14
    c.setFont(FONT_BOLD, 11)
    c.drawRightString(width - MARGIN - 80, y, "Total")
    c.drawRightString(width - MARGIN - 5, y, _money(invoice.total, invoice.currency))

    c.setFont(FONT, 8)
    footer_y = MARGIN
    for text in (invoice.terms, invoice.notes):
        if text:
            c.drawString(MARGIN, footer_y, text[:120])
            footer_y += 12

    c.showPage()
    c.save()
    return buf.getvalue()
