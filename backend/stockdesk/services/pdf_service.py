# Overview: Renders invoices to PDF with ReportLab.

from __future__ import annotations

from io import BytesIO

from flask import current_app
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from ..models import INVOICE_VOIDED, Invoice, User

NAVY = HexColor("#1B2A4A")
SLATE = HexColor("#64748B")
SLATE_PALE = HexColor("#F1F5F9")
ROSE = HexColor("#BE185D")

W, H = A4
MARGIN = 45
CONTENT_W = W - 2 * MARGIN
ROW_H = 18
NAME_MAX_CHARS = 30

# x offsets of the line table columns
COL_PRODUCT = MARGIN + 8
COL_PRICE = MARGIN + 300
COL_QTY = MARGIN + 390
COL_SUBTOTAL = MARGIN + CONTENT_W - 8


def format_cents(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def _truncate(text: str, limit: int = NAME_MAX_CHARS) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class InvoicePdf:
    """One-page-at-a-time invoice layout on a ReportLab canvas."""

    def __init__(self, buffer: BytesIO, invoice: Invoice, owner: User, *, company: str, tax_rate: float):
        self.c = canvas.Canvas(buffer, pagesize=A4)
        self.c.setTitle(f"Invoice {invoice.number}")
        self.c.setAuthor(company)
        self.invoice = invoice
        self.owner = owner
        self.company = company
        self.tax_rate = tax_rate
        self.y = H - MARGIN

    def draw_header(self) -> None:
        c = self.c
        c.saveState()
        c.setFillColor(NAVY)
        c.rect(0, H - 90, W, 90, fill=1, stroke=0)
        c.setFillColor(HexColor("#FFFFFF"))
        c.setFont("Helvetica-Bold", 20)
        c.drawString(MARGIN, H - 50, self.company)
        c.setFont("Helvetica", 11)
        c.drawRightString(W - MARGIN, H - 45, f"INVOICE {self.invoice.number}")
        created = self.invoice.created_at.strftime("%Y-%m-%d %H:%M") if self.invoice.created_at else ""
        c.drawRightString(W - MARGIN, H - 62, created)
        c.restoreState()
        self.y = H - 120

    def draw_customer(self) -> None:
        c = self.c
        c.setFont("Helvetica-Bold", 11)
        c.setFillColor(NAVY)
        c.drawString(MARGIN, self.y, "Bill to")
        c.setFont("Helvetica", 10)
        c.setFillColor(SLATE)
        rows = [self.owner.full_name, self.owner.email]
        if self.owner.phone:
            rows.append(self.owner.phone)
        for row in rows:
            self.y -= 14
            c.drawString(MARGIN, self.y, row)

        c.setFont("Helvetica-Bold", 10)
        c.drawRightString(W - MARGIN, self.y, f"Status: {self.invoice.status}")
        self.y -= 30

    def _draw_table_header(self) -> None:
        c = self.c
        c.saveState()
        c.setFillColor(SLATE_PALE)
        c.rect(MARGIN, self.y - 5, CONTENT_W, ROW_H, fill=1, stroke=0)
        c.setFillColor(NAVY)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(COL_PRODUCT, self.y, "Product")
        c.drawRightString(COL_PRICE, self.y, "Unit price")
        c.drawRightString(COL_QTY, self.y, "Qty")
        c.drawRightString(COL_SUBTOTAL, self.y, "Subtotal")
        c.restoreState()
        self.y -= ROW_H + 4

    def _new_page(self) -> None:
        self.c.showPage()
        self.y = H - MARGIN
        self._draw_table_header()

    def draw_lines(self) -> None:
        c = self.c
        self._draw_table_header()
        c.setFont("Helvetica", 10)
        for line in self.invoice.lines:
            if self.y < MARGIN + 120:
                self._new_page()
                c.setFont("Helvetica", 10)
            c.setFillColor(NAVY)
            c.drawString(COL_PRODUCT, self.y, _truncate(line.product_name))
            c.drawRightString(COL_PRICE, self.y, format_cents(line.unit_price_cents))
            c.drawRightString(COL_QTY, self.y, str(line.quantity))
            c.drawRightString(COL_SUBTOTAL, self.y, format_cents(line.line_total_cents))
            self.y -= ROW_H
        c.setStrokeColor(SLATE)
        c.line(MARGIN, self.y + 8, W - MARGIN, self.y + 8)
        self.y -= 10

    def draw_totals(self) -> None:
        c = self.c
        subtotal = self.invoice.total_cents
        # Tax is informational; the stored total is what was charged.
        tax = int(round(subtotal * self.tax_rate))
        rows = [
            ("Subtotal", format_cents(subtotal)),
            (f"Tax ({self.tax_rate * 100:.0f}%)", format_cents(tax)),
            ("Total", format_cents(subtotal + tax)),
        ]
        for label, value in rows:
            c.setFont("Helvetica-Bold" if label == "Total" else "Helvetica", 10)
            c.drawRightString(COL_QTY, self.y, label)
            c.drawRightString(COL_SUBTOTAL, self.y, value)
            self.y -= 16

    def draw_void_banner(self) -> None:
        c = self.c
        c.saveState()
        c.setFillColor(ROSE)
        c.setFont("Helvetica-Bold", 48)
        c.translate(W / 2, H / 2)
        c.rotate(30)
        c.drawCentredString(0, 0, "VOIDED")
        c.restoreState()

        c.setFillColor(ROSE)
        c.setFont("Helvetica", 10)
        self.y -= 10
        c.drawString(MARGIN, self.y, f"Voided: {self.invoice.void_reason or ''}")

    def render(self) -> None:
        self.draw_header()
        self.draw_customer()
        self.draw_lines()
        self.draw_totals()
        if self.invoice.status == INVOICE_VOIDED:
            self.draw_void_banner()
        self.c.showPage()
        self.c.save()


def render_invoice_pdf(invoice: Invoice, owner: User) -> bytes:
    """Render an invoice as a PDF document and return its bytes."""
    buffer = BytesIO()
    InvoicePdf(
        buffer,
        invoice,
        owner,
        company=current_app.config["COMPANY_NAME"],
        tax_rate=current_app.config["INVOICE_TAX_RATE"],
    ).render()
    return buffer.getvalue()
