from __future__ import annotations

from decimal import Decimal
from io import BytesIO
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from client_portal.core.i18n import translate
from client_portal.models.invoice import Invoice


TWOPLACES = Decimal("0.01")


def _q(value: Optional[Decimal]) -> Decimal:
    return Decimal(value or Decimal("0.00")).quantize(TWOPLACES)


def _fmt_date(value) -> str:
    return value.strftime("%d %b %Y") if value else "-"


def _draw_header(c: canvas.Canvas, invoice: Invoice, locale: Optional[str]) -> None:
    width, height = A4
    top = height - 18 * mm

    company_name = invoice.company.name if invoice.company else ""
    c.setFont("Helvetica-Bold", 14)
    c.drawCentredString(width / 2, top, company_name)

    right_x = width - 20 * mm
    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(right_x, top, translate("invoice_date", locale))
    c.setFont("Helvetica", 10)
    c.drawRightString(right_x, top - 5 * mm, _fmt_date(invoice.date))

    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(right_x, top - 11 * mm, translate("invoice", locale))
    c.setFont("Helvetica", 10)
    c.drawRightString(right_x, top - 16 * mm, invoice.number or "-")


def _draw_party_block(c: canvas.Canvas, invoice: Invoice, locale: Optional[str]) -> float:
    _width, height = A4
    left = 20 * mm
    y = height - 50 * mm

    c.setStrokeColor(colors.black)
    c.setLineWidth(0.8)

    c.setFont("Helvetica-Bold", 11)
    c.drawString(left, y, translate("invoice", locale).upper())
    y -= 6 * mm

    rows = [
        ("Client", invoice.client.name if invoice.client else "-"),
        (translate("due_date", locale), _fmt_date(invoice.due_date)),
    ]
    if invoice.po_number:
        rows.append((translate("po_number", locale), invoice.po_number))

    for label, value in rows:
        c.setFont("Helvetica-Bold", 9)
        c.drawString(left, y, f"{label}:")
        c.setFont("Helvetica", 9)
        c.drawString(left + 35 * mm, y, str(value)[:100])
        y -= 5 * mm

    return y - 4 * mm


def _draw_totals(c: canvas.Canvas, invoice: Invoice, start_y: float, locale: Optional[str]) -> float:
    width, _height = A4
    left = 20 * mm
    right = width - 20 * mm
    col_amount = right - 45 * mm
    row_h = 8 * mm
    y = start_y

    c.setLineWidth(1)
    c.line(left, y, right, y)
    labels = [translate("amount", locale), translate("balance_due", locale)]
    values = [invoice.amount, invoice.balance]

    c.setFont("Helvetica-Bold", 9)
    for label, value in zip(labels, values):
        y -= row_h
        c.line(left, y, right, y)
        c.drawRightString(col_amount - 4 * mm, y + 2.5 * mm, label)
        c.drawRightString(right - 2 * mm, y + 2.5 * mm, f"{invoice.currency} {_q(value):,.2f}")

    if invoice.public_notes:
        y -= 10 * mm
        c.setFont("Helvetica", 9)
        for line in invoice.public_notes.splitlines()[:10]:
            c.drawString(left, y, line[:110])
            y -= 5 * mm
    return y


class PdfRenderer:
    """Renders an invoice to PDF bytes.

    ``render`` produces the compressed document served on its own;
    ``render_raw`` skips page compression and is used for archive entries,
    which are compressed by the archive itself.
    """

    def render(self, invoice: Invoice) -> bytes:
        return self._build(invoice, compress=True)

    def render_raw(self, invoice: Invoice) -> bytes:
        return self._build(invoice, compress=False)

    def _build(self, invoice: Invoice, *, compress: bool) -> bytes:
        locale = invoice.client.get_setting("locale") if invoice.client else None
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, pageCompression=1 if compress else 0)
        c.setTitle(invoice.number or invoice.hashed_id)

        _draw_header(c, invoice, locale)
        y = _draw_party_block(c, invoice, locale)
        _draw_totals(c, invoice, y, locale)

        c.setFont("Helvetica-Oblique", 8)
        c.drawCentredString(A4[0] / 2, 12 * mm, "This is a computer generated invoice")

        c.showPage()
        c.save()
        return buffer.getvalue()
