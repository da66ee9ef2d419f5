from __future__ import annotations

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from stockres.app.schemas.reservation import ReservationRead
from stockres.services.pricing import Quote, compute_quote


def quote_for(reservation: ReservationRead) -> Quote:
    return compute_quote(
        reservation.product_price or 0,
        reservation.reserved_quantity,
        discount=reservation.discount,
        vat_rate=reservation.vat,
    )


def _line(pdf: FPDF, text: str) -> None:
    # polices standard = latin-1 uniquement
    text = text.encode("latin-1", "replace").decode("latin-1")
    pdf.cell(0, 8, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def render_quote_pdf(reservation: ReservationRead) -> bytes:
    q = quote_for(reservation)

    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("helvetica", "B", 16)
    pdf.cell(0, 10, "RESERVATION QUOTATION", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(6)

    pdf.set_font("helvetica", size=12)
    _line(pdf, f"Reservation #{reservation.id} ({reservation.status.value})")
    _line(pdf, f"Customer : {reservation.customer_name}")
    if reservation.sales_person:
        _line(pdf, f"Sales person : {reservation.sales_person}")
    if reservation.created_at:
        _line(pdf, f"Date : {reservation.created_at:%Y-%m-%d %H:%M}")
    pdf.ln(4)

    _line(pdf, f"Product : {reservation.product_sku} - {reservation.product_name or ''}")
    _line(pdf, f"Quantity : {q.quantity} x {q.unit_price:,.2f}")
    _line(pdf, f"Subtotal : {q.subtotal:,.2f}")
    _line(pdf, f"Discount : -{q.discount:,.2f}")
    _line(pdf, f"VAT {q.vat_rate:g}% : {q.vat_amount:,.2f}")

    pdf.set_font("helvetica", "B", 12)
    _line(pdf, f"TOTAL : {q.total:,.2f}")
    return bytes(pdf.output())
