from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

import structlog
from PIL import Image
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from estimate_engine import (
    DEFAULT_BUSINESS_NAME,
    Estimate,
    estimate_totals,
    format_money,
    format_quantity,
    items_by_category,
)

logger = structlog.get_logger()

TERMS_TEXT = "Terms: Payment due within 30 days."


@dataclass(frozen=True)
class InvoicePdfLineItem:
    description: str
    quantity: str
    unit: str
    rate: float
    amount: float


@dataclass(frozen=True)
class InvoicePdfSection:
    title: str
    line_items: Tuple[InvoicePdfLineItem, ...]


@dataclass(frozen=True)
class InvoicePdfTotals:
    subtotal: float
    markup_percent: float
    markup_amount: float
    tax_percent: float
    tax_amount: float
    total: float


@dataclass(frozen=True)
class InvoicePdfArtifact:
    estimate_id: str
    project_date: str
    project_name: str
    location: str
    client_name: str
    client_email: str
    client_phone: str
    business_name: str
    business_lines: Tuple[str, ...]
    payable_to: str
    currency: str
    sections: Tuple[InvoicePdfSection, ...]
    totals: InvoicePdfTotals
    notes: str = ""
    payment_link: str = ""
    logo_png_bytes: Optional[bytes] = None


_DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,([A-Za-z0-9+/=\s]+)$")


def logo_png_bytes_from_data_uri(data_uri: str) -> Optional[bytes]:
    """
    Turn an uploaded logo (any browser-supported raster, as a base64 data URI) into PNG bytes.
    """
    m = _DATA_URI_RE.match((data_uri or "").strip())
    if not m:
        return None
    try:
        raw = base64.b64decode(m.group(1))
        with Image.open(BytesIO(raw)) as img:
            out = BytesIO()
            img.convert("RGBA").save(out, format="PNG")
            return out.getvalue()
    except (binascii.Error, OSError, ValueError):
        return None


def invoice_artifact_from_estimate(estimate: Estimate) -> InvoicePdfArtifact:
    d = estimate.details
    totals = estimate_totals(estimate)
    business_name = d.business_name or DEFAULT_BUSINESS_NAME

    business_lines = tuple(x for x in (d.business_address, d.business_email, d.business_phone) if x)
    if not d.business_address and not d.business_email:
        business_lines = business_lines + ("Production Services",)

    sections = tuple(
        InvoicePdfSection(
            title=category.value,
            line_items=tuple(
                InvoicePdfLineItem(
                    description=item.description,
                    quantity=format_quantity(item.quantity),
                    unit=item.unit.value,
                    rate=item.rate,
                    amount=item.amount,
                )
                for item in items
            ),
        )
        for category, items in items_by_category(estimate.items)
    )

    return InvoicePdfArtifact(
        estimate_id=estimate.id,
        project_date=d.project_date,
        project_name=d.project_name,
        location=d.location,
        client_name=d.client_name,
        client_email=d.email,
        client_phone=d.phone,
        business_name=business_name,
        business_lines=business_lines,
        payable_to=d.payable_to or business_name,
        currency=estimate.currency,
        sections=sections,
        totals=InvoicePdfTotals(
            subtotal=totals.subtotal,
            markup_percent=estimate.markup_percent,
            markup_amount=totals.markup_amount,
            tax_percent=estimate.tax_percent,
            tax_amount=totals.tax_amount,
            total=totals.total,
        ),
        notes=d.notes,
        payment_link=d.payment_link,
        logo_png_bytes=logo_png_bytes_from_data_uri(d.business_logo) if d.business_logo else None,
    )


def invoice_file_name(estimate: Estimate) -> str:
    name = re.sub(r"\s+", "_", estimate.details.project_name.strip()) or "Untitled"
    return f"{name}_Estimate.pdf"


def share_text(estimate: Estimate) -> str:
    """
    Message body that goes along with a shared invoice PDF.
    """
    d = estimate.details
    total = format_money(estimate_totals(estimate).total, estimate.currency)
    parts = [
        "ESTIMATE FOR REVIEW",
        "",
        f"Project: {d.project_name or 'Untitled'}",
        f"From: {d.business_name or DEFAULT_BUSINESS_NAME}",
        f"Total: {total}",
        "",
    ]
    if d.payment_link:
        parts.extend([f"Payment Link: {d.payment_link}", ""])
    parts.append("Please review the attached PDF.")
    return "\n".join(parts)


def invoice_pdf_for_estimate(estimate: Estimate) -> bytes:
    return make_invoice_pdf_bytes(invoice_artifact_from_estimate(estimate))


def make_invoice_pdf_bytes(artifact: InvoicePdfArtifact) -> bytes:
    """
    Render the client-facing estimate / invoice.

    Page 1 carries the header, client block and the start of the line items; items
    continue on extra pages as needed and the totals box always follows the last row.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    # Uncompressed so tests can look for text markers in the bytes.
    c.setPageCompression(0)
    w, h = A4

    margin = 0.6 * inch
    x0 = margin
    x1 = w - margin
    pad = 0.15 * inch

    # Accent bars
    c.setFillColor(colors.black)
    c.rect(0, h - 0.12 * inch, w, 0.12 * inch, stroke=0, fill=1)
    c.setFillColor(colors.HexColor("#DC2626"))
    c.rect(w - margin - 1.6 * inch, h - 0.12 * inch, 1.6 * inch, 0.12 * inch, stroke=0, fill=1)
    c.setFillColor(colors.black)

    y = h - margin - 0.2 * inch
    c.setFont("Helvetica-Bold", 24)
    c.drawString(x0, y - 0.2 * inch, "ESTIMATE")
    c.setFont("Helvetica", 9)
    c.drawString(x0, y - 0.45 * inch, f"#{artifact.estimate_id}")
    c.drawString(x0, y - 0.62 * inch, f"Date: {artifact.project_date or '-'}")

    # Business identity (right)
    right_w = 2.8 * inch
    bx = x1 - right_w
    drew_logo = False
    if artifact.logo_png_bytes:
        try:
            c.drawImage(
                ImageReader(BytesIO(artifact.logo_png_bytes)),
                bx,
                y - 0.7 * inch,
                width=right_w,
                height=0.7 * inch,
                mask="auto",
                preserveAspectRatio=True,
                anchor="ne",
            )
            drew_logo = True
        except (OSError, ValueError):
            logger.warning("invoice_logo_unreadable", estimate_id=artifact.estimate_id)
    if not drew_logo:
        c.setFont("Helvetica-Bold", 14)
        _draw_truncated_right(c, x1, y - 0.2 * inch, artifact.business_name, max_width=right_w)
    c.setFont("Helvetica", 8)
    by = y - 0.9 * inch
    for line in artifact.business_lines:
        _draw_truncated_right(c, x1, by, line, max_width=right_w)
        by -= 0.14 * inch

    # Client / project block
    y = min(y - 1.05 * inch, by - 0.1 * inch)
    block_h = 1.05 * inch
    half_w = (x1 - x0 - 0.15 * inch) / 2
    _rect(c, x0, y - block_h, half_w, block_h, stroke=1, fill=0)
    _rect(c, x0 + half_w + 0.15 * inch, y - block_h, half_w, block_h, stroke=1, fill=0)

    c.setFont("Helvetica-Bold", 8)
    c.drawString(x0 + pad, y - 0.22 * inch, "PREPARED FOR")
    c.setFont("Helvetica-Bold", 10)
    draw_truncated(c, x0 + pad, y - 0.45 * inch, artifact.client_name or "-", max_width=half_w - 2 * pad)
    c.setFont("Helvetica", 8)
    draw_truncated(c, x0 + pad, y - 0.65 * inch, artifact.client_email or "-", max_width=half_w - 2 * pad)
    draw_truncated(c, x0 + pad, y - 0.82 * inch, artifact.client_phone, max_width=half_w - 2 * pad)

    px = x0 + half_w + 0.15 * inch
    c.setFont("Helvetica-Bold", 8)
    c.drawString(px + pad, y - 0.22 * inch, "PROJECT")
    c.setFont("Helvetica-Bold", 10)
    draw_truncated(c, px + pad, y - 0.45 * inch, artifact.project_name or "Untitled", max_width=half_w - 2 * pad)
    c.setFont("Helvetica", 8)
    draw_truncated(c, px + pad, y - 0.65 * inch, artifact.location or "-", max_width=half_w - 2 * pad)

    y = y - block_h - 0.35 * inch

    # Line items, grouped by category
    row_h = 0.22 * inch
    bottom_y = margin + 0.5 * inch
    y = _draw_table_header(c, x0, x1, y)
    for section in artifact.sections:
        if y - 2 * row_h < bottom_y:
            c.showPage()
            y = _draw_table_header(c, x0, x1, h - margin - 0.3 * inch, continued=True)
        c.setFont("Helvetica-Bold", 8)
        c.setFillColor(colors.HexColor("#DC2626"))
        c.drawString(x0 + pad, y, section.title.upper())
        c.setFillColor(colors.black)
        y -= row_h
        c.setFont("Helvetica", 9)
        for li in section.line_items:
            if y < bottom_y:
                c.showPage()
                y = _draw_table_header(c, x0, x1, h - margin - 0.3 * inch, continued=True)
                c.setFont("Helvetica", 9)
            draw_truncated(c, x0 + pad, y, li.description, max_width=(x1 - x0) - 3.6 * inch)
            c.drawRightString(x1 - 2.55 * inch, y, f"{li.quantity} {li.unit}")
            c.drawRightString(x1 - 1.3 * inch, y, format_money(li.rate, artifact.currency))
            c.drawRightString(x1 - pad, y, format_money(li.amount, artifact.currency))
            y -= row_h
    hline(c, x0, x1, y + row_h * 0.5)

    # Totals + payment link need ~2.2"; start a new page if they would collide with the footer.
    totals_h = 1.35 * inch
    needed = totals_h + (0.6 * inch if artifact.payment_link else 0) + 0.2 * inch
    if y - needed < bottom_y:
        c.showPage()
        y = h - margin - 0.3 * inch

    box_w = 2.6 * inch
    tx = x1 - box_w
    ty = y - 0.1 * inch
    _rect(c, tx, ty - totals_h, box_w, totals_h, stroke=1, fill=0)
    row_step = 0.22 * inch
    cursor = ty - 0.28 * inch
    c.setFont("Helvetica", 9)
    _totals_row(c, tx, cursor, "Subtotal", artifact.totals.subtotal, box_w, artifact.currency)
    cursor -= row_step
    if artifact.totals.markup_percent > 0:
        label = f"Production Fee ({format_quantity(artifact.totals.markup_percent)}%)"
        _totals_row(c, tx, cursor, label, artifact.totals.markup_amount, box_w, artifact.currency)
        cursor -= row_step
    label = f"Tax ({format_quantity(artifact.totals.tax_percent)}%)"
    _totals_row(c, tx, cursor, label, artifact.totals.tax_amount, box_w, artifact.currency)
    cursor -= row_step + 0.05 * inch
    c.setFont("Helvetica-Bold", 12)
    _totals_row(c, tx, cursor, "Total", artifact.totals.total, box_w, artifact.currency)

    # Payable to / notes (left of totals)
    c.setFont("Helvetica-Bold", 8)
    c.drawString(x0, ty - 0.28 * inch, "PAYABLE TO")
    c.setFont("Helvetica", 9)
    draw_truncated(c, x0, ty - 0.45 * inch, artifact.payable_to, max_width=tx - x0 - pad)
    if artifact.notes:
        c.setFont("Helvetica", 8)
        draw_truncated(c, x0, ty - 0.7 * inch, f"Notes: {artifact.notes}", max_width=tx - x0 - pad)

    y = ty - totals_h - 0.3 * inch
    if artifact.payment_link:
        c.setFont("Helvetica-Bold", 9)
        c.drawString(x0, y, "Pay Invoice Now")
        c.setFont("Helvetica", 8)
        c.setFillColor(colors.HexColor("#DC2626"))
        draw_truncated(c, x0, y - 0.17 * inch, artifact.payment_link, max_width=x1 - x0)
        c.setFillColor(colors.black)
        c.linkURL(artifact.payment_link, (x0, y - 0.22 * inch, x1, y + 0.12 * inch), relative=0)

    c.setFont("Helvetica", 8)
    c.setFillColor(colors.grey)
    c.drawString(x0, margin, TERMS_TEXT)
    c.drawRightString(x1, margin, f"Generated by {DEFAULT_BUSINESS_NAME}")
    c.setFillColor(colors.black)

    c.showPage()
    c.save()
    return buf.getvalue()


def _draw_table_header(c: canvas.Canvas, x0: float, x1: float, y: float, *, continued: bool = False) -> float:
    pad = 0.15 * inch
    if continued:
        c.setFont("Helvetica-Bold", 10)
        c.drawString(x0, y + 0.25 * inch, "LINE ITEMS (CONTINUED)")
    c.setFont("Helvetica-Bold", 8)
    c.drawString(x0 + pad, y, "DESCRIPTION")
    c.drawRightString(x1 - 2.55 * inch, y, "QTY")
    c.drawRightString(x1 - 1.3 * inch, y, "RATE")
    c.drawRightString(x1 - pad, y, "AMOUNT")
    hline(c, x0, x1, y - 0.08 * inch)
    return y - 0.3 * inch


def _rect(c: canvas.Canvas, x: float, y: float, w: float, h: float, *, stroke: int, fill: int) -> None:
    c.rect(x, y, w, h, stroke=stroke, fill=fill)


def hline(c: canvas.Canvas, x1: float, x2: float, y: float) -> None:
    c.line(x1, y, x2, y)


def _totals_row(c: canvas.Canvas, x: float, y: float, label: str, amount: float, box_w: float, currency: str) -> None:
    """
    One label/amount row inside the totals box; long labels are truncated before the amount.
    """
    left_pad = 0.12 * inch
    right_pad = 0.12 * inch
    gap = 0.10 * inch
    amount_txt = format_money(amount, currency)
    amount_w = c.stringWidth(amount_txt)
    label_max = box_w - left_pad - right_pad - amount_w - gap
    draw_truncated(c, x + left_pad, y, label, max_width=max(0.0, label_max))
    c.drawRightString(x + box_w - right_pad, y, amount_txt)


def _fit_text(c: canvas.Canvas, text: str, max_width: float) -> str:
    t = (text or "").strip()
    if not t or max_width <= 0:
        return ""
    if c.stringWidth(t) <= max_width:
        return t
    # ASCII ellipsis: the built-in Type1 fonts are unreliable with unicode punctuation.
    ell = "..."
    lo, hi = 0, len(t)
    best = ""
    while lo <= hi:
        mid = (lo + hi) // 2
        cand = (t[:mid].rstrip() + ell) if mid < len(t) else t
        if c.stringWidth(cand) <= max_width:
            best = cand
            lo = mid + 1
        else:
            hi = mid - 1
    return best


def draw_truncated(c: canvas.Canvas, x: float, y: float, text: str, *, max_width: float) -> None:
    t = _fit_text(c, text, max_width)
    if t:
        c.drawString(x, y, t)


def _draw_truncated_right(c: canvas.Canvas, x: float, y: float, text: str, *, max_width: float) -> None:
    t = _fit_text(c, text, max_width)
    if t:
        c.drawRightString(x, y, t)
