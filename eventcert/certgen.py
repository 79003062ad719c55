from __future__ import annotations

import hashlib
from datetime import date
from io import BytesIO
from typing import Sequence

from PIL import Image
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .constants import AI_TEMPLATE_ID, ISSUER_NAME, TEMPLATES_BY_ID
from .shared.data_urls import parse_data_url


_MM = 72 / 25.4

# (background, border, text, accent, title font)
THEMES = {
    "blue": ("#EFF6FF", "#3B82F6", "#1E40AF", "#2563EB", "Times-Bold"),
    "dark": ("#1F2937", "#6B7280", "#F3F4F6", "#FFFFFF", "Helvetica"),
    "green": ("#F0FDF4", "#16A34A", "#14532D", "#15803D", "Courier-Bold"),
    "pink": ("#FDF2F8", "#F472B6", "#9D174D", "#EC4899", "Times-BoldItalic"),
    "ai": ("#111827", "#FFFFFF", "#FFFFFF", "#FFFFFF", "Helvetica-Bold"),
}

OPTIONAL_FIELD_LABELS = {
    "issuer": "Issuer",
    "web3": "Web3 Hash",
    "score": "Score/Grade",
    "duration": "Event Duration",
    "signature": "Digital Signature",
}


def _mm(v: float) -> float:
    return v * _MM


def _page_size(orientation: str):
    return landscape(A4) if orientation == "landscape" else portrait(A4)


def _load_background(design_data_url: str | None) -> ImageReader | None:
    if not design_data_url:
        return None
    _, payload = parse_data_url(design_data_url)
    image = Image.open(BytesIO(payload))
    image.load()
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    return ImageReader(image)


def _field_value(field_id: str, *, web3_hash: str, event_date: date | None) -> str:
    if field_id == "issuer":
        return ISSUER_NAME
    if field_id == "web3":
        return web3_hash
    if field_id == "duration" and event_date:
        return f"Held on {event_date.strftime('%d %B %Y').lstrip('0')}"
    if field_id == "signature":
        return "Digitally signed"
    return "-"


def make_certificate_pdf(
    *,
    template_id: str,
    participant_name: str,
    event_title: str,
    issued_on: date,
    fields: Sequence[str],
    web3_hash: str,
    event_date: date | None = None,
    design_data_url: str | None = None,
) -> bytes:
    """Render a single certificate page and return the PDF bytes."""

    template = TEMPLATES_BY_ID.get(template_id) or TEMPLATES_BY_ID["classic"]
    bg, border, text, accent, title_font = THEMES[template.theme]
    page = _page_size(template.orientation)
    width, height = page

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=page)
    c.setTitle(f"{event_title} – {participant_name}")

    background = _load_background(design_data_url) if template.id == AI_TEMPLATE_ID else None
    if background is not None:
        c.drawImage(background, 0, 0, width=width, height=height, preserveAspectRatio=False)
        # darken so white text stays legible on any artwork
        c.setFillColor(colors.Color(0, 0, 0, alpha=0.35))
        c.rect(0, 0, width, height, stroke=0, fill=1)
    else:
        c.setFillColor(colors.HexColor(bg))
        c.rect(0, 0, width, height, stroke=0, fill=1)

    c.setStrokeColor(colors.HexColor(border))
    c.setLineWidth(3)
    c.rect(_mm(10), _mm(10), width - _mm(20), height - _mm(20), stroke=1, fill=0)

    c.setFillColor(colors.HexColor(text))
    c.setFont("Helvetica", 16)
    c.drawCentredString(width / 2, height - _mm(40), "Certificate of Achievement")

    heading = event_title if "eventName" in fields else "Achievement"
    c.setFillColor(colors.HexColor(accent))
    font_size = 34
    while font_size > 18:
        if c.stringWidth(heading, title_font, font_size) <= width - _mm(50):
            break
        font_size -= 1
    c.setFont(title_font, font_size)
    c.drawCentredString(width / 2, height - _mm(58), heading)

    c.setFillColor(colors.HexColor(text))
    c.setFont("Helvetica", 14)
    c.drawCentredString(width / 2, height / 2 + _mm(18), "This certifies that")

    # Name with autoshrink
    name = participant_name if "name" in fields else "..."
    font_size = 40
    while font_size >= 24:
        if c.stringWidth(name, "Helvetica-Bold", font_size) <= width - _mm(40):
            break
        font_size -= 1
    c.setFillColor(colors.HexColor(accent))
    c.setFont("Helvetica-Bold", font_size)
    c.drawCentredString(width / 2, height / 2, name)

    when = issued_on.strftime("%d %B %Y").lstrip("0") if "date" in fields else "this day"
    c.setFillColor(colors.HexColor(text))
    c.setFont("Helvetica", 13)
    c.drawCentredString(
        width / 2,
        height / 2 - _mm(14),
        f"has successfully completed the aforementioned event on {when}.",
    )

    extras = [f for f in fields if f in OPTIONAL_FIELD_LABELS]
    y = _mm(45)
    c.setFont("Helvetica", 10)
    for field_id in extras:
        value = _field_value(field_id, web3_hash=web3_hash, event_date=event_date)
        c.drawString(_mm(22), y, f"{OPTIONAL_FIELD_LABELS[field_id]}: {value}")
        y -= _mm(6)

    c.showPage()
    c.save()
    return buffer.getvalue()


def certificate_pdf_for(certificate) -> bytes:
    """Render the PDF for a stored ``Certificate`` row."""

    event = certificate.event
    issued_on = certificate.issued_at.date() if certificate.issued_at else date.today()
    return make_certificate_pdf(
        template_id=certificate.template_id,
        participant_name=certificate.participant_name
        or (certificate.participant.name if certificate.participant else ""),
        event_title=event.title if event else "",
        issued_on=issued_on,
        fields=certificate.fields or [],
        web3_hash=certificate.web3_hash,
        event_date=event.date if event else None,
        design_data_url=certificate.design_data_url,
    )


def pdf_digest(pdf_bytes: bytes) -> str:
    return hashlib.sha256(pdf_bytes).hexdigest()
