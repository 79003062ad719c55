import base64
from datetime import date, datetime
from io import BytesIO

import pytest
from PIL import Image

from eventcert.app import db
from eventcert.certgen import certificate_pdf_for, make_certificate_pdf, pdf_digest
from eventcert.models import Certificate, Participant
from eventcert.shared.data_urls import build_data_url, extension_for, parse_data_url


def _png_data_url():
    buf = BytesIO()
    Image.new("RGB", (32, 18), (20, 40, 90)).save(buf, format="PNG")
    return build_data_url("image/png", buf.getvalue())


@pytest.mark.parametrize("template_id", ["classic", "modern", "web3", "creative"])
def test_builtin_templates_render(template_id):
    pdf = make_certificate_pdf(
        template_id=template_id,
        participant_name="Ann Lee",
        event_title="Summit",
        issued_on=date(2024, 9, 16),
        fields=["name", "eventName", "date", "issuer", "web3", "duration"],
        web3_hash="0x" + "ab" * 32,
        event_date=date(2024, 9, 15),
    )
    assert pdf.startswith(b"%PDF")


def test_ai_template_uses_design_background():
    plain = make_certificate_pdf(
        template_id="ai",
        participant_name="Ann Lee",
        event_title="Summit",
        issued_on=date(2024, 9, 16),
        fields=["name", "eventName", "date"],
        web3_hash="0x00",
    )
    with_design = make_certificate_pdf(
        template_id="ai",
        participant_name="Ann Lee",
        event_title="Summit",
        issued_on=date(2024, 9, 16),
        fields=["name", "eventName", "date"],
        web3_hash="0x00",
        design_data_url=_png_data_url(),
    )
    assert with_design.startswith(b"%PDF")
    assert b"/Subtype /Image" in with_design
    assert b"/Subtype /Image" not in plain


def test_very_long_name_still_renders():
    pdf = make_certificate_pdf(
        template_id="classic",
        participant_name="Maximiliana Alexandrina Konstantinopoulou-Vanderberghe " * 2,
        event_title="Summit",
        issued_on=date(2024, 9, 16),
        fields=["name", "eventName", "date"],
        web3_hash="0x00",
    )
    assert pdf.startswith(b"%PDF")


def test_certificate_pdf_for_row(app, summit):
    participant = Participant.query.filter_by(email="ann@example.com").one()
    cert = Certificate(
        event_id=summit.id,
        participant_id=participant.id,
        participant_name=participant.name,
        template_id="web3",
        issued_at=datetime(2024, 9, 16, 9, 30),
        web3_hash="0x" + "cd" * 32,
        delivery_method="email",
        delivery_status="Sent",
        fields=["name", "eventName", "date", "web3"],
    )
    db.session.add(cert)
    db.session.commit()
    pdf = certificate_pdf_for(cert)
    assert pdf.startswith(b"%PDF")
    assert len(pdf_digest(pdf)) == 64


def test_data_url_helpers():
    mime, payload = parse_data_url("data:image/jpeg;base64," + base64.b64encode(b"abc").decode())
    assert mime == "image/jpeg"
    assert payload == b"abc"
    assert extension_for(mime) == "jpg"
    with pytest.raises(ValueError):
        parse_data_url("data:text/plain,hello")
    with pytest.raises(ValueError):
        parse_data_url("data:image/png;base64,***")
