from datetime import datetime

from eventcert.app import db
from eventcert.models import Certificate, Participant


def _issue(event, participant, design_data_url=None):
    cert = Certificate(
        event_id=event.id,
        participant_id=participant.id,
        participant_name=participant.name,
        template_id="ai" if design_data_url else "classic",
        issued_at=datetime(2024, 9, 16, 9, 0),
        web3_hash="0x" + "ef" * 32,
        delivery_method="email",
        delivery_status="Sent",
        fields=["name", "eventName", "date"],
        design_data_url=design_data_url,
    )
    db.session.add(cert)
    db.session.commit()
    return cert


def test_lookup_found(app, client, summit):
    participant = Participant.query.filter_by(email="ann@example.com").one()
    cert = _issue(summit, participant)
    resp = client.post(
        f"/verify/{summit.id}", data={"registration_number": participant.id}
    )
    assert resp.status_code == 200
    assert b"Certificate Verified" in resp.data
    assert cert.web3_hash.encode() in resp.data

    pdf = client.get(f"/verify/{summit.id}/{cert.id}/certificate.pdf")
    assert pdf.mimetype == "application/pdf"
    assert pdf.data.startswith(b"%PDF")


def test_lookup_not_found(app, client, summit):
    resp = client.post(f"/verify/{summit.id}", data={"registration_number": "nobody"})
    assert resp.status_code == 200
    assert b"Certificate Not Found" in resp.data


def test_design_download(app, client, summit):
    participant = Participant.query.filter_by(email="ben@example.com").one()
    cert = _issue(summit, participant, design_data_url="data:image/png;base64,iVBORw0KGgo=")
    resp = client.get(f"/verify/{summit.id}/{cert.id}/design")
    assert resp.mimetype == "image/png"
    assert "certificate-" in resp.headers["Content-Disposition"]

    plain = _issue(summit, participant)
    assert client.get(f"/verify/{summit.id}/{plain.id}/design").status_code == 404


def test_certificate_of_other_event_is_404(app, client, summit):
    participant = Participant.query.filter_by(email="ann@example.com").one()
    cert = _issue(summit, participant)
    assert client.get(f"/verify/other/{cert.id}/certificate.pdf").status_code == 404
    assert client.get("/verify/missing").status_code == 404
