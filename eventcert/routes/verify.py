from flask import Blueprint, Response, abort, render_template, request

from ..app import db
from ..certgen import certificate_pdf_for
from ..models import Certificate, Event
from ..services.verification import ERROR, NOT_FOUND, verify_certificate
from ..shared.data_urls import extension_for, parse_data_url

bp = Blueprint("verify", __name__, url_prefix="/verify")


def _event_or_404(event_id: str) -> Event:
    event = db.session.get(Event, event_id)
    if not event:
        abort(404)
    return event


def _certificate_or_404(event_id: str, certificate_id: str) -> Certificate:
    certificate = db.session.get(Certificate, certificate_id)
    if not certificate or certificate.event_id != event_id:
        abort(404)
    return certificate


@bp.route("/<event_id>", methods=["GET", "POST"])
def lookup(event_id: str):
    event = _event_or_404(event_id)
    result = None
    registration_number = ""
    if request.method == "POST":
        registration_number = (request.form.get("registration_number") or "").strip()
        result = verify_certificate(event.id, registration_number)
    status_code = 500 if result is not None and result.status == ERROR else 200
    return (
        render_template(
            "verify/lookup.html",
            event=event,
            result=result,
            registration_number=registration_number,
            not_found=NOT_FOUND,
            error=ERROR,
        ),
        status_code,
    )


@bp.get("/<event_id>/<certificate_id>/certificate.pdf")
def certificate_pdf(event_id: str, certificate_id: str):
    certificate = _certificate_or_404(event_id, certificate_id)
    pdf = certificate_pdf_for(certificate)
    resp = Response(pdf, mimetype="application/pdf")
    resp.headers["Content-Disposition"] = (
        f"attachment; filename=certificate-{certificate.participant_id}.pdf"
    )
    return resp


@bp.get("/<event_id>/<certificate_id>/design")
def certificate_design(event_id: str, certificate_id: str):
    certificate = _certificate_or_404(event_id, certificate_id)
    if not certificate.design_data_url:
        abort(404)
    try:
        mime_type, payload = parse_data_url(certificate.design_data_url)
    except ValueError:
        abort(404)
    resp = Response(payload, mimetype=mime_type)
    resp.headers["Content-Disposition"] = (
        f"attachment; filename=certificate-{certificate.participant_id}.{extension_for(mime_type)}"
    )
    return resp
