import csv
import io

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session as flask_session,
    url_for,
)

from ..app import db
from ..constants import (
    AI_TEMPLATE_ID,
    CERTIFICATE_FIELDS,
    CERTIFICATE_TEMPLATES,
    CHANNEL_WHATSAPP,
    DELIVERY_CHANNELS,
    REQUIRED_FIELD_IDS,
    STATUS_SENT,
    WIZARD_STEP_TITLES,
)
from ..models import Certificate, Event, GeneratedDesign, Participant
from ..services.ai_flows import (
    AIConfigError,
    AIFlowError,
    generate_certificate_design,
    suggest_certificate_template,
)
from ..services.issuance import (
    NothingToProcessError,
    batch_certificates,
    issue_certificates,
    whatsapp_share_link,
)
from ..shared.csrf import check_csrf
from ..shared.data_urls import parse_data_url
from ..shared.rbac import organizer_required
from ..shared.wizard import SESSION_KEY, CertificateWizard

bp = Blueprint("certificates", __name__, url_prefix="/certificates")

RESULT_KEY = "certificate_batch_result"


def _load_wizard() -> CertificateWizard:
    return CertificateWizard.from_dict(flask_session.get(SESSION_KEY))


def _save_wizard(wizard: CertificateWizard) -> None:
    flask_session[SESSION_KEY] = wizard.to_dict()


def _apply_step_selections(wizard: CertificateWizard, form) -> None:
    step = wizard.current_step
    if step == 1 and "event_id" in form:
        wizard.select_event(form.get("event_id"))
    elif step == 2 and "template_id" in form:
        wizard.select_template(form.get("template_id"))
    elif step == 3:
        chosen = set(form.getlist("fields"))
        for field in CERTIFICATE_FIELDS:
            if field.id not in REQUIRED_FIELD_IDS:
                wizard.toggle_field(field.id, field.id in chosen)
    elif step == 4:
        chosen = set(form.getlist("channels"))
        for channel in DELIVERY_CHANNELS:
            wizard.toggle_channel(channel, channel in chosen)


def _incomplete_step_message(wizard: CertificateWizard) -> str:
    step = wizard.current_step
    if step == 1:
        return "Select an event to continue."
    if step == 2:
        if wizard.uses_ai_template:
            return "Generate an AI design before continuing."
        return "Select a certificate template to continue."
    if step == 4:
        return "Select at least one delivery channel."
    return "This step is not complete."


def _batch_result(event):
    stored = flask_session.get(RESULT_KEY)
    if not stored:
        return None
    failures = []
    share_links = []
    for certificate, participant in batch_certificates(stored.get("batch_id")):
        if certificate.delivery_status != STATUS_SENT:
            failures.append((participant, certificate.delivery_status))
        if event and CHANNEL_WHATSAPP in (certificate.delivery_method or ""):
            share_links.append((participant, whatsapp_share_link(event, participant)))
    return dict(stored, failures=failures, share_links=share_links)


@bp.get("")
@organizer_required
def wizard(current_user):
    wizard = _load_wizard()
    event = db.session.get(Event, wizard.event_id) if wizard.event_id else None
    participants = []
    if event:
        participants = (
            Participant.query.filter_by(event_id=event.id)
            .order_by(Participant.created_at)
            .all()
        )
    design = (
        db.session.get(GeneratedDesign, wizard.generated_image_ref)
        if wizard.generated_image_ref
        else None
    )
    return render_template(
        "certificates/wizard.html",
        wizard=wizard,
        step_titles=WIZARD_STEP_TITLES,
        events=Event.query.order_by(Event.date.desc()).all(),
        event=event,
        participants=participants,
        templates=CERTIFICATE_TEMPLATES,
        fields=CERTIFICATE_FIELDS,
        channels=DELIVERY_CHANNELS,
        design=design,
        ai_template_id=AI_TEMPLATE_ID,
        result=_batch_result(event),
    )


@bp.post("/step")
@organizer_required
def step(current_user):
    check_csrf()
    wizard = _load_wizard()
    action = request.form.get("action", "next")
    if action == "prev":
        wizard.retreat()
    else:
        _apply_step_selections(wizard, request.form)
        if not wizard.completed and not wizard.advance():
            if not wizard.step_complete():
                flash(_incomplete_step_message(wizard), "error")
    _save_wizard(wizard)
    return redirect(url_for("certificates.wizard"))


@bp.post("/design")
@organizer_required
def design(current_user):
    check_csrf()
    wizard = _load_wizard()
    prompt = (request.form.get("prompt") or "").strip()
    if not prompt:
        flash("Describe the design you want before generating.", "error")
        return redirect(url_for("certificates.wizard"))
    wizard.select_template(AI_TEMPLATE_ID)

    def _generate(text: str) -> str:
        data_url = generate_certificate_design(text)
        record = GeneratedDesign(prompt=text, data_url=data_url)
        db.session.add(record)
        db.session.commit()
        return record.id

    try:
        wizard.request_image_generation(prompt, _generate)
    except AIFlowError as exc:
        flash(f"Design Generation Failed: {exc}", "error")
    else:
        flash("Design generated.", "success")
    _save_wizard(wizard)
    return redirect(url_for("certificates.wizard"))


@bp.get("/designs/<design_id>")
@organizer_required
def design_image(design_id: str, current_user):
    record = db.session.get(GeneratedDesign, design_id)
    if not record:
        abort(404)
    try:
        mime_type, payload = parse_data_url(record.data_url)
    except ValueError:
        abort(404)
    return Response(payload, mimetype=mime_type)


@bp.post("/suggest")
@organizer_required
def suggest(current_user):
    check_csrf()
    payload = request.get_json(silent=True) or {}
    event_id = payload.get("event_id") or _load_wizard().event_id
    event = db.session.get(Event, event_id) if event_id else None
    if not event:
        return jsonify({"error": "Select an event first."}), 400
    try:
        suggestion = suggest_certificate_template(event.title, event.description)
    except AIFlowError as exc:
        status = 503 if isinstance(exc, AIConfigError) else 502
        return jsonify({"error": str(exc)}), status
    return jsonify(
        {
            "templateId": suggestion.template_id,
            "templateName": suggestion.template_name,
            "reasoning": suggestion.reasoning,
        }
    )


@bp.post("/generate")
@organizer_required
def generate(current_user):
    check_csrf()
    wizard = _load_wizard()
    if not wizard.ready_to_generate():
        flash("Finish every step before generating certificates.", "error")
        return redirect(url_for("certificates.wizard"))
    participants = (
        Participant.query.filter_by(event_id=wizard.event_id)
        .order_by(Participant.created_at)
        .all()
    )
    try:
        result = issue_certificates(wizard.selection(), participants)
    except NothingToProcessError as exc:
        flash(str(exc), "error")
        return redirect(url_for("certificates.wizard"))

    wizard.mark_completed()
    _save_wizard(wizard)
    # per-participant detail is rebuilt from the certificate rows on render
    flask_session[RESULT_KEY] = {
        "batch_id": result.batch_id,
        "processed": result.processed,
        "sent": result.sent,
        "failed": result.failed,
        "unwritten": len(participants) - result.processed,
    }
    current_app.logger.info(
        f"[CERT-WIZARD] organizer={current_user.id} event={wizard.event_id} processed={result.processed}"
    )
    flash(
        f"Batch Processing Complete: {result.processed} certificates processed, "
        f"{result.sent} delivered, {result.failed} failed.",
        "success" if not result.failed else "warning",
    )
    return redirect(url_for("certificates.wizard"))


@bp.post("/reset")
@organizer_required
def reset(current_user):
    check_csrf()
    wizard = _load_wizard()
    wizard.reset()
    _save_wizard(wizard)
    flask_session.pop(RESULT_KEY, None)
    return redirect(url_for("certificates.wizard"))


@bp.get("/export.csv")
@organizer_required
def export_csv(current_user):
    event_id = request.args.get("event_id") or None

    query = (
        db.session.query(Certificate, Event, Participant)
        .join(Event, Event.id == Certificate.event_id)
        .join(Participant, Participant.id == Certificate.participant_id)
    )
    if event_id is not None:
        query = query.filter(Certificate.event_id == event_id)
    rows = query.order_by(
        Event.date.desc(), Event.id, Certificate.issued_at, Certificate.id
    ).all()

    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "CertificateId",
            "EventId",
            "EventTitle",
            "EventDate",
            "ParticipantName",
            "ParticipantEmail",
            "RegistrationNumber",
            "TemplateId",
            "DeliveryMethod",
            "DeliveryStatus",
            "IssuedAt",
            "Web3Hash",
            "VerifyUrl",
        ]
    )
    for certificate, event, participant in rows:
        writer.writerow(
            [
                certificate.id,
                event.id,
                event.title,
                event.date.isoformat() if event.date else "",
                certificate.participant_name or participant.name,
                participant.email or "",
                participant.registration_number,
                certificate.template_id,
                certificate.delivery_method or "",
                certificate.delivery_status or "",
                certificate.issued_at.isoformat() if certificate.issued_at else "",
                certificate.web3_hash or "",
                f"{base}/verify/{event.id}",
            ]
        )

    resp = Response(output.getvalue(), mimetype="text/csv")
    resp.headers["Content-Disposition"] = "attachment; filename=certificates.csv"
    return resp
