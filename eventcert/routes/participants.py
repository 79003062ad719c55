from flask import (
    Blueprint,
    abort,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)

from ..app import db
from ..constants import STATUS_FAILED, STATUS_SENT
from ..models import Event, Participant
from ..services.ai_flows import AIConfigError, AIFlowError, clean_name
from ..shared.csrf import check_csrf
from ..shared.rbac import organizer_required

bp = Blueprint("participants", __name__, url_prefix="/participants")


def _ai_error_response(exc: AIFlowError):
    status = 503 if isinstance(exc, AIConfigError) else 502
    return jsonify({"error": str(exc)}), status


@bp.get("")
@organizer_required
def index(current_user):
    event_id = request.args.get("event_id") or None
    query = Participant.query
    if event_id:
        query = query.filter(Participant.event_id == event_id)
    participants = query.order_by(Participant.created_at.desc()).all()
    stats = {
        "total": len(participants),
        "delivered": sum(1 for p in participants if p.certificate_status == STATUS_SENT),
        "failures": sum(1 for p in participants if p.certificate_status == STATUS_FAILED),
    }
    events = Event.query.order_by(Event.date.desc()).all()
    return render_template(
        "participants/list.html",
        participants=participants,
        events=events,
        event_id=event_id,
        stats=stats,
    )


@bp.post("/clean-name")
@organizer_required
def clean_name_json(current_user):
    check_csrf()
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or request.form.get("name") or "").strip()
    if not name:
        return jsonify({"error": "name required"}), 400
    try:
        cleaned = clean_name(name)
    except AIFlowError as exc:
        return _ai_error_response(exc)
    return jsonify({"cleanedName": cleaned})


@bp.post("/<participant_id>/clean-name")
@organizer_required
def apply_clean_name(participant_id: str, current_user):
    check_csrf()
    participant = db.session.get(Participant, participant_id)
    if not participant:
        abort(404)
    try:
        cleaned = clean_name(participant.name)
    except AIFlowError as exc:
        flash(f"Could not clean name: {exc}", "error")
    else:
        if cleaned != participant.name:
            participant.name = cleaned
            db.session.commit()
            flash(f"Name updated to {cleaned}.", "success")
        else:
            flash("Name already clean.", "info")
    return redirect(url_for("participants.index", event_id=participant.event_id))
