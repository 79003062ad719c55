from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..constants import EVENT_CATEGORIES
from ..models import Event
from ..services.registration import (
    EventNotFoundError,
    EventValidationError,
    RegistrationValidationError,
    create_event,
    register_participant,
)
from ..shared.csrf import check_csrf
from ..shared.rbac import organizer_required
from ..shared.time import parse_iso_date

bp = Blueprint("events", __name__, url_prefix="/events")


@bp.get("")
@organizer_required
def list_events(current_user):
    events = Event.query.order_by(Event.date.desc(), Event.created_at.desc()).all()
    return render_template("events/list.html", events=events)


@bp.get("/new")
@organizer_required
def new_event(current_user):
    return render_template(
        "events/new.html", categories=EVENT_CATEGORIES, form={}
    )


@bp.post("/new")
@organizer_required
def create(current_user):
    check_csrf()
    form = request.form
    try:
        event = create_event(
            form.get("title"),
            form.get("description"),
            parse_iso_date(form.get("date")),
            form.get("category"),
        )
    except EventValidationError as exc:
        flash(str(exc), "error")
        return (
            render_template(
                "events/new.html", categories=EVENT_CATEGORIES, form=form
            ),
            400,
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[EVENT-CREATE-FAIL] error={exc}")
        flash(f"Error creating event: {exc}", "error")
        return (
            render_template(
                "events/new.html", categories=EVENT_CATEGORIES, form=form
            ),
            500,
        )
    flash(f'Event "{event.title}" has been created.', "success")
    return redirect(url_for("events.list_events"))


@bp.get("/<event_id>")
def detail(event_id: str):
    event = db.session.get(Event, event_id)
    if not event:
        abort(404)
    return render_template("events/detail.html", event=event)


@bp.post("/<event_id>/register")
def register(event_id: str):
    check_csrf()
    form = request.form
    try:
        participant = register_participant(
            event_id,
            name=form.get("name"),
            email=form.get("email"),
            phone=form.get("phone"),
            organization=form.get("organization"),
            job_title=form.get("job_title"),
        )
    except RegistrationValidationError as exc:
        flash(str(exc), "error")
        return redirect(url_for("events.detail", event_id=event_id))
    except EventNotFoundError as exc:
        flash(f"Registration Failed: {exc}", "error")
        abort(404)
    except SQLAlchemyError as exc:
        current_app.logger.error(f"[REG-FAIL] event={event_id} error={exc}")
        flash("Registration Failed: An unexpected error occurred.", "error")
        return redirect(url_for("events.detail", event_id=event_id))
    flash(
        "Registration Successful! You are now registered for the event. "
        f"Your registration number is {participant.registration_number}.",
        "success",
    )
    return redirect(url_for("events.detail", event_id=event_id))
