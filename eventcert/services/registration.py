from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Mapping

from sqlalchemy import func

from ..app import db
from ..constants import EVENT_CATEGORIES, STATUS_NOT_SENT
from ..models import Event, Participant
from ..shared.mail_utils import is_plausible_email

logger = logging.getLogger("eventcert.registration")

__all__ = [
    "EventNotFoundError",
    "EventValidationError",
    "RegistrationValidationError",
    "create_event",
    "reconcile_participant_counts",
    "register_participant",
    "seed_participants",
]


class EventValidationError(ValueError):
    """Raised when event form values fail validation."""


class RegistrationValidationError(ValueError):
    """Raised when participant details fail validation."""


class EventNotFoundError(LookupError):
    """Raised when a registration targets an event that does not exist."""


def create_event(
    title: str,
    description: str | None,
    event_date: date | None,
    category: str | None,
) -> Event:
    """Create an event with an empty participant counter and commit it."""

    title = (title or "").strip()
    if not title or not event_date or not category:
        raise EventValidationError("Please fill out all required fields.")
    if category not in EVENT_CATEGORIES:
        raise EventValidationError(f"Unknown category: {category}")
    event = Event(
        title=title,
        description=(description or "").strip(),
        date=event_date,
        category=category,
        participant_count=0,
    )
    db.session.add(event)
    db.session.commit()
    logger.info("[EVENT-CREATE] event=%s title=\"%s\"", event.id, event.title)
    return event


def _clean_participant_fields(
    name: str | None,
    email: str | None,
    phone: str | None,
    organization: str | None,
    job_title: str | None,
) -> dict:
    name = (name or "").strip()
    email = (email or "").strip()
    if not name or not email:
        raise RegistrationValidationError("Please fill out all required fields.")
    if not is_plausible_email(email):
        raise RegistrationValidationError("Please enter a valid email address.")
    return {
        "name": name,
        "email": email,
        "phone": (phone or "").strip(),
        "organization": (organization or "").strip(),
        "job_title": (job_title or "").strip(),
    }


def register_participant(
    event_id: str,
    *,
    name: str | None,
    email: str | None,
    phone: str | None = "",
    organization: str | None = "",
    job_title: str | None = "",
) -> Participant:
    """Register a participant and bump the event counter in one transaction."""

    fields = _clean_participant_fields(name, email, phone, organization, job_title)
    try:
        event = db.session.get(Event, event_id, with_for_update=True)
        if event is None:
            raise EventNotFoundError("Event does not exist!")
        participant = Participant(
            event_id=event.id,
            certificate_status=STATUS_NOT_SENT,
            **fields,
        )
        db.session.add(participant)
        event.participant_count = (event.participant_count or 0) + 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("[REG-FAIL] event=%s email=%s", event_id, fields["email"])
        raise
    logger.info(
        "[REG-OK] event=%s participant=%s count=%s",
        event.id,
        participant.id,
        event.participant_count,
    )
    return participant


def seed_participants(event: Event, rows: Iterable[Mapping[str, str]]) -> int:
    """Bulk insert participants for ``event``; the caller commits."""

    added = 0
    for row in rows:
        fields = _clean_participant_fields(
            row.get("name"),
            row.get("email"),
            row.get("phone"),
            row.get("organization"),
            row.get("job_title"),
        )
        db.session.add(
            Participant(
                event_id=event.id,
                certificate_status=row.get("certificate_status") or STATUS_NOT_SENT,
                **fields,
            )
        )
        added += 1
    event.participant_count = (event.participant_count or 0) + added
    return added


def reconcile_participant_counts(*, dry_run: bool = False) -> list[tuple[Event, int, int]]:
    """Recompute event counters from the participants table.

    Returns ``(event, stored, actual)`` for every event whose counter drifted.
    """

    actual_counts = dict(
        db.session.query(Participant.event_id, func.count(Participant.id))
        .group_by(Participant.event_id)
        .all()
    )
    drifted: list[tuple[Event, int, int]] = []
    for event in Event.query.order_by(Event.date).all():
        stored = event.participant_count or 0
        actual = actual_counts.get(event.id, 0)
        if stored == actual:
            continue
        drifted.append((event, stored, actual))
        if not dry_run:
            event.participant_count = actual
    if drifted and not dry_run:
        db.session.commit()
    return drifted
