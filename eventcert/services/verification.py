from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import Certificate, Participant

logger = logging.getLogger("eventcert.certs")

FOUND = "found"
NOT_FOUND = "not_found"
ERROR = "error"


class VerificationResult(NamedTuple):
    status: str
    certificate: Certificate | None = None
    participant: Participant | None = None
    message: str = ""

    @property
    def found(self) -> bool:
        return self.status == FOUND


def verify_certificate(event_id: str, registration_number: str | None) -> VerificationResult:
    """Look up the certificate issued to a registration number for one event.

    A registration number that belongs to another event is reported as not
    found. When a batch was re-run the most recently issued certificate wins.
    """

    registration_number = (registration_number or "").strip()
    if not registration_number:
        return VerificationResult(NOT_FOUND, message="Registration number required.")
    try:
        participant = db.session.get(Participant, registration_number)
        if participant is None or participant.event_id != event_id:
            return VerificationResult(NOT_FOUND)
        certificate = (
            Certificate.query.filter_by(
                participant_id=participant.id, event_id=event_id
            )
            .order_by(Certificate.issued_at.desc(), Certificate.id)
            .first()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(
            "[VERIFY-ERROR] event=%s registration=%s error=%s",
            event_id,
            registration_number,
            exc,
        )
        return VerificationResult(ERROR, message="An unexpected error occurred.")
    if certificate is None:
        return VerificationResult(NOT_FOUND, participant=participant)
    return VerificationResult(FOUND, certificate=certificate, participant=participant)
