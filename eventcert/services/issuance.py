"""Batch certificate issuance.

``issue_certificates`` walks the participants of one event and, per
participant, writes a certificate record, attempts delivery and then writes
the resulting status once. The certificate is stored as Not Sent until its
delivery result is known. Participants are independent: one participant's
store or delivery failure never stops the batch and never rolls back
certificates already written for others.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, NamedTuple, Sequence
from urllib.parse import quote

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import emailer
from ..app import db
from ..constants import (
    CHANNEL_EMAIL,
    CHANNEL_WHATSAPP,
    STATUS_FAILED,
    STATUS_NOT_SENT,
    STATUS_SENT,
    TEMPLATES_BY_ID,
)
from ..models import Certificate, Event, GeneratedDesign, Participant, new_id
from ..shared.wizard import BatchSelection

logger = logging.getLogger("eventcert.certs")

__all__ = [
    "BatchResult",
    "batch_certificates",
    "NothingToProcessError",
    "generate_web3_hash",
    "issue_certificates",
    "whatsapp_share_link",
]

EmailSender = Callable[..., dict]


class NothingToProcessError(ValueError):
    """Raised when a batch is started without a complete selection."""


class BatchResult(NamedTuple):
    batch_id: str
    processed: int
    sent: int
    failed: int
    certificate_ids: list[str]
    failures: list[tuple[str, str]]
    share_links: dict[str, str]


def generate_web3_hash() -> str:
    """Return a cosmetic ``0x``-prefixed token from 32 random bytes.

    The token is not derived from the certificate content and proves nothing
    about it.
    """

    return "0x" + secrets.token_hex(32)


def _resolve_design(selection: BatchSelection) -> str | None:
    if not selection.uses_ai_template:
        return None
    if not selection.design_id:
        raise NothingToProcessError("Generate an AI design before issuing certificates.")
    design = db.session.get(GeneratedDesign, selection.design_id)
    if design is None or not design.data_url:
        raise NothingToProcessError("The generated design could not be found.")
    return design.data_url


def _check_preconditions(
    selection: BatchSelection, participants: Sequence[Participant]
) -> tuple[Event, str | None]:
    if not participants:
        raise NothingToProcessError("No participants to process.")
    if not selection.event_id:
        raise NothingToProcessError("No event selected.")
    if not selection.template_id or selection.template_id not in TEMPLATES_BY_ID:
        raise NothingToProcessError("No certificate template selected.")
    event = db.session.get(Event, selection.event_id)
    if event is None:
        raise NothingToProcessError("The selected event no longer exists.")
    return event, _resolve_design(selection)


def whatsapp_share_link(event: Event, participant: Participant) -> str:
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    verify_path = f"/verify/{event.id}"
    message = (
        f"Hi {participant.name}, your certificate for {event.title} is ready. "
        f"Verify it with registration number {participant.id} at {base}{verify_path}"
    )
    return f"https://wa.me/?text={quote(message, safe='')}"


def issue_certificates(
    selection: BatchSelection,
    participants: Sequence[Participant],
    *,
    send_email: EmailSender | None = None,
) -> BatchResult:
    """Create one certificate per participant and attempt delivery.

    Raises ``NothingToProcessError`` before any write when the selection is
    incomplete. Re-running for the same participants issues new certificates
    alongside the old ones.
    """

    event, design_data_url = _check_preconditions(selection, participants)
    send_email = send_email or emailer.send_certificate_email
    delivery_method = ", ".join(selection.channels)

    batch_id = new_id()
    processed = sent = failed = 0
    certificate_ids: list[str] = []
    failures: list[tuple[str, str]] = []
    share_links: dict[str, str] = {}

    logger.info(
        "[CERT-BATCH] batch=%s event=%s template=%s channels=%s participants=%d",
        batch_id,
        event.id,
        selection.template_id,
        delivery_method,
        len(participants),
    )

    for participant in participants:
        participant_id = participant.id
        try:
            certificate = Certificate(
                batch_id=batch_id,
                event_id=event.id,
                participant_id=participant_id,
                participant_name=participant.name,
                template_id=selection.template_id,
                web3_hash=generate_web3_hash(),
                delivery_method=delivery_method,
                delivery_status=STATUS_NOT_SENT,
                fields=list(selection.fields),
                design_data_url=design_data_url,
            )
            db.session.add(certificate)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            failed += 1
            failures.append((participant_id, f"Certificate write failed: {exc}"))
            logger.error(
                "[CERT-FAIL] event=%s participant=%s stage=write error=%s",
                event.id,
                participant_id,
                exc,
            )
            continue
        processed += 1
        certificate_id = certificate.id
        certificate_ids.append(certificate_id)

        status = STATUS_SENT
        if CHANNEL_EMAIL in selection.channels:
            result = send_email(
                recipient_email=participant.email,
                recipient_name=participant.name,
                event_name=event.title,
                certificate_data_url=design_data_url,
            )
            if not result.get("success"):
                status = STATUS_FAILED
                failures.append((participant_id, result.get("message") or "Delivery failed"))
                logger.warning(
                    "[CERT-DELIVERY-FAIL] event=%s participant=%s message=%s",
                    event.id,
                    participant_id,
                    result.get("message"),
                )
        if CHANNEL_WHATSAPP in selection.channels:
            share_links[participant_id] = whatsapp_share_link(event, participant)

        try:
            participant.certificate_status = status
            certificate.delivery_status = status
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            failed += 1
            failures.append((participant_id, f"Status update failed: {exc}"))
            logger.error(
                "[CERT-FAIL] event=%s participant=%s certificate=%s stage=status error=%s",
                event.id,
                participant_id,
                certificate_id,
                exc,
            )
            continue
        if status == STATUS_SENT:
            sent += 1
        else:
            failed += 1
        logger.info(
            "[CERT-ISSUE] event=%s participant=%s certificate=%s status=%s",
            event.id,
            participant_id,
            certificate_id,
            status,
        )

    logger.info(
        "[CERT-BATCH-DONE] event=%s processed=%d sent=%d failed=%d",
        event.id,
        processed,
        sent,
        failed,
    )
    return BatchResult(
        batch_id=batch_id,
        processed=processed,
        sent=sent,
        failed=failed,
        certificate_ids=certificate_ids,
        failures=failures,
        share_links=share_links,
    )


def batch_certificates(batch_id: str | None) -> list[tuple[Certificate, Participant]]:
    """Certificates written by one batch run, oldest first."""

    if not batch_id:
        return []
    return (
        db.session.query(Certificate, Participant)
        .join(Participant, Participant.id == Certificate.participant_id)
        .filter(Certificate.batch_id == batch_id)
        .order_by(Certificate.issued_at, Certificate.id)
        .all()
    )
