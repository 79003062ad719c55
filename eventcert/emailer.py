import json
import logging
import os
import smtplib
import sys
from email.message import EmailMessage
from html import escape
from typing import Sequence

from .shared.data_urls import extension_for, parse_data_url
from .shared.mail_utils import normalize_recipients

logger = logging.getLogger("eventcert.mailer")
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

NOT_CONFIGURED_MESSAGE = (
    "Email service is not configured. Set SMTP_HOST, SMTP_PORT and "
    "SMTP_FROM_DEFAULT or save the mail settings."
)


def _stringify_envelope(recipients: Sequence[str]) -> str:
    return json.dumps(list(recipients))


def transport_config() -> dict:
    """Resolve SMTP settings; the settings row wins over the environment."""

    from .models import Settings  # local import to avoid circular import at module load

    settings = Settings.get()
    return {
        "host": settings.smtp_host if settings and settings.smtp_host else os.getenv("SMTP_HOST"),
        "port": settings.smtp_port if settings and settings.smtp_port else os.getenv("SMTP_PORT"),
        "user": settings.smtp_user if settings and settings.smtp_user else os.getenv("SMTP_USER"),
        "password": (
            settings.get_smtp_pass() if settings and settings.get_smtp_pass() else os.getenv("SMTP_PASS")
        ),
        "from_addr": (
            settings.smtp_from_default
            if settings and settings.smtp_from_default
            else os.getenv("SMTP_FROM_DEFAULT")
        ),
        "from_name": (
            settings.smtp_from_name if settings and settings.smtp_from_name else os.getenv("SMTP_FROM_NAME", "")
        ),
    }


def send(
    recipients: Sequence[str] | str | None,
    subject: str,
    body: str,
    html: str | None = None,
    attachments: Sequence[tuple[str, str, bytes]] | None = None,
):
    """Send a message; ``attachments`` holds ``(filename, mime_type, payload)``."""

    config = transport_config()
    host = config["host"]
    port = config["port"]
    from_addr = config["from_addr"]
    from_name = config["from_name"]

    envelope, header = normalize_recipients(recipients)
    mode = "real"
    if not host or not port or not from_addr:
        mode = "stub"
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" host=%s result=stub",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            host,
        )
        return {"ok": False, "detail": "stub: missing config"}

    if not envelope:
        logger.warning(
            "[MAIL-NO-RECIPIENTS] subject=\"%s\" host=%s", subject, host
        )
        return {"ok": False, "detail": "no valid recipients"}

    try:
        port_int = int(port)
        msg = EmailMessage()
        msg["Subject"] = subject
        if header:
            msg["To"] = header
        msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")
        for filename, mime_type, payload in attachments or ():
            maintype, _, subtype = mime_type.partition("/")
            msg.add_attachment(
                payload,
                maintype=maintype or "application",
                subtype=subtype or "octet-stream",
                filename=filename,
            )
        smtp_cls = smtplib.SMTP_SSL if port_int == 465 else smtplib.SMTP
        with smtp_cls(host, port_int) as server:
            if port_int == 587:
                server.starttls()
            if config["user"] and config["password"]:
                server.login(config["user"], config["password"])
            server.sendmail(from_addr, envelope, msg.as_string())
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" host=%s result=sent",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            host,
        )
        return {"ok": True, "detail": "sent"}
    except (smtplib.SMTPException, OSError, ValueError) as e:
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" host=%s result=%s",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            host,
            e,
        )
        return {"ok": False, "detail": str(e)}


def send_certificate_email(
    recipient_email: str,
    recipient_name: str,
    event_name: str,
    certificate_data_url: str | None = None,
) -> dict:
    """Mail a participant their certificate; returns ``success`` and ``message``."""

    attachments = []
    if certificate_data_url:
        try:
            mime_type, payload = parse_data_url(certificate_data_url)
        except ValueError as exc:
            logger.warning(
                "[MAIL-ATTACHMENT-INVALID] to=%s error=%s", recipient_email, exc
            )
            return {"success": False, "message": f"Invalid certificate image: {exc}"}
        attachments.append(
            (f"certificate.{extension_for(mime_type)}", mime_type, payload)
        )

    subject = f"Your Certificate for {event_name} is Here!"
    body = (
        f"Congratulations, {recipient_name}!\n\n"
        f"Thank you for participating in {event_name}.\n"
        "Your certificate of completion is attached to this email.\n\n"
        "Best regards,\nThe EventCert Team"
    )
    html = (
        f"<h1>Congratulations, {escape(recipient_name)}!</h1>"
        f"<p>Thank you for participating in <strong>{escape(event_name)}</strong>.</p>"
        "<p>Your certificate of completion is attached to this email.</p>"
        "<p>Best regards,<br>The EventCert Team</p>"
    )
    result = send(recipient_email, subject, body, html=html, attachments=attachments)
    if result.get("ok"):
        return {
            "success": True,
            "message": f"Email successfully sent to {recipient_email}.",
        }
    if result.get("detail") == "stub: missing config":
        return {"success": False, "message": NOT_CONFIGURED_MESSAGE}
    return {
        "success": False,
        "message": f"Failed to send email: {result.get('detail')}",
    }
