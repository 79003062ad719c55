from __future__ import annotations

import base64
import uuid

from flask import current_app
from sqlalchemy.orm import validates

from ..app import db
from ..constants import STATUS_NOT_SENT
from ..shared.passwords import hash_password, check_password
from ..shared.time import now_utc


def new_id() -> str:
    return uuid.uuid4().hex


def _issued_now():
    # naive UTC with microseconds so re-issued certificates order correctly
    return now_utc().replace(tzinfo=None)


class Organizer(db.Model):
    __tablename__ = "organizers"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(255))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_organizers_email_lower", db.func.lower(email), unique=True),
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        return check_password(plain, self.password_hash)


class Settings(db.Model):
    __tablename__ = "settings"
    id = db.Column(db.Integer, primary_key=True, default=1)
    smtp_host = db.Column(db.String(255))
    smtp_port = db.Column(db.Integer)
    smtp_user = db.Column(db.String(255))
    smtp_from_default = db.Column(db.String(255))
    smtp_from_name = db.Column(db.String(255))
    smtp_pass_enc = db.Column(db.Text)
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    # always enforce singleton row id=1
    @staticmethod
    def get() -> "Settings | None":
        return db.session.get(Settings, 1)

    def set_smtp_pass(self, plain: str) -> None:
        if not plain:
            self.smtp_pass_enc = None
            return
        key = current_app.config.get("SECRET_KEY", "").encode()
        data = plain.encode()
        xored = bytes([b ^ key[i % len(key)] for i, b in enumerate(data)])
        self.smtp_pass_enc = base64.b64encode(xored).decode()

    def get_smtp_pass(self) -> str | None:
        if not self.smtp_pass_enc:
            return None
        try:
            key = current_app.config.get("SECRET_KEY", "").encode()
            raw = base64.b64decode(self.smtp_pass_enc.encode())
            data = bytes([b ^ key[i % len(key)] for i, b in enumerate(raw)])
            return data.decode()
        except (ValueError, UnicodeDecodeError):
            return None


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(16), nullable=False)
    # Best-effort counter; maintained by the registration transaction.
    participant_count = db.Column(
        db.Integer, nullable=False, default=0, server_default="0"
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    participants = db.relationship(
        "Participant", back_populates="event", lazy="dynamic"
    )


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=False, default="")
    organization = db.Column(db.String(255), default="")
    job_title = db.Column(db.String(255), default="")
    event_id = db.Column(
        db.String(32),
        db.ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    certificate_status = db.Column(
        db.String(16),
        nullable=False,
        default=STATUS_NOT_SENT,
        server_default=STATUS_NOT_SENT,
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    event = db.relationship("Event", back_populates="participants")

    @property
    def registration_number(self) -> str:
        return self.id


class Certificate(db.Model):
    __tablename__ = "certificates"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    batch_id = db.Column(db.String(32), index=True)
    event_id = db.Column(
        db.String(32),
        db.ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = db.Column(
        db.String(32),
        db.ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_name = db.Column(db.String(255), nullable=False, default="")
    template_id = db.Column(db.String(16), nullable=False)
    issued_at = db.Column(
        db.DateTime, nullable=False, default=_issued_now, server_default=db.func.now()
    )
    # Cosmetic token; not derived from the certificate content.
    web3_hash = db.Column(db.String(66), nullable=False)
    delivery_method = db.Column(db.String(64), nullable=False, default="")
    delivery_status = db.Column(db.String(16), nullable=False)
    fields = db.Column(db.JSON, nullable=False, default=list)
    design_data_url = db.Column(db.Text)

    event = db.relationship("Event")
    participant = db.relationship("Participant")


class GeneratedDesign(db.Model):
    __tablename__ = "generated_designs"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    prompt = db.Column(db.Text, nullable=False)
    data_url = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
