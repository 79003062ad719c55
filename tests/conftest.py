import os
import pathlib
import sys
from datetime import date

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from eventcert.app import create_app, db
from eventcert.models import Event, Organizer, Participant


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


@pytest.fixture
def app(monkeypatch):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ["FLASK_SKIP_SEED"] = "1"
    for key in (
        "SMTP_HOST",
        "SMTP_PORT",
        "SMTP_USER",
        "SMTP_PASS",
        "SMTP_FROM_DEFAULT",
        "SMTP_FROM_NAME",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
    ):
        monkeypatch.delenv(key, raising=False)
    application = create_app()
    application.config["PUBLIC_BASE_URL"] = "https://certs.example.com"
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def organizer(app):
    user = Organizer(email="organizer@example.com", full_name="Olga Organizer")
    user.set_password("pw")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin(app):
    user = Organizer(email="admin@example.com", full_name="Admin", is_admin=True)
    user.set_password("pw")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def summit(app):
    """The three-participant summit used across the issuance tests."""
    event = Event(
        title="Summit",
        description="Annual summit",
        date=date(2024, 9, 15),
        category="Tech",
        participant_count=3,
    )
    db.session.add(event)
    db.session.flush()
    for name, email in (
        ("Ann Lee", "ann@example.com"),
        ("Ben Roe", "ben@example.com"),
        ("Cy Fox", "cy@example.com"),
    ):
        db.session.add(
            Participant(name=name, email=email, phone="555-0100", event_id=event.id)
        )
    db.session.commit()
    return event
