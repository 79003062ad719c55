from datetime import date

from eventcert.app import db
from eventcert.models import Event, Participant


def login_user(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["_csrf_token"] = "token"


def prime_csrf(client):
    with client.session_transaction() as sess:
        sess["_csrf_token"] = "token"


def test_dashboard_totals_and_recent_events(app, client, organizer):
    for i, day in enumerate((1, 5, 9, 20)):
        db.session.add(
            Event(title=f"Event {i}", description="", date=date(2024, 3, day), category="Tech")
        )
    db.session.commit()
    login_user(client, organizer.id)
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"Event 3" in resp.data
    assert b"Event 1" in resp.data
    assert b"Event 0" not in resp.data

    stats = client.get("/stats.json").get_json()
    assert stats == {"events": 4, "participants": 0, "certificates": 0}


def test_create_event(app, client, organizer):
    login_user(client, organizer.id)
    resp = client.post(
        "/events/new",
        data={
            "title": "Design Sprint",
            "description": "Two days of prototyping",
            "date": "2024-06-01",
            "category": "Art",
            "csrf_token": "token",
        },
        follow_redirects=True,
    )
    assert b"Design Sprint" in resp.data
    event = Event.query.filter_by(title="Design Sprint").one()
    assert event.participant_count == 0
    assert event.date == date(2024, 6, 1)


def test_create_event_missing_fields(app, client, organizer):
    login_user(client, organizer.id)
    resp = client.post(
        "/events/new",
        data={"title": "No date", "category": "Tech", "csrf_token": "token"},
    )
    assert resp.status_code == 400
    assert b"Please fill out all required fields." in resp.data
    assert Event.query.count() == 0


def test_public_registration(app, client, summit):
    page = client.get(f"/events/{summit.id}")
    assert page.status_code == 200
    assert b"Summit" in page.data

    prime_csrf(client)
    resp = client.post(
        f"/events/{summit.id}/register",
        data={
            "name": "Dee Park",
            "email": "dee@example.com",
            "phone": "555-0199",
            "csrf_token": "token",
        },
        follow_redirects=True,
    )
    assert b"Registration Successful!" in resp.data
    participant = Participant.query.filter_by(email="dee@example.com").one()
    assert participant.certificate_status == "Not Sent"
    assert db.session.get(Event, summit.id).participant_count == 4


def test_registration_validation(app, client, summit):
    prime_csrf(client)
    resp = client.post(
        f"/events/{summit.id}/register",
        data={"name": "", "email": "dee@example.com", "csrf_token": "token"},
        follow_redirects=True,
    )
    assert b"Please fill out all required fields." in resp.data
    assert Participant.query.filter_by(email="dee@example.com").count() == 0


def test_unknown_event_pages_are_404(app, client):
    assert client.get("/events/missing").status_code == 404
    prime_csrf(client)
    resp = client.post(
        "/events/missing/register",
        data={"name": "Dee", "email": "dee@example.com", "csrf_token": "token"},
    )
    assert resp.status_code == 404


def test_registration_requires_csrf_token(app, client, summit):
    resp = client.post(
        f"/events/{summit.id}/register",
        data={"name": "Dee Park", "email": "dee@example.com"},
    )
    assert resp.status_code == 400
    assert Participant.query.filter_by(email="dee@example.com").count() == 0
    assert db.session.get(Event, summit.id).participant_count == 3
