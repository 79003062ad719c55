from eventcert.app import db
from eventcert.models import Settings


def login_user(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["_csrf_token"] = "token"


def test_save_mail_settings(app, client, admin):
    login_user(client, admin.id)
    assert client.get("/settings/mail").status_code == 200
    resp = client.post(
        "/settings/mail",
        data={
            "smtp_host": "smtp.example.com",
            "smtp_port": "587",
            "smtp_user": "mailer",
            "smtp_pass": "s3cret",
            "smtp_from_default": "certs@example.com",
            "smtp_from_name": "EventCert",
            "csrf_token": "token",
        },
        follow_redirects=True,
    )
    assert b"Saved" in resp.data
    settings = Settings.get()
    assert settings.smtp_port == 587
    assert settings.get_smtp_pass() == "s3cret"


def test_test_send_reports_stub(app, client, admin):
    login_user(client, admin.id)
    resp = client.post(
        "/settings/mail/test", data={"csrf_token": "token"}, follow_redirects=True
    )
    assert b"Error: stub: missing config" in resp.data


def test_test_send_success(app, client, admin, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "eventcert.routes.settings_mail.send",
        lambda to, subject, body: sent.append(to) or {"ok": True, "detail": "sent"},
    )
    login_user(client, admin.id)
    resp = client.post(
        "/settings/mail/test", data={"csrf_token": "token"}, follow_redirects=True
    )
    assert b"Test email sent" in resp.data
    assert sent == ["admin@example.com"]


def test_settings_post_requires_csrf_token(app, client, admin):
    login_user(client, admin.id)
    resp = client.post(
        "/settings/mail",
        data={"smtp_host": "evil.example.com", "smtp_port": "25", "csrf_token": "forged"},
    )
    assert resp.status_code == 400
    assert Settings.get() is None
