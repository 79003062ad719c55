import pytest
from sqlalchemy.exc import OperationalError

from eventcert.app import db
from eventcert.models import Certificate, GeneratedDesign, Participant
from eventcert.services.issuance import (
    NothingToProcessError,
    batch_certificates,
    generate_web3_hash,
    issue_certificates,
)
from eventcert.shared.wizard import BatchSelection


def _selection(event, template_id="classic", channels=("email",), design_id=None):
    return BatchSelection(
        event_id=event.id,
        template_id=template_id,
        fields=("name", "eventName", "date"),
        channels=tuple(channels),
        design_id=design_id,
    )


def _participants(event):
    return (
        Participant.query.filter_by(event_id=event.id)
        .order_by(Participant.email)
        .all()
    )


def test_web3_hash_shape():
    value = generate_web3_hash()
    assert value.startswith("0x")
    assert len(value) == 66
    int(value[2:], 16)
    assert value != generate_web3_hash()


def test_batch_with_one_delivery_failure(app, summit, caplog):
    caplog.set_level("INFO", logger="eventcert.certs")
    calls = []

    def fake_send(**kwargs):
        calls.append(kwargs)
        if kwargs["recipient_email"] == "ben@example.com":
            return {"success": False, "message": "mailbox unavailable"}
        return {"success": True, "message": "ok"}

    participants = _participants(summit)
    result = issue_certificates(_selection(summit), participants, send_email=fake_send)

    assert result.processed == 3
    assert result.sent == 2
    assert result.failed == 1
    assert len(calls) == 3
    assert all(c["event_name"] == "Summit" for c in calls)

    statuses = {p.email: p.certificate_status for p in _participants(summit)}
    assert statuses == {
        "ann@example.com": "Sent",
        "ben@example.com": "Failed",
        "cy@example.com": "Sent",
    }
    certs = Certificate.query.filter_by(event_id=summit.id).all()
    assert len(certs) == 3
    by_participant = {c.participant.email: c for c in certs}
    assert by_participant["ben@example.com"].delivery_status == "Failed"
    assert by_participant["ann@example.com"].delivery_status == "Sent"
    assert all(c.delivery_method == "email" for c in certs)
    assert all(len(c.web3_hash) == 66 for c in certs)
    assert [pid for pid, _ in result.failures] == [by_participant["ben@example.com"].participant_id]
    assert "[CERT-DELIVERY-FAIL]" in caplog.text
    assert "[CERT-BATCH-DONE]" in caplog.text


def test_whatsapp_only_never_sends_email(app, summit):
    def must_not_send(**kwargs):
        raise AssertionError("email should not be sent")

    participants = _participants(summit)
    result = issue_certificates(
        _selection(summit, channels=("whatsapp",)), participants, send_email=must_not_send
    )
    assert result.sent == 3
    assert set(result.share_links) == {p.id for p in participants}
    link = result.share_links[participants[0].id]
    assert link.startswith("https://wa.me/?text=")
    assert "certs.example.com%2Fverify%2F" + summit.id in link


def test_default_sender_is_the_emailer(app, summit, monkeypatch):
    sent_to = []

    def fake(**kwargs):
        sent_to.append(kwargs["recipient_email"])
        return {"success": True, "message": "ok"}

    monkeypatch.setattr("eventcert.emailer.send_certificate_email", fake)
    issue_certificates(_selection(summit), _participants(summit))
    assert sorted(sent_to) == ["ann@example.com", "ben@example.com", "cy@example.com"]


def test_rerun_issues_duplicate_certificates(app, summit):
    ok = lambda **kwargs: {"success": True, "message": "ok"}
    issue_certificates(_selection(summit), _participants(summit), send_email=ok)
    issue_certificates(_selection(summit), _participants(summit), send_email=ok)
    assert Certificate.query.filter_by(event_id=summit.id).count() == 6


def test_ai_template_without_design_writes_nothing(app, summit):
    with pytest.raises(NothingToProcessError):
        issue_certificates(
            _selection(summit, template_id="ai"),
            _participants(summit),
            send_email=lambda **kw: {"success": True, "message": "ok"},
        )
    assert Certificate.query.count() == 0
    assert all(p.certificate_status == "Not Sent" for p in _participants(summit))


def test_empty_participant_list_is_rejected(app, summit):
    with pytest.raises(NothingToProcessError):
        issue_certificates(_selection(summit), [])


def test_ai_design_is_attached_to_certificate_and_email(app, summit):
    design = GeneratedDesign(prompt="waves", data_url="data:image/png;base64,iVBORw0KGgo=")
    db.session.add(design)
    db.session.commit()
    attachments = []

    def fake_send(**kwargs):
        attachments.append(kwargs["certificate_data_url"])
        return {"success": True, "message": "ok"}

    issue_certificates(
        _selection(summit, template_id="ai", design_id=design.id),
        _participants(summit),
        send_email=fake_send,
    )
    assert attachments == [design.data_url] * 3
    cert = Certificate.query.first()
    assert cert.design_data_url == design.data_url
    assert cert.template_id == "ai"


def _fail_commit_number(monkeypatch, failing_call):
    real_commit = db.session.commit
    calls = {"n": 0}

    def commit():
        calls["n"] += 1
        if calls["n"] == failing_call:
            raise OperationalError("COMMIT", {}, Exception("db unavailable"))
        return real_commit()

    monkeypatch.setattr(db.session, "commit", commit)


def test_write_failure_skips_only_that_participant(app, summit, monkeypatch, caplog):
    caplog.set_level("INFO", logger="eventcert.certs")
    participants = _participants(summit)
    ann_id, ben_id, cy_id = (p.id for p in participants)
    # commits run write then status per participant; the third is ben's write
    _fail_commit_number(monkeypatch, 3)

    result = issue_certificates(
        _selection(summit),
        participants,
        send_email=lambda **kw: {"success": True, "message": "ok"},
    )

    assert result.processed == 2
    assert result.sent == 2
    assert result.failed == 1
    assert [pid for pid, _ in result.failures] == [ben_id]
    assert result.failures[0][1].startswith("Certificate write failed")
    issued_for = {c.participant_id for c in Certificate.query.all()}
    assert issued_for == {ann_id, cy_id}
    assert db.session.get(Participant, ben_id).certificate_status == "Not Sent"
    assert "[CERT-FAIL]" in caplog.text
    assert "stage=write" in caplog.text


def test_certificate_is_pending_until_status_write(app, summit, monkeypatch, caplog):
    caplog.set_level("ERROR", logger="eventcert.certs")
    participants = _participants(summit)
    ann_id = participants[0].id
    # second commit is ann's status write
    _fail_commit_number(monkeypatch, 2)

    result = issue_certificates(
        _selection(summit),
        participants,
        send_email=lambda **kw: {"success": True, "message": "ok"},
    )

    assert result.processed == 3
    assert result.sent == 2
    assert result.failed == 1
    ann_cert = Certificate.query.filter_by(participant_id=ann_id).one()
    assert ann_cert.delivery_status == "Not Sent"
    assert db.session.get(Participant, ann_id).certificate_status == "Not Sent"
    assert "stage=status" in caplog.text


def test_batch_certificates_lists_one_run(app, summit):
    ok = lambda **kwargs: {"success": True, "message": "ok"}
    first = issue_certificates(_selection(summit), _participants(summit), send_email=ok)
    second = issue_certificates(_selection(summit), _participants(summit), send_email=ok)

    rows = batch_certificates(second.batch_id)
    assert sorted(c.id for c, _ in rows) == sorted(second.certificate_ids)
    assert all(c.batch_id == second.batch_id for c, _ in rows)
    assert first.batch_id != second.batch_id
    assert batch_certificates(None) == []
