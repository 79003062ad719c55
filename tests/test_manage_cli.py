from datetime import datetime

import pytest

from eventcert.app import db
from eventcert.models import Certificate, Event, Organizer, Participant
from manage import create_organizer, gen_cert, reconcile_counts, seed_demo


@pytest.fixture
def cli_app(app):
    for command in (seed_demo, reconcile_counts, gen_cert, create_organizer):
        app.cli.add_command(command)
    return app


def test_seed_demo_is_idempotent(cli_app):
    runner = cli_app.test_cli_runner()
    res = runner.invoke(args=["seed_demo"])
    assert res.exit_code == 0
    assert "events=4 participants=6" in res.output
    res = runner.invoke(args=["seed_demo"])
    assert "events=0 participants=0" in res.output
    summit = Event.query.filter_by(title="Web3 & Blockchain Summit 2024").one()
    assert summit.participant_count == 2


def test_reconcile_counts(cli_app, summit):
    summit.participant_count = 10
    db.session.commit()
    runner = cli_app.test_cli_runner()
    res = runner.invoke(args=["reconcile_counts", "--dry-run"])
    assert "stored=10 actual=3" in res.output
    assert db.session.get(Event, summit.id).participant_count == 10
    res = runner.invoke(args=["reconcile_counts"])
    assert "fixed=1" in res.output
    assert db.session.get(Event, summit.id).participant_count == 3
    res = runner.invoke(args=["reconcile_counts"])
    assert "All counters match" in res.output


def test_gen_cert(cli_app, summit, tmp_path):
    participant = Participant.query.filter_by(email="ann@example.com").one()
    cert = Certificate(
        event_id=summit.id,
        participant_id=participant.id,
        participant_name=participant.name,
        template_id="creative",
        issued_at=datetime(2024, 9, 16),
        web3_hash="0x" + "12" * 32,
        delivery_method="email",
        delivery_status="Sent",
        fields=["name", "eventName", "date"],
    )
    db.session.add(cert)
    db.session.commit()
    out = tmp_path / "cert.pdf"
    runner = cli_app.test_cli_runner()
    res = runner.invoke(args=["gen_cert", "--certificate", cert.id, "--out", str(out)])
    assert res.exit_code == 0
    assert "sha256=" in res.output
    assert out.read_bytes().startswith(b"%PDF")

    res = runner.invoke(args=["gen_cert", "--certificate", "missing", "--out", str(out)])
    assert res.exit_code == 1


def test_create_organizer(cli_app):
    runner = cli_app.test_cli_runner()
    res = runner.invoke(
        args=["create_organizer", "--email", "New@Example.com", "--password", "pw", "--admin"]
    )
    assert "created new@example.com admin=True" in res.output
    user = Organizer.query.filter_by(email="new@example.com").one()
    assert user.check_password("pw")

    res = runner.invoke(
        args=["create_organizer", "--email", "new@example.com", "--password", "pw2"]
    )
    assert "updated" in res.output
    assert Organizer.query.count() == 1
    assert db.session.get(Organizer, user.id).check_password("pw2")
