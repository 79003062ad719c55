from eventcert.app import create_app, db

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from sqlalchemy import func
from flask import current_app
from eventcert.certgen import certificate_pdf_for, pdf_digest
from eventcert.demo_data import seed_demo_data
from eventcert.models import Certificate, Organizer
from eventcert.services.registration import reconcile_participant_counts


migrate = Migrate()


def create_eventcert_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_eventcert_app)


@cli.command("seed_demo")
def seed_demo():
    """Load the demo events and participants."""
    events_added, participants_added = seed_demo_data()
    click.echo(f"events={events_added} participants={participants_added}")


@cli.command("reconcile_counts")
@click.option(
    "--dry-run", is_flag=True, help="List drifted counters without fixing them"
)
def reconcile_counts(dry_run: bool):
    """Recompute event participant counters from the participants table."""
    drifted = reconcile_participant_counts(dry_run=dry_run)
    if not drifted:
        click.echo("All counters match")
        return
    for event, stored, actual in drifted:
        click.echo(f"{event.id} {event.title}: stored={stored} actual={actual}")
    summary = f"drifted={len(drifted)} fixed={0 if dry_run else len(drifted)}"
    click.echo(summary)
    current_app.logger.info("[COUNT-RECONCILE] %s", summary)


@cli.command("gen_cert")
@click.option("--certificate", "certificate_id", required=True)
@click.option("--out", "out_path", required=True, type=click.Path(dir_okay=False))
def gen_cert(certificate_id: str, out_path: str):
    """Render a stored certificate to a PDF file."""
    certificate = db.session.get(Certificate, certificate_id)
    if not certificate:
        click.echo("Not found", err=True)
        raise SystemExit(1)
    pdf = certificate_pdf_for(certificate)
    with open(out_path, "wb") as fh:
        fh.write(pdf)
    click.echo(f"{out_path} sha256={pdf_digest(pdf)}")


@cli.command("create_organizer")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", "full_name", default="")
@click.option("--admin", is_flag=True, help="Grant mail settings access")
def create_organizer(email: str, password: str, full_name: str, admin: bool):
    """Create an organizer account or reset its password."""
    user = (
        db.session.query(Organizer)
        .filter(func.lower(Organizer.email) == email.lower())
        .one_or_none()
    )
    created = user is None
    if created:
        user = Organizer(email=email, full_name=full_name or email)
        db.session.add(user)
    elif full_name:
        user.full_name = full_name
    user.set_password(password)
    if admin:
        user.is_admin = True
    db.session.commit()
    click.echo(f"{'created' if created else 'updated'} {user.email} admin={user.is_admin}")


if __name__ == "__main__":
    cli()
