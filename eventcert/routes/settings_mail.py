import os

from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..app import db
from ..emailer import send
from ..models import Settings
from ..shared.csrf import check_csrf
from ..shared.rbac import admin_required

bp = Blueprint("settings_mail", __name__)


@bp.route("/settings/mail", methods=["GET", "POST"])
@admin_required
def settings(current_user):
    settings = Settings.get()
    if not settings:
        settings = Settings(
            id=1,
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=int(os.getenv("SMTP_PORT") or 0),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_from_default=os.getenv("SMTP_FROM_DEFAULT", ""),
            smtp_from_name=os.getenv("SMTP_FROM_NAME", ""),
        )
    if request.method == "POST":
        check_csrf()
        settings.smtp_host = request.form.get("smtp_host", "").strip()
        try:
            settings.smtp_port = int(request.form.get("smtp_port") or 0)
        except ValueError:
            flash("SMTP port must be a number.", "error")
            return redirect(url_for("settings_mail.settings"))
        settings.smtp_user = request.form.get("smtp_user", "").strip()
        settings.smtp_from_default = request.form.get("smtp_from_default", "").strip()
        settings.smtp_from_name = request.form.get("smtp_from_name", "").strip()
        pwd = request.form.get("smtp_pass", "")
        if pwd:
            settings.set_smtp_pass(pwd)
        db.session.merge(settings)
        db.session.commit()
        flash("Saved", "success")
        return redirect(url_for("settings_mail.settings"))
    return render_template("settings_mail.html", settings=settings)


@bp.post("/settings/mail/test")
@admin_required
def test_send(current_user):
    check_csrf()
    res = send(current_user.email, "EventCert test email", "This is a test email.")
    if res.get("ok"):
        flash("Test email sent", "success")
    else:
        flash(f"Error: {res.get('detail')}", "error")
    return redirect(url_for("settings_mail.settings"))
