from __future__ import annotations

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session as flask_session,
    url_for,
)
from sqlalchemy import func

from ..app import db
from ..models import Organizer

bp = Blueprint("auth", __name__)


def _safe_next(target: str | None) -> str:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return url_for("dashboard")


@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        password = request.form.get("password") or ""
        user = (
            db.session.query(Organizer)
            .filter(func.lower(Organizer.email) == email)
            .one_or_none()
        )
        if not user or not user.check_password(password):
            current_app.logger.info(f"[AUTH-FAIL] email={email}")
            flash("Invalid email or password.", "error")
            return render_template("login.html", email=email), 401
        flask_session.clear()
        flask_session["user_id"] = user.id
        current_app.logger.info(f"[AUTH-OK] organizer={user.id}")
        return redirect(_safe_next(request.args.get("next")))
    return render_template("login.html", email="")


@bp.get("/logout")
def logout():
    flask_session.clear()
    flash("Signed out.", "info")
    return redirect(url_for("auth.login"))
