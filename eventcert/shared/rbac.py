from functools import wraps

from flask import abort, redirect, request, session, url_for

from ..app import db
from ..models import Organizer


def organizer_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        if not user_id:
            return redirect(url_for("auth.login", next=request.path))
        user = db.session.get(Organizer, user_id)
        if not user:
            session.pop("user_id", None)
            return redirect(url_for("auth.login"))
        return fn(*args, **kwargs, current_user=user)

    return wrapper


def admin_required(fn):
    """Allow access to administrator organizers only."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        if not user_id:
            return redirect(url_for("auth.login", next=request.path))
        user = db.session.get(Organizer, user_id)
        if not user or not user.is_admin:
            abort(403)
        return fn(*args, **kwargs, current_user=user)

    return wrapper
