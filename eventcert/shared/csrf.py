import hmac

from flask import abort, request, session


def check_csrf() -> None:
    """Abort with 400 unless the request echoes the session's CSRF token.

    Forms send it as ``csrf_token``; JSON callers use the ``X-CSRF-Token``
    header.
    """

    expected = session.get("_csrf_token")
    supplied = request.form.get("csrf_token") or request.headers.get("X-CSRF-Token")
    if not expected or not supplied or not hmac.compare_digest(supplied, expected):
        abort(400)
