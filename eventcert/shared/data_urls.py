"""Helpers for ``data:`` URLs carrying generated certificate artwork."""

from __future__ import annotations

import base64
import binascii
import re

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.S)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def build_data_url(mime_type: str, payload: bytes) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def parse_data_url(value: str | None) -> tuple[str, bytes]:
    """Return ``(mime_type, payload)`` for a base64 data URL.

    Raises ``ValueError`` for anything that is not a base64 encoded data URL.
    """

    match = _DATA_URL_RE.match((value or "").strip())
    if not match or not match.group("b64"):
        raise ValueError("Not a base64 data URL")
    mime = match.group("mime") or "application/octet-stream"
    try:
        payload = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return mime, payload


def extension_for(mime_type: str) -> str:
    return _EXTENSIONS.get((mime_type or "").lower(), "bin")
