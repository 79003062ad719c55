"""Mail helper utilities."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

logger = logging.getLogger("eventcert.mailer")

_SPLIT_RE = re.compile(r"[;,]")


def _iter_tokens(recipients: Sequence[str] | str | None) -> Iterable[str]:
    if recipients is None:
        return []
    if isinstance(recipients, str):
        return (part for part in _SPLIT_RE.split(recipients))
    return (str(value) for value in recipients)


def is_plausible_email(value: str | None) -> bool:
    candidate = (value or "").strip().lower()
    if "@" not in candidate:
        return False
    local, _, domain = candidate.rpartition("@")
    return bool(local) and "." in domain


def normalize_recipients(recipients: Sequence[str] | str | None) -> tuple[list[str], str]:
    """Normalize recipient entries for SMTP envelopes and headers."""

    seen: set[str] = set()
    kept: list[str] = []

    for raw in _iter_tokens(recipients):
        candidate = (raw or "").strip()
        if not candidate:
            continue
        normalized = candidate.lower()
        if not is_plausible_email(normalized):
            logger.warning("[MAIL-INVALID-RECIPIENT] token=%s", candidate)
            continue
        if normalized in seen:
            continue
        seen.add(normalized)
        kept.append(candidate)

    header = ", ".join(kept)
    return kept, header
