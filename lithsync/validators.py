"""Client-side checks run before state is keyed or requests are sent."""

from __future__ import annotations

from typing import Tuple

from lithsync.dates import is_date_key
from lithsync.models import Report


def validate_user_id(user_id: str | None) -> Tuple[bool, str | None]:
    if user_id is None or not str(user_id).strip():
        return False, "A signed-in user is required."
    return True, None


def validate_date_key(text: str) -> Tuple[bool, str | None]:
    if not is_date_key(text.strip()):
        return False, "Invalid date. Expected YYYY-MM-DD."
    return True, None


def validate_report(report: Report) -> Tuple[bool, str | None]:
    missing = [
        name
        for name, value in (
            ("contentId", report.content_id),
            ("userId", report.user_id),
            ("reason", report.reason),
            ("details", report.details),
        )
        if not (value or "").strip()
    ]
    if missing:
        return False, "Missing required fields for report submission: " + ", ".join(missing)
    return True, None
