"""Learning-day keys.

Every day-scoped piece of state is addressed by a ``YYYY-MM-DD`` key. The
learning day rolls over at 02:00 UTC, so a session started at 01:30 UTC still
belongs to the previous calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from lithsync.config import RESET_HOUR_UTC

DATE_KEY_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def current_date_key(now: datetime | None = None) -> str:
    """Return the learning-day key for ``now`` (defaults to the system clock)."""
    moment = _as_utc(now or utc_now())
    if moment.hour < RESET_HOUR_UTC:
        moment = moment - timedelta(days=1)
    return moment.strftime(DATE_KEY_FORMAT)


def parse_date_key(key: str) -> date:
    return datetime.strptime(key, DATE_KEY_FORMAT).date()


def is_date_key(key: str) -> bool:
    if len(key) != 10:
        return False
    try:
        parse_date_key(key)
    except ValueError:
        return False
    return True


def date_key_age_days(date_key: str, today_key: str) -> int:
    """Number of whole days ``date_key`` lies before ``today_key``."""
    return (parse_date_key(today_key) - parse_date_key(date_key)).days
