"""Field validators for the booking flow.

All functions here are pure. ``parse_future_datetime`` is a best-effort
heuristic: ISO-8601 strings, "tomorrow" / "next week" with an optional
``H[:MM][am|pm]`` time, and otherwise whatever ``dateparser`` makes of English
text that names both a day and a month. Fragments like "5" or "friday" are
not guessed at. Anything it cannot place in the future is rejected and the
user is asked again.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

import dateparser

log = logging.getLogger("vetchat.booking.validators")

_PHONE_STRIP = re.compile(r"[\s\-().]")
_PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
_TIME_TOKEN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?", re.IGNORECASE)

# A day and a month written out: "Jan 15", "15th of March", "3/15"
_MONTH_NAME = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\b", re.IGNORECASE,
)
_DAY_NUMBER = re.compile(r"\b\d{1,2}(st|nd|rd|th)?\b", re.IGNORECASE)
_NUMERIC_DATE = re.compile(r"\b\d{1,2}[/.-]\d{1,2}([/.-]\d{2,4})?\b")

# Relative day phrases, checked in order
_RELATIVE_DAYS = (
    ("tomorrow", 1),
    ("next week", 7),
)


def validate_name(value: Optional[str]) -> bool:
    """True if the trimmed value has at least two characters."""
    return bool(value) and len(value.strip()) >= 2


def validate_phone(value: Optional[str]) -> bool:
    """True if the value is 7-15 digits (optionally ``+``-prefixed) once
    spaces, hyphens, parentheses and dots are removed."""
    if not value:
        return False
    cleaned = _PHONE_STRIP.sub("", value)
    return bool(_PHONE_PATTERN.match(cleaned))


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _iso_parse(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _relative_days(text: str) -> Optional[int]:
    lowered = text.lower()
    for phrase, days in _RELATIVE_DAYS:
        if phrase in lowered:
            return days
    return None


def _relative_parse(text: str, now: datetime, days: int) -> Optional[datetime]:
    base = now + timedelta(days=days)

    match = _TIME_TOKEN.search(text)
    if not match:
        return base

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").lower()
    if period == "pm" and hours < 12:
        hours += 12
    if period == "am" and hours == 12:
        hours = 0

    try:
        return base.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    except ValueError:
        return None


def _names_day_and_month(text: str) -> bool:
    if _NUMERIC_DATE.search(text):
        return True
    return bool(_MONTH_NAME.search(text) and _DAY_NUMBER.search(text))


def _natural_parse(text: str, now: datetime) -> Optional[datetime]:
    if not _names_day_and_month(text):
        return None
    try:
        return dateparser.parse(
            text,
            languages=["en"],
            settings={
                "RELATIVE_BASE": now.replace(tzinfo=None),
                "PREFER_DATES_FROM": "future",
                "RETURN_AS_TIMEZONE_AWARE": False,
                "REQUIRE_PARTS": ["day", "month"],
            },
        )
    except (ValueError, OverflowError):
        return None


def parse_future_datetime(text: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse a preferred appointment time, returning None unless it is
    strictly after ``now``.

    Naive results are given ``now``'s timezone. A naive ``now`` is read as
    local time.
    """
    if not text or not text.strip():
        return None

    if now is None:
        now = _local_now()
    elif now.tzinfo is None:
        now = now.astimezone()

    text = text.strip()
    parsed = _iso_parse(text)
    if parsed is None:
        days = _relative_days(text)
        if days is not None:
            parsed = _relative_parse(text, now, days)
        else:
            parsed = _natural_parse(text, now)

    if parsed is None:
        log.debug("Could not derive a date from %r", text)
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)

    if parsed <= now:
        return None
    return parsed
