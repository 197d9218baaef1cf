"""
Scheduling intent resolution.

Turns the date expressions the extractor emits into absolute timestamps:
- ISO 8601 timestamps ("2026-03-05T16:00:00Z") pass through unchanged
- Weekday + hour phrases ("Thursday at 4pm", "monday 9:30am") resolve to the
  next occurrence of that weekday strictly after today

Resolution is pure: the caller supplies ``now``. The resolver never invents
a default; callers decide what an unresolved phrase means.
"""

import re
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from .config import config

Clock = Callable[[], datetime]

_WEEKDAYS = {
    'monday': 0,
    'tuesday': 1,
    'wednesday': 2,
    'thursday': 3,
    'friday': 4,
    'saturday': 5,
    'sunday': 6,
}

_ISO_DATE_RE = re.compile(r'\d{4}-\d{2}-\d{2}')
_WEEKDAY_RE = re.compile(r'\b(' + '|'.join(_WEEKDAYS) + r')\b', re.IGNORECASE)
_TIME_RE = re.compile(
    r'(?<![\d:])(\d{1,2})(?::(\d{2}))?(?!\d)(?:\s*(am|pm)\b)?',
    re.IGNORECASE,
)


def system_clock() -> datetime:
    """Current time in the configured scheduling timezone."""
    return datetime.now(tz=ZoneInfo(config.SCHEDULING_TIMEZONE))


def _parse_absolute(text: str, now: datetime) -> datetime | None:
    if not _ISO_DATE_RE.search(text):
        return None
    candidate = text.strip()
    if candidate[-1:] in ('Z', 'z'):
        candidate = candidate[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None and now.tzinfo is not None:
        # Naive timestamps are wall-clock times in the caller's zone
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def _find_time_token(text: str) -> re.Match[str] | None:
    """Prefer tokens with minutes or am/pm over bare numbers."""
    bare: re.Match[str] | None = None
    for match in _TIME_RE.finditer(text):
        if match.group(2) or match.group(3):
            return match
        if bare is None:
            bare = match
    return bare


def to_24_hour(hour: int, meridiem: str | None) -> int | None:
    """
    Convert an hour and optional am/pm marker to 0-23.

    Returns None for hours that cannot exist ("13pm", "25").
    """
    if meridiem is None:
        return hour if 0 <= hour <= 23 else None
    if not 1 <= hour <= 12:
        return None
    if meridiem == 'pm':
        return 12 if hour == 12 else hour + 12
    return 0 if hour == 12 else hour


def resolve_scheduling_intent(text: str | None, now: datetime) -> datetime | None:
    """
    Resolve a date expression to an absolute timestamp.

    Args:
        text: ISO timestamp or natural-language phrase
        now: Reference time; its date, weekday and tzinfo anchor the result

    Returns:
        Resolved datetime, or None if the phrase lacks a weekday or an hour
    """
    if not text or not isinstance(text, str):
        return None

    absolute = _parse_absolute(text, now)
    if absolute is not None:
        return absolute

    day_match = _WEEKDAY_RE.search(text)
    time_match = _find_time_token(text)
    if day_match is None or time_match is None:
        return None

    hour = int(time_match.group(1))
    minute = int(time_match.group(2)) if time_match.group(2) else 0
    meridiem = time_match.group(3).lower() if time_match.group(3) else None

    hour24 = to_24_hour(hour, meridiem)
    if hour24 is None or minute > 59:
        return None

    target_weekday = _WEEKDAYS[day_match.group(1).lower()]
    days_ahead = (target_weekday - now.weekday()) % 7 or 7

    target = now + timedelta(days=days_ahead)
    return target.replace(hour=hour24, minute=minute, second=0, microsecond=0)
