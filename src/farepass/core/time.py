"""
Timestamps for trips and GPS samples.

Everything stored is timezone-aware. Devices sometimes report naive local times;
those are read in the configured `app.timezone`.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_aware(value: datetime | str, timezone: str) -> datetime:
    """Accept a datetime or an ISO-8601 string (a trailing `Z` means UTC).

    Raises:
        ValueError: If a string is not ISO-8601.
    """
    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in {"Z", "z"}:
            text = f"{text[:-1]}+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(timezone))
    return value
