"""Duration and date formatting for stage history display.

Pure functions, no I/O. Negative durations are clamped to zero.
"""
from datetime import datetime, timedelta, timezone

RECENT_TOKEN = "Récent"
INSTANT_TOKEN = "Instant"
IN_PROGRESS_PREFIX = "En cours · "

_DAY = 86400
_HOUR = 3600
_MINUTE = 60

_SHORT_MONTHS = (
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_duration(seconds: int) -> str:
    """Compact single-unit form: "3j", "5h", "12m", or "Récent" under a minute."""
    seconds = max(0, int(seconds))

    if seconds >= _DAY:
        return f"{seconds // _DAY}j"
    if seconds >= _HOUR:
        return f"{seconds // _HOUR}h"
    if seconds >= _MINUTE:
        return f"{seconds // _MINUTE}m"
    return RECENT_TOKEN


def format_duration_detailed(seconds: int) -> str:
    """Verbose two-unit form.

    Examples: "2 jours 3h", "1 heure", "1 minute 30s", "45 secondes", "Instant".
    """
    seconds = max(0, int(seconds))

    if seconds >= _DAY:
        days = seconds // _DAY
        hours = (seconds % _DAY) // _HOUR
        text = _plural(days, "jour")
        return f"{text} {hours}h" if hours else text

    if seconds >= _HOUR:
        hours = seconds // _HOUR
        minutes = (seconds % _HOUR) // _MINUTE
        text = _plural(hours, "heure")
        return f"{text} {minutes}m" if minutes else text

    if seconds >= _MINUTE:
        minutes = seconds // _MINUTE
        remainder = seconds % _MINUTE
        text = _plural(minutes, "minute")
        return f"{text} {remainder}s" if remainder else text

    if seconds > 0:
        return _plural(seconds, "seconde")

    return INSTANT_TOKEN


def calculate_duration(start: datetime, end: datetime | None = None) -> int:
    """Whole seconds between ``start`` and ``end`` (default: now), floored.

    Callers are responsible for passing end >= start.
    """
    end = end if end is not None else datetime.now(timezone.utc)
    return (as_utc(end) - as_utc(start)) // timedelta(seconds=1)


def get_stage_display_duration(
    is_active: bool,
    started_at: datetime,
    ended_at: datetime | None = None,
    duration_seconds: int | None = None,
    now: datetime | None = None,
) -> str:
    """Display text for one stage interval.

    Active stages are always recomputed live ("En cours · 3h"), ignoring any
    stored duration. Closed stages prefer the stored duration, then the
    started/ended timestamps, then fall back to "Récent".
    """
    if is_active:
        return IN_PROGRESS_PREFIX + format_duration(calculate_duration(started_at, now))

    if duration_seconds is not None:
        return format_duration(duration_seconds)

    if ended_at is not None:
        return format_duration(calculate_duration(started_at, ended_at))

    return RECENT_TOKEN


def format_date_compact(value: datetime) -> str:
    """Day/month/year, e.g. 12/10/2025."""
    return as_utc(value).strftime("%d/%m/%Y")


def format_date_range(start: datetime, end: datetime | None = None) -> str:
    """Range text: "du 12/10/2025 au 15/10/2025", or "depuis le 12/10/2025" while open."""
    if end is None:
        return f"depuis le {format_date_compact(start)}"
    return f"du {format_date_compact(start)} au {format_date_compact(end)}"


def format_stage_update_date(value: datetime, author: str | None = None) -> str:
    """Tooltip text, e.g. "Mis à jour: 31 oct. — par Tazi"."""
    value = as_utc(value)
    formatted = f"{value.day} {_SHORT_MONTHS[value.month - 1]}"
    if author:
        return f"Mis à jour: {formatted} — par {author}"
    return f"Mis à jour: {formatted}"
