"""Wall-clock time-of-day helpers.

Times travel as ``HH:MM:00`` strings (the format the backing store uses for
``time`` columns) and are compared as minutes since midnight. No timezone
handling happens anywhere: court, booking and display all share one local
wall clock.
"""
import re

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_time(value: str) -> int:
    """Parses ``HH:MM`` or ``HH:MM:SS`` into minutes since midnight."""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time format: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if minutes > 59 or seconds > 59:
        raise ValueError(f"Invalid time value: {value!r}")

    total = hours * 60 + minutes
    # 24:00 is allowed as an end-of-day boundary, nothing past it
    if total > MINUTES_PER_DAY or (total == MINUTES_PER_DAY and seconds):
        raise ValueError(f"Time out of range: {value!r}")
    return total


def format_time(minutes: int) -> str:
    """Formats minutes since midnight as ``HH:MM:00``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00"


def format_display(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str) -> str:
    """Returns the canonical ``HH:MM:00`` form of a time string."""
    return format_time(parse_time(value))


def end_time_for(start_time: str, duration_minutes: int) -> str:
    return format_time(parse_time(start_time) + duration_minutes)
