"""Wall-clock "HH:MM" helpers and half-open interval overlap."""

from __future__ import annotations

import re

from app.services.errors import InvalidIntervalError, ValidationError

_HHMM = re.compile(r"(\d{2}):(\d{2})")

# Minutes in a day; "24:00" is accepted as an end-of-day closing time.
DAY_MINUTES = 24 * 60


def to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    match = _HHMM.fullmatch(value or "")
    if not match:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def from_minutes(minutes: int) -> str:
    """Convert minutes since midnight back to "HH:MM"."""
    if not 0 <= minutes <= DAY_MINUTES:
        raise ValidationError(f"Minute offset {minutes} is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True if [a_start, a_end) and [b_start, b_end) share any minute.

    Back-to-back intervals (one ending exactly when the other starts)
    do not overlap.
    """
    return a_start < b_end and b_start < a_end


def times_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    return overlaps(
        to_minutes(a_start), to_minutes(a_end), to_minutes(b_start), to_minutes(b_end)
    )


def validate_interval(start_time: str, end_time: str) -> tuple[int, int]:
    """Parse a same-day interval, raising InvalidIntervalError if end <= start."""
    start, end = to_minutes(start_time), to_minutes(end_time)
    if end <= start:
        raise InvalidIntervalError(
            f"End time {end_time} must be after start time {start_time}"
        )
    return start, end


def duration_minutes(start_time: str, end_time: str) -> int:
    start, end = validate_interval(start_time, end_time)
    return end - start
