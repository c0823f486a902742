"""
Booking availability engine.

Pure functions over the bookings already loaded for one (turf, date).
The persistence layer (``app.db``) loads those bookings and runs these
checks inside a write transaction so that check-then-insert is atomic.

Usage::

    bookings = await db.find_bookings_for_turf_date(turf.id, "2026-03-01")
    window = operating_window(turf, "2026-03-01")
    if window is not None:
        slots = available_slots(bookings, *window)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date

from app.config import DEFAULT_CLOSE_TIME, DEFAULT_OPEN_TIME, SLOT_MINUTES
from app.models import BLOCKING_BOOKING_STATUSES, Booking, Slot, Turf
from app.services.errors import ValidationError
from app.services.pricing import parse_date
from app.services.time_intervals import (
    from_minutes,
    overlaps,
    to_minutes,
    validate_interval,
)

logger = logging.getLogger(__name__)

_WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def _blocking(
    existing: Iterable[Booking], exclude_booking_id: str | None = None
) -> list[tuple[int, int]]:
    """Minute intervals of the bookings that hold their slot."""
    return [
        (to_minutes(b.start_time), to_minutes(b.end_time))
        for b in existing
        if b.status in BLOCKING_BOOKING_STATUSES and b.id != exclude_booking_id
    ]


def find_conflicts(
    existing: Iterable[Booking],
    start_time: str,
    end_time: str,
    *,
    exclude_booking_id: str | None = None,
) -> list[Booking]:
    """Pending/confirmed bookings overlapping [start_time, end_time)."""
    start, end = validate_interval(start_time, end_time)
    return [
        b
        for b in existing
        if b.status in BLOCKING_BOOKING_STATUSES
        and b.id != exclude_booking_id
        and overlaps(start, end, to_minutes(b.start_time), to_minutes(b.end_time))
    ]


def is_available(
    existing: Iterable[Booking],
    start_time: str,
    end_time: str,
    *,
    exclude_booking_id: str | None = None,
) -> bool:
    """
    True if no pending/confirmed booking overlaps [start_time, end_time).

    ``existing`` must already be restricted to one turf and date.
    """
    return not find_conflicts(
        existing, start_time, end_time, exclude_booking_id=exclude_booking_id
    )


def operating_window(turf: Turf, on: str | date) -> tuple[str, str] | None:
    """
    Opening window of ``turf`` on the weekday of ``on``.

    Returns None when the turf is closed that day. Weekdays without an
    entry fall back to the configured default window.
    """
    weekday = _WEEKDAYS[parse_date(on).weekday()]
    hours = turf.operating_hours.get(weekday)
    if hours is None:
        return DEFAULT_OPEN_TIME, DEFAULT_CLOSE_TIME
    if not hours.is_open:
        return None
    if to_minutes(hours.close) <= to_minutes(hours.open):
        # Overnight or zero-length hours are not bookable as same-day slots.
        logger.warning(
            "Turf %s has unusable hours on %s: %s-%s",
            turf.id, weekday, hours.open, hours.close,
        )
        return None
    return hours.open, hours.close


def iter_slots(
    open_time: str, close_time: str, slot_minutes: int = SLOT_MINUTES
) -> Iterator[Slot]:
    """Unit slots from open to close; a trailing partial slot is dropped."""
    if slot_minutes <= 0:
        raise ValidationError("Slot length must be positive")
    current, end = validate_interval(open_time, close_time)
    while current + slot_minutes <= end:
        yield Slot(
            start_time=from_minutes(current),
            end_time=from_minutes(current + slot_minutes),
        )
        current += slot_minutes


def available_slots(
    existing: Iterable[Booking],
    open_time: str,
    close_time: str,
    slot_minutes: int = SLOT_MINUTES,
) -> list[Slot]:
    """Every unit slot in the window not overlapping a blocking booking."""
    taken = _blocking(existing)
    free = []
    for slot in iter_slots(open_time, close_time, slot_minutes):
        start, end = to_minutes(slot.start_time), to_minutes(slot.end_time)
        if not any(overlaps(start, end, b_start, b_end) for b_start, b_end in taken):
            free.append(slot)
    return free


def within_window(window: tuple[str, str] | None, start_time: str, end_time: str) -> bool:
    """True if [start_time, end_time) lies inside the opening window."""
    if window is None:
        return False
    start, end = validate_interval(start_time, end_time)
    return to_minutes(window[0]) <= start and end <= to_minutes(window[1])
