"""Booking cost from duration and the turf's weekday / weekend rates."""

from __future__ import annotations

from datetime import date

from app.services.errors import ValidationError
from app.services.time_intervals import duration_minutes


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


def is_weekend(value: str | date) -> bool:
    """Saturday or Sunday."""
    return parse_date(value).weekday() >= 5


def hourly_rate_for(
    value: str | date, hourly_rate: float, weekend_rate: float | None = None
) -> float:
    if weekend_rate and is_weekend(value):
        return weekend_rate
    return hourly_rate


def compute_total_amount(
    start_time: str,
    end_time: str,
    hourly_rate: float,
    weekend_rate: float | None,
    booking_date: str | date,
) -> float:
    """
    Price a booking: duration in hours times the applicable hourly rate.

    The weekend rate applies on Saturdays and Sundays when the turf sets one.
    Raises InvalidIntervalError when end <= start.
    """
    hours = duration_minutes(start_time, end_time) / 60
    rate = hourly_rate_for(booking_date, hourly_rate, weekend_rate)
    return round(hours * rate, 2)
