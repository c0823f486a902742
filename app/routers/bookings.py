"""
Booking endpoints – reserve turf intervals and query free slots.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from app import db
from app.dependencies import CurrentUser
from app.models import (
    AvailableSlotsResponse,
    Booking,
    BookingCreate,
    BookingStats,
    BookingStatus,
    BookingStatusUpdate,
    Turf,
    User,
    UserRole,
)
from app.services import availability
from app.services.errors import ValidationError
from app.services.pricing import compute_total_amount, parse_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


async def _turf_or_404(turf_id: str) -> Turf:
    turf = await db.get_turf(turf_id)
    if turf is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    return turf


def _manages(user: User, turf: Turf | None) -> bool:
    return user.role == UserRole.admin or (turf is not None and turf.owner_id == user.id)


async def _managed_turf(turf_id: str, user: User) -> Turf:
    turf = await _turf_or_404(turf_id)
    if not _manages(user, turf):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return turf


@router.get(
    "/my-bookings",
    response_model=list[Booking],
    operation_id="listMyBookings",
    summary="Bookings made by the current user, newest first",
)
async def list_my_bookings(
    current_user: CurrentUser,
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[Booking]:
    return await db.list_bookings_for_user(current_user.id, status=status_filter, limit=limit)


@router.get(
    "/turf/{turf_id}/available-slots",
    response_model=AvailableSlotsResponse,
    operation_id="getAvailableSlots",
    summary="Free unit slots of a turf on a date",
)
async def get_available_slots(
    turf_id: str,
    date: Annotated[str, Query(description="Date (YYYY-MM-DD)")],
) -> AvailableSlotsResponse:
    """
    Every slot inside the turf's opening window that does not overlap a
    pending or confirmed booking. Closed days return no slots.
    """
    turf = await _turf_or_404(turf_id)
    day = parse_date(date).isoformat()

    window = availability.operating_window(turf, day)
    if window is None:
        return AvailableSlotsResponse(turf_id=turf_id, date=day, slots=[])

    existing = await db.find_bookings_for_turf_date(turf_id, day)
    return AvailableSlotsResponse(
        turf_id=turf_id,
        date=day,
        slots=availability.available_slots(existing, *window),
    )


@router.get(
    "/turf/{turf_id}/stats",
    response_model=BookingStats,
    operation_id="getTurfBookingStats",
    summary="Booking totals for a turf you manage",
)
async def get_turf_stats(
    turf_id: str,
    current_user: CurrentUser,
    date_from: Annotated[str | None, Query(description="Inclusive start date")] = None,
    date_to: Annotated[str | None, Query(description="Inclusive end date")] = None,
) -> BookingStats:
    await _managed_turf(turf_id, current_user)
    return await db.booking_stats(turf_id, date_from=date_from, date_to=date_to)


@router.get(
    "/turf/{turf_id}",
    response_model=list[Booking],
    operation_id="listTurfBookings",
    summary="Bookings of a turf you manage",
)
async def list_turf_bookings(
    turf_id: str,
    current_user: CurrentUser,
    date: Annotated[str | None, Query()] = None,
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
) -> list[Booking]:
    await _managed_turf(turf_id, current_user)
    return await db.list_bookings_for_turf(turf_id, date=date, status=status_filter)


@router.get(
    "/{booking_id}",
    response_model=Booking,
    operation_id="getBooking",
    summary="Get a booking (its booker, the turf owner, or an admin)",
)
async def get_booking(booking_id: str, current_user: CurrentUser) -> Booking:
    booking = await db.get_booking(booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    if booking.user_id != current_user.id:
        turf = await db.get_turf(booking.turf_id)
        if not _manages(current_user, turf):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@router.post(
    "",
    response_model=Booking,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBooking",
    summary="Book a turf interval",
)
async def create_booking(body: BookingCreate, current_user: CurrentUser) -> Booking:
    """
    Reserve ``[start_time, end_time)`` on ``date``.

    The price uses the weekend rate on Saturdays and Sundays. Overlapping
    a pending or confirmed booking yields 409; the check and the insert
    are atomic.
    """
    turf = await db.get_turf(body.turf_id)
    if turf is None or not turf.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Turf not found or inactive",
        )

    window = availability.operating_window(turf, body.date)
    if not availability.within_window(window, body.start_time, body.end_time):
        raise ValidationError("Requested time is outside the turf's operating hours")

    total_amount = compute_total_amount(
        body.start_time,
        body.end_time,
        turf.price_per_hour,
        turf.price_per_hour_weekend,
        body.date,
    )
    return await db.create_booking(
        user_id=current_user.id,
        turf_id=turf.id,
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        total_players=body.total_players,
        total_amount=total_amount,
        payment_method=body.payment_method,
        notes=body.notes,
    )


@router.patch(
    "/{booking_id}/status",
    response_model=Booking,
    operation_id="updateBookingStatus",
    summary="Change a booking's status",
)
async def update_booking_status(
    booking_id: str, body: BookingStatusUpdate, current_user: CurrentUser
) -> Booking:
    """
    The turf owner or an admin may set any status. The booker may only
    cancel. Re-activating a cancelled booking fails with 409 if its slot
    has been taken since.
    """
    booking = await db.get_booking(booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    turf = await db.get_turf(booking.turf_id)
    if not _manages(current_user, turf):
        is_booker = booking.user_id == current_user.id
        if not is_booker:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        if body.status != BookingStatus.cancelled or body.payment_status is not None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the turf owner can change this booking's status",
            )

    return await db.update_booking_status(booking_id, body.status, body.payment_status)
