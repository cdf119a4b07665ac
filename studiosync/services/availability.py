"""
Venue availability check for a proposed booking window.

Windows are half-open ``[start, end)`` in minutes after midnight, so a
booking ending at 14:00 does not clash with one starting at 14:00. A
"Full" rental takes the whole venue for the day.
"""

from typing import Any, Iterable, Optional

from studiosync.schemas.booking_schema import (
    AvailabilityResult, Booking, ConflictingBooking, RentalType,
)
from studiosync.utils import time_to_minutes

INVALID_WINDOW_MESSAGE = "Invalid time window: end must be after start"
FULL_VENUE_MESSAGE = "The venue is reserved for a private event"


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and end_a > start_b


def _conflict(booking: Booking, kind: str, message: str) -> AvailabilityResult:
    return AvailabilityResult(
        available=True,
        hasConflict=True,
        conflictType=kind,
        conflictingBooking=ConflictingBooking(
            title=booking.title or booking.clientName,
            startTime=booking.details.startTime or "",
            endTime=booking.details.endTime or "",
        ),
        conflictMessage=message,
    )


def check_availability(
    bookings: Iterable[Booking],
    shoot_date: str,
    start_time: Any,
    end_time: Any,
    rental_type: Optional[RentalType] = None,
    exclude_booking_id: Optional[str] = None,
) -> AvailabilityResult:
    """
    Compare a proposed window against every other live booking on ``shoot_date``.

    ``available`` is False only for an unusable window. A clash still
    reports ``available=True``: the booking may be saved, but needs manager
    approval (see ``BookingService.create``).
    """
    new_start, new_end = time_to_minutes(start_time), time_to_minutes(end_time)
    if new_start is None or new_end is None or new_start >= new_end:
        return AvailabilityResult(available=False, hasConflict=False, conflictMessage=INVALID_WINDOW_MESSAGE)

    for booking in bookings:
        if booking.id == exclude_booking_id or booking.is_deleted:
            continue
        if (booking.shootDate or "")[:10] != shoot_date[:10]:
            continue
        is_full = booking.details.rentalType == RentalType.FULL
        if rental_type == RentalType.FULL:
            return _conflict(booking, "full" if is_full else "partial", FULL_VENUE_MESSAGE)

        start = time_to_minutes(booking.details.startTime)
        end = time_to_minutes(booking.details.endTime)
        if start is None or end is None:
            continue
        if overlaps(new_start, new_end, start, end):
            if is_full:
                return _conflict(booking, "full", FULL_VENUE_MESSAGE)
            return _conflict(
                booking, "partial",
                f"Overlaps with {booking.title or booking.clientName} "
                f"({booking.details.startTime} - {booking.details.endTime})",
            )

    return AvailabilityResult(available=True, hasConflict=False)
