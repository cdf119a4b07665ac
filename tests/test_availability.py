"""Tests for the availability check and deadline arithmetic."""

import pytest

from studiosync.schemas.booking_schema import Booking, RentalType
from studiosync.services.availability import (
    FULL_VENUE_MESSAGE,
    INVALID_WINDOW_MESSAGE,
    check_availability,
    overlaps,
)
from studiosync.services.deadlines import add_days, delivery_deadline, selection_deadline


def booking(booking_id: str, start: str, end: str, rental: str = "Partial", **extra) -> Booking:
    return Booking(
        id=booking_id,
        title=f"Shoot {booking_id}",
        shootDate=extra.pop("shootDate", "2026-05-10"),
        details={"startTime": start, "endTime": end, "rentalType": rental},
        **extra,
    )


MORNING = booking("b1", "10:00", "12:00")


class TestOverlap:
    @pytest.mark.parametrize("a,b,expected", [
        ((600, 720), (660, 780), True),
        ((600, 720), (720, 780), False),
        ((720, 780), (600, 720), False),
        ((600, 720), (540, 800), True),
        ((600, 720), (610, 620), True),
    ])
    def test_half_open_windows(self, a, b, expected):
        assert overlaps(*a, *b) is expected


class TestCheckAvailability:
    def test_free_day(self):
        result = check_availability([], "2026-05-10", "10:00", "12:00")
        assert result.available and not result.hasConflict

    def test_invalid_window(self):
        for start, end in [("12:00", "10:00"), ("10:00", "10:00"), ("soon", "12:00"), (None, "12:00")]:
            result = check_availability([], "2026-05-10", start, end)
            assert not result.available
            assert result.conflictMessage == INVALID_WINDOW_MESSAGE

    def test_partial_overlap_is_reported(self):
        result = check_availability([MORNING], "2026-05-10", "11:00", "13:00")
        assert result.available
        assert result.hasConflict
        assert result.conflictType == "partial"
        assert result.conflictingBooking.title == "Shoot b1"
        assert "10:00 - 12:00" in result.conflictMessage

    def test_touching_windows_do_not_conflict(self):
        assert not check_availability([MORNING], "2026-05-10", "12:00", "14:00").hasConflict
        assert not check_availability([MORNING], "2026-05-10", "08:00", "10:00").hasConflict

    def test_other_days_are_ignored(self):
        assert not check_availability([MORNING], "2026-05-11", "10:00", "12:00").hasConflict

    def test_full_rental_blocks_whole_day(self):
        full = booking("b2", "18:00", "23:00", rental="Full")
        result = check_availability([full], "2026-05-10", "18:30", "19:00")
        assert result.conflictType == "full"
        assert result.conflictMessage == FULL_VENUE_MESSAGE

    def test_new_full_rental_clashes_with_any_booking(self):
        result = check_availability([MORNING], "2026-05-10", "18:00", "20:00", rental_type=RentalType.FULL)
        assert result.hasConflict
        assert result.conflictType == "partial"
        assert result.conflictMessage == FULL_VENUE_MESSAGE

    def test_excluded_and_deleted_bookings_are_ignored(self):
        deleted = booking("b3", "10:00", "12:00", deletedAt=1767225600000)
        assert not check_availability([MORNING], "2026-05-10", "10:00", "12:00", exclude_booking_id="b1").hasConflict
        assert not check_availability([deleted], "2026-05-10", "10:00", "12:00").hasConflict

    def test_bookings_without_times_are_skipped(self):
        untimed = Booking(id="b4", shootDate="2026-05-10")
        assert not check_availability([untimed], "2026-05-10", "10:00", "12:00").hasConflict


class TestDeadlines:
    def test_selection_deadline(self):
        assert selection_deadline("2026-01-01") == "2026-03-02"
        assert selection_deadline("2026-05-10T09:00:00") == "2026-07-09"
        assert selection_deadline(None) is None

    def test_delivery_deadline(self):
        assert delivery_deadline("2026-01-10") == "2026-03-11"
        assert delivery_deadline("2026-01-10", days=14) == "2026-01-24"
        assert delivery_deadline("") is None

    def test_add_days_crosses_year(self):
        assert add_days("2026-12-20", 15) == "2027-01-04"

    def test_bad_date(self):
        with pytest.raises(ValueError):
            add_days("not a date", 1)
