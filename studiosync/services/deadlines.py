"""
Deadline arithmetic for the booking workflow.

All functions are pure: a base date plus a fixed number of calendar days.

Examples:
    >>> selection_deadline("2026-01-01")
    '2026-03-02'
    >>> delivery_deadline("2026-01-10")
    '2026-03-11'
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from studiosync.config import settings

DateLike = Union[str, date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def add_days(base: DateLike, days: int) -> str:
    """Return ``base + days`` as ``YYYY-MM-DD``. Raises ValueError on a bad date."""
    return (_as_date(base) + timedelta(days=days)).isoformat()


def selection_deadline(shoot_date: Optional[DateLike], days: Optional[int] = None) -> Optional[str]:
    """Last day for the client to pick photos, counted from the shoot date."""
    if not shoot_date:
        return None
    return add_days(shoot_date, days if days is not None else settings.lifecycle.selection_deadline_days)


def delivery_deadline(selection_date: Optional[DateLike], days: Optional[int] = None) -> Optional[str]:
    """Delivery due date, counted from the day the selection was confirmed."""
    if not selection_date:
        return None
    return add_days(selection_date, days if days is not None else settings.lifecycle.delivery_deadline_days)
