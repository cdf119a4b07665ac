"""Shared utilities used across the studio sync layer."""

import re
import time
import uuid
from datetime import datetime, timezone
from typing import Optional


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0770 123 4567")
        '07701234567'
        >>> normalize_phone("+964 (770) 123-4567")
        '+9647701234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds (local soft-delete stamps)."""
    return int(time.time() * 1000)


def ms_to_iso(value: Optional[int]) -> Optional[str]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def iso_to_ms(value: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 timestamp into epoch milliseconds; None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return round(parsed.timestamp() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def time_to_minutes(value: Optional[str]) -> Optional[int]:
    """Convert ``HH:MM`` into minutes after midnight. Returns None for bad input.

    Examples:
        >>> time_to_minutes("09:30")
        570
        >>> time_to_minutes("9am") is None
        True
    """
    if not value or not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes
