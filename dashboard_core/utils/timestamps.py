"""Timestamp utilities for consistent published-date handling across the core."""

from datetime import date, datetime, time, timezone
from typing import Any, Optional, Tuple

from common_lib.logger import get_logger

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert a published/fix date value to a timezone-aware UTC datetime.

    Args:
        value: datetime, date, or ISO 8601 string (``Z`` suffix accepted)

    Returns:
        Aware UTC datetime, or None when the value is empty or unparseable.
        Naive values are assumed to be UTC; plain dates map to midnight.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            return _as_utc(datetime.fromisoformat(candidate.replace("Z", "+00:00")))
        except ValueError:
            logger.debug("Invalid datetime format encountered: %s", value)
    return None


def _is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    if isinstance(value, str):
        try:
            date.fromisoformat(value.strip())
            return True
        except ValueError:
            return False
    return False


def date_bounds(start: Any, end: Any) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Resolve an inclusive date-range filter into datetime bounds.

    A date-only end bound covers that whole day. Missing or unparseable
    bounds resolve to None (unbounded on that side).
    """
    lower = parse_timestamp(start) if start else None
    upper = parse_timestamp(end) if end else None
    if upper is not None and _is_date_only(end):
        upper = upper.replace(hour=23, minute=59, second=59, microsecond=999999)
    if start and lower is None:
        logger.warning("Ignoring unparseable date range start: %s", start)
    if end and upper is None:
        logger.warning("Ignoring unparseable date range end: %s", end)
    return lower, upper
