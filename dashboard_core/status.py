"""Fix-status bucket classification shared by aggregation and filtering."""

from enum import Enum
from typing import Optional


class StatusBucket(str, Enum):
    """The eight mutually exclusive fix-status buckets (values are display labels)."""

    FIXED = "Fixed"
    AFFECTED = "Affected"
    OPEN = "Open"
    UNDER_INVESTIGATION = "Under Investigation"
    NO_STATUS = "No Status"
    WILL_NOT_FIX = "Will Not Fix"
    NEEDED = "Needed"
    DEFERRED = "Deferred"


_EXACT_BUCKETS = (
    ("deferred", StatusBucket.DEFERRED),
    ("affected", StatusBucket.AFFECTED),
    ("needed", StatusBucket.NEEDED),
    ("open", StatusBucket.OPEN),
    ("under investigation", StatusBucket.UNDER_INVESTIGATION),
)


def classify_status(status: Optional[str]) -> StatusBucket:
    """Map a raw fix-status string to its bucket.

    Checks run in precedence order on the trimmed, lower-cased value.
    Unrecognized values fall back to No Status.
    """
    value = (status or "").strip().lower()
    if not value:
        return StatusBucket.NO_STATUS
    for exact, bucket in _EXACT_BUCKETS:
        if value == exact:
            return bucket
    if "will not fix" in value or "wontfix" in value:
        return StatusBucket.WILL_NOT_FIX
    if "fixed" in value:
        return StatusBucket.FIXED
    return StatusBucket.NO_STATUS


def has_fix(status: Optional[str]) -> bool:
    """True when the status mentions "fixed" (case-insensitive)."""
    return "fixed" in (status or "").lower()
