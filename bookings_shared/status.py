import re
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)

_SEPARATORS = re.compile(r"[\s_\-]+")

_ALIASES = {
    "pending": BookingStatus.PENDING,
    "confirmed": BookingStatus.CONFIRMED,
    "confirm": BookingStatus.CONFIRMED,
    "inprogress": BookingStatus.IN_PROGRESS,
    "completed": BookingStatus.COMPLETED,
    "cancelled": BookingStatus.CANCELLED,
    "canceled": BookingStatus.CANCELLED,
    "rejected": BookingStatus.REJECTED,
}


def _key(raw) -> str:
    return _SEPARATORS.sub("", str(raw).strip().lower())


def normalize(raw) -> BookingStatus:
    """
    Map any raw status representation onto the canonical enum.

    Casing, surrounding whitespace and hyphen/underscore/space separators are
    ignored, so "in_progress", "In Progress" and "IN-PROGRESS" all collapse to
    IN_PROGRESS. Anything unrecognised (including None and "") falls back to
    PENDING rather than raising.
    """
    if isinstance(raw, BookingStatus):
        return raw
    if raw is None:
        return BookingStatus.PENDING
    return _ALIASES.get(_key(raw), BookingStatus.PENDING)


def is_known(raw) -> bool:
    if isinstance(raw, BookingStatus):
        return True
    if raw is None:
        return False
    return _key(raw) in _ALIASES


def is_terminal(status) -> bool:
    return normalize(status) in TERMINAL_STATUSES
