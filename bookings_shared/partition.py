from dataclasses import dataclass

from .models import Booking
from .status import BookingStatus, TERMINAL_STATUSES, is_known, normalize

ALL = "ALL"

UPCOMING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})

CUSTOMER_TABS = {
    "Upcoming": UPCOMING_STATUSES,
    "Completed": frozenset({BookingStatus.COMPLETED}),
    "Cancelled": frozenset({BookingStatus.CANCELLED}),
}

# Every status plus "ALL", so terminal statuses can still be picked explicitly.
WORKER_FILTER_OPTIONS = (ALL, *BookingStatus)


def _timestamp(booking: Booking) -> float:
    return booking.booking_date.timestamp() if booking.booking_date else 0.0


def newest_first(bookings) -> list[Booking]:
    # Undated bookings sink to the bottom in both orders.
    return sorted(bookings, key=lambda b: (b.booking_date is None, -_timestamp(b)))


def soonest_first(bookings) -> list[Booking]:
    return sorted(bookings, key=lambda b: (b.booking_date is None, _timestamp(b)))


@dataclass(frozen=True)
class CustomerBuckets:
    upcoming: list
    completed: list
    cancelled: list

    def tab(self, name: str) -> list:
        return {"Upcoming": self.upcoming, "Completed": self.completed, "Cancelled": self.cancelled}[name]


def customer_tab_for(status) -> str | None:
    status = normalize(status)
    for name, statuses in CUSTOMER_TABS.items():
        if status in statuses:
            return name
    return None


def customer_buckets(bookings, sort_by: str = "date") -> CustomerBuckets:
    """
    Split a snapshot into the customer app's tabs.

    Rejected bookings belong to no tab. ``sort_by`` is "date" (most recent
    first) or "status" (alphabetical by status, most recent first within one).
    """
    if sort_by == "date":
        ordered = newest_first(bookings)
    elif sort_by == "status":
        ordered = sorted(newest_first(bookings), key=lambda b: b.status.value)
    else:
        raise ValueError(f"Unknown sort order: {sort_by!r}")

    tabs = {name: [] for name in CUSTOMER_TABS}
    for booking in ordered:
        name = customer_tab_for(booking.status)
        if name is not None:
            tabs[name].append(booking)
    return CustomerBuckets(upcoming=tabs["Upcoming"], completed=tabs["Completed"], cancelled=tabs["Cancelled"])


def worker_view(bookings, status_filter=ALL) -> list[Booking]:
    """Active bookings by default, or exactly one status when a filter is picked."""
    if status_filter == ALL:
        selected = [b for b in bookings if b.status not in TERMINAL_STATUSES]
    elif is_known(status_filter):
        wanted = normalize(status_filter)
        selected = [b for b in bookings if b.status == wanted]
    else:
        raise ValueError(f"Unknown status filter: {status_filter!r}")
    return soonest_first(selected)
