from datetime import datetime, timedelta, timezone

import pytest

from bookings_shared.models import Booking
from bookings_shared.partition import (
    ALL,
    WORKER_FILTER_OPTIONS,
    customer_buckets,
    customer_tab_for,
    worker_view,
)
from bookings_shared.status import BookingStatus

BASE = datetime(2030, 5, 1, 9, 0, tzinfo=timezone.utc)


def booking(id, status, day=0, **extra):
    return Booking.model_validate({
        "_id": id,
        "status": status,
        "bookingDate": (BASE + timedelta(days=day)).isoformat() if day is not None else None,
        **extra,
    })


def one_of_each():
    return [booking(status.name.lower(), status.value, day=i) for i, status in enumerate(BookingStatus)]


def test_customer_buckets_are_disjoint_and_cover_all_but_rejected():
    bookings = one_of_each()
    buckets = customer_buckets(bookings)
    ids = [[b.id for b in bucket] for bucket in (buckets.upcoming, buckets.completed, buckets.cancelled)]

    flat = [i for bucket in ids for i in bucket]
    assert len(flat) == len(set(flat))
    assert set(flat) == {b.id for b in bookings if b.status != BookingStatus.REJECTED}
    assert {b.status for b in buckets.upcoming} == {
        BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
    }
    assert [b.status for b in buckets.completed] == [BookingStatus.COMPLETED]
    assert [b.status for b in buckets.cancelled] == [BookingStatus.CANCELLED]


def test_customer_tab_for_raw_status():
    assert customer_tab_for("in_progress") == "Upcoming"
    assert customer_tab_for("COMPLETED") == "Completed"
    assert customer_tab_for("rejected") is None


def test_customer_tabs_sort_most_recent_first():
    bookings = [
        booking("a", "pending", day=1),
        booking("b", "confirmed", day=5),
        booking("c", "in progress", day=3),
        booking("d", "pending", day=None),
    ]
    assert [b.id for b in customer_buckets(bookings).upcoming] == ["b", "c", "a", "d"]


def test_customer_tabs_sort_by_status():
    bookings = [
        booking("a", "pending", day=1),
        booking("b", "confirmed", day=5),
        booking("c", "pending", day=3),
    ]
    buckets = customer_buckets(bookings, sort_by="status")
    assert [b.id for b in buckets.tab("Upcoming")] == ["b", "c", "a"]


def test_customer_tabs_reject_unknown_sort():
    with pytest.raises(ValueError):
        customer_buckets([], sort_by="price")


def test_worker_default_view_hides_finished_bookings_and_sorts_soonest_first():
    bookings = [
        booking("late", "confirmed", day=9),
        booking("soon", "pending", day=1),
        booking("mid", "in_progress", day=4),
        booking("done", "completed", day=0, completed=True),
        booking("gone", "cancelled", day=2),
        booking("no", "rejected", day=3),
    ]
    assert [b.id for b in worker_view(bookings)] == ["soon", "mid", "late"]
    assert [b.id for b in worker_view(bookings, ALL)] == ["soon", "mid", "late"]


@pytest.mark.parametrize("selected", ["Completed", "completed", BookingStatus.COMPLETED])
def test_worker_can_explicitly_select_terminal_status(selected):
    bookings = [booking("done", "completed", day=0, completed=True), booking("soon", "pending", day=1)]
    assert [b.id for b in worker_view(bookings, selected)] == ["done"]


def test_unknown_worker_filter_is_refused():
    with pytest.raises(ValueError):
        worker_view([booking("soon", "pending", day=1)], "Completedd")


def test_worker_filter_options_include_every_status():
    assert WORKER_FILTER_OPTIONS[0] == ALL
    assert set(WORKER_FILTER_OPTIONS[1:]) == set(BookingStatus)
