import logging
from dataclasses import dataclass
from datetime import datetime

from .errors import BookingError, InvalidTransitionError
from .machine import Action, invariant_violations
from .models import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    bookings: tuple
    fetched_at: datetime | None = None
    stale: bool = False
    error: BookingError | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None


class BookingStore:
    """
    Last confirmed server state, keyed by booking id.

    Nothing here is ever written from a request payload: only service reads
    land in the store, so a failed action leaves it exactly as it was.
    """

    def __init__(self):
        self._bookings: dict[str, Booking] = {}
        self._in_flight: dict[str, Action] = {}
        self.fetched_at: datetime | None = None
        self.stale = False
        self.error: BookingError | None = None

    def snapshot(self) -> Snapshot:
        return Snapshot(
            bookings=tuple(self._bookings.values()),
            fetched_at=self.fetched_at,
            stale=self.stale,
            error=self.error,
        )

    def get(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def all(self) -> list[Booking]:
        return list(self._bookings.values())

    def _check(self, booking: Booking):
        problems = invariant_violations(booking)
        if problems:
            logger.warning("Booking %s violates lifecycle invariants: %s", booking.id, "; ".join(problems))

    def replace(self, bookings, fetched_at: datetime):
        self._bookings = {}
        for booking in bookings:
            self._check(booking)
            self._bookings[booking.id] = booking
        self.fetched_at = fetched_at
        self.stale = False
        self.error = None

    def upsert(self, booking: Booking):
        self._check(booking)
        self._bookings[booking.id] = booking

    def clear(self, error: BookingError):
        self._bookings = {}
        self.stale = False
        self.error = error

    def mark_stale(self, error: BookingError):
        self.stale = True
        self.error = error

    # -------- IN-FLIGHT ACTIONS --------

    def begin(self, booking_id: str, action: Action):
        if booking_id in self._in_flight:
            raise InvalidTransitionError("Another update for this booking is still in progress")
        self._in_flight[booking_id] = action

    def finish(self, booking_id: str):
        self._in_flight.pop(booking_id, None)

    def in_flight(self, booking_id: str) -> Action | None:
        return self._in_flight.get(booking_id)
