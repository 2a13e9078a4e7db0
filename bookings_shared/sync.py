import logging
from datetime import datetime, timezone
from enum import Enum

from .config import BOOKINGS_FETCH_FAILURE_POLICY, BOOKINGS_REFETCH_ON_FOREGROUND
from .events import LifecycleChannel, LifecycleEvent
from .errors import BookingError
from .models import Booking
from .store import BookingStore, Snapshot

logger = logging.getLogger(__name__)


class RefreshTrigger(str, Enum):
    INITIAL = "initial"
    PULL = "pull"
    POST_MUTATION = "post_mutation"
    FOREGROUND = "foreground"


class FetchFailurePolicy(str, Enum):
    EMPTY = "empty"
    RETAIN = "retain"


class RefreshSynchronizer:
    """
    Decides when a fresh snapshot is pulled and publishes it to the store.

    Fetch failures never raise out of ``refresh``; they are recorded on the
    snapshot (``error``) according to the failure policy. When refreshes
    overlap, only the most recently started one is allowed to publish.
    """

    def __init__(
        self,
        fetch,
        store: BookingStore,
        fetch_one=None,
        refetch_on_foreground: bool = BOOKINGS_REFETCH_ON_FOREGROUND,
        failure_policy: FetchFailurePolicy = FetchFailurePolicy(BOOKINGS_FETCH_FAILURE_POLICY),
    ):
        self._fetch = fetch
        self._fetch_one = fetch_one
        self.store = store
        self.refetch_on_foreground = refetch_on_foreground
        self.failure_policy = FetchFailurePolicy(failure_policy)
        self._generation = 0
        self._listeners = []

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: Snapshot, trigger: RefreshTrigger):
        for listener in list(self._listeners):
            listener(snapshot, trigger)

    async def refresh(self, trigger: RefreshTrigger = RefreshTrigger.PULL) -> Snapshot:
        self._generation += 1
        generation = self._generation

        try:
            bookings = await self._fetch()
        except BookingError as e:
            if generation != self._generation:
                return self.store.snapshot()
            logger.warning("Booking refresh (%s) failed: %s", trigger.value, e.message)
            if self.failure_policy == FetchFailurePolicy.RETAIN:
                self.store.mark_stale(e)
            else:
                self.store.clear(e)
        else:
            if generation != self._generation:
                logger.debug("Discarding superseded refresh (%s)", trigger.value)
                return self.store.snapshot()
            self.store.replace(bookings, datetime.now(timezone.utc))
            logger.info("Booking refresh (%s): %d bookings", trigger.value, len(bookings))

        snapshot = self.store.snapshot()
        self._notify(snapshot, trigger)
        return snapshot

    async def refresh_booking(self, booking_id: str) -> Booking:
        if self._fetch_one is None:
            raise RuntimeError("No single-booking fetch configured")
        booking = await self._fetch_one(booking_id)
        self.store.upsert(booking)
        self._notify(self.store.snapshot(), RefreshTrigger.POST_MUTATION)
        return booking

    async def handle_lifecycle(self, event: LifecycleEvent) -> Snapshot | None:
        if event == LifecycleEvent.FOREGROUND and self.refetch_on_foreground:
            return await self.refresh(RefreshTrigger.FOREGROUND)
        return None

    def attach(self, channel: LifecycleChannel):
        return channel.subscribe(self.handle_lifecycle)
