from bookings_shared.clients import ActorIdentity, BookingApiClient
from bookings_shared.config import BOOKINGS_API_URL, BOOKINGS_HTTP_TIMEOUT
from bookings_shared.events import LifecycleChannel
from bookings_shared.handshake import completion_phase
from bookings_shared.machine import Actor, available_actions
from bookings_shared.partition import ALL, worker_view
from bookings_shared.store import BookingStore
from bookings_shared.sync import RefreshSynchronizer, RefreshTrigger

from .controller import WorkerTransitionController


class WorkerSession:
    def __init__(self, api: BookingApiClient, lifecycle: LifecycleChannel | None = None, **sync_options):
        self.api = api
        self.store = BookingStore()
        self.synchronizer = RefreshSynchronizer(
            api.list_bookings, self.store, fetch_one=api.get_booking, **sync_options
        )
        self.controller = WorkerTransitionController(api, self.store, self.synchronizer)
        self.lifecycle = lifecycle or LifecycleChannel()
        self._detach = self.synchronizer.attach(self.lifecycle)
        self.status_filter = ALL

    @classmethod
    def for_worker(cls, email: str, base_url: str = BOOKINGS_API_URL, timeout: float = BOOKINGS_HTTP_TIMEOUT,
                   transport=None, **sync_options):
        api = BookingApiClient(ActorIdentity(email, Actor.WORKER), base_url=base_url, timeout=timeout,
                               transport=transport)
        return cls(api, **sync_options)

    async def load(self):
        return await self.synchronizer.refresh(RefreshTrigger.INITIAL)

    async def pull_to_refresh(self):
        return await self.synchronizer.refresh(RefreshTrigger.PULL)

    def set_filter(self, status_filter):
        self.status_filter = status_filter

    def bookings(self):
        return worker_view(self.store.all(), self.status_filter)

    def actions_for(self, booking):
        if self.store.in_flight(booking.id):
            return []
        return available_actions(booking, Actor.WORKER)

    def completion_phase(self, booking):
        return completion_phase(booking)

    def close(self):
        self._detach()
