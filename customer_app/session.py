from bookings_shared.clients import ActorIdentity, BookingApiClient
from bookings_shared.config import BOOKINGS_API_URL, BOOKINGS_HTTP_TIMEOUT
from bookings_shared.events import LifecycleChannel
from bookings_shared.machine import Actor, available_actions
from bookings_shared.partition import customer_buckets
from bookings_shared.store import BookingStore
from bookings_shared.sync import RefreshSynchronizer, RefreshTrigger

from .responder import CustomerResponder


class CustomerSession:
    def __init__(self, api: BookingApiClient, lifecycle: LifecycleChannel | None = None, **sync_options):
        self.api = api
        self.store = BookingStore()
        self.synchronizer = RefreshSynchronizer(
            api.list_bookings, self.store, fetch_one=api.get_booking, **sync_options
        )
        self.responder = CustomerResponder(api, self.store, self.synchronizer)
        self.lifecycle = lifecycle or LifecycleChannel()
        self._detach = self.synchronizer.attach(self.lifecycle)
        self.sort_by = "date"

    @classmethod
    def for_customer(cls, email: str, base_url: str = BOOKINGS_API_URL, timeout: float = BOOKINGS_HTTP_TIMEOUT,
                     transport=None, **sync_options):
        api = BookingApiClient(ActorIdentity(email, Actor.CUSTOMER), base_url=base_url, timeout=timeout,
                               transport=transport)
        return cls(api, **sync_options)

    async def load(self):
        return await self.synchronizer.refresh(RefreshTrigger.INITIAL)

    async def pull_to_refresh(self):
        return await self.synchronizer.refresh(RefreshTrigger.PULL)

    def toggle_sort(self):
        self.sort_by = "status" if self.sort_by == "date" else "date"

    def tabs(self):
        return customer_buckets(self.store.all(), self.sort_by)

    def actions_for(self, booking):
        if self.store.in_flight(booking.id):
            return []
        return available_actions(booking, Actor.CUSTOMER)

    def close(self):
        self._detach()
