import logging
import uuid
from dataclasses import dataclass

from .clients import BookingApiClient
from .errors import BookingError, InvalidTransitionError, ServerError
from .handshake import CompletionHandshake
from .machine import (
    ALREADY_REQUESTED_MESSAGE,
    SUCCESS_MESSAGES,
    TRANSITIONS,
    Action,
    Actor,
    check_transition,
    require_reason,
)
from .models import Booking
from .store import BookingStore, Snapshot
from .sync import RefreshSynchronizer, RefreshTrigger

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    booking: Booking | None
    message: str
    snapshot: Snapshot


class ActionRunner:
    """
    Runs one user action against the booking service.

    The local store is only read before the call; after the service
    acknowledges, the list is refetched and that read becomes the new state.
    On failure the store still holds the last confirmed state and the error
    is raised for the UI to show.
    """

    actor: Actor

    def __init__(self, api: BookingApiClient, store: BookingStore, synchronizer: RefreshSynchronizer):
        self.api = api
        self.store = store
        self.synchronizer = synchronizer
        self.handshake = CompletionHandshake(api)

    async def current(self, booking_id: str) -> Booking:
        booking = self.store.get(booking_id)
        if booking is None:
            booking = await self.synchronizer.refresh_booking(booking_id)
        return booking

    async def _checked(self, booking_id: str, action: Action) -> Booking:
        booking = await self.current(booking_id)
        try:
            check_transition(booking, action, self.actor, self.api.actor.email)
        except InvalidTransitionError:
            # Another party may have moved the booking since our last read.
            await self.synchronizer.refresh(RefreshTrigger.POST_MUTATION)
            fresh = self.store.get(booking_id)
            if fresh is None:
                raise
            check_transition(fresh, action, self.actor, self.api.actor.email)
            booking = fresh
        return booking

    async def perform(self, booking_id: str, action: Action, call, reason: str | None = None) -> TransitionResult:
        rule = TRANSITIONS.get((action, self.actor))
        if rule is not None and rule.requires_reason:
            reason = require_reason(reason)

        if action == Action.REQUEST_COMPLETION and self.store.in_flight(booking_id) == action:
            return TransitionResult(
                booking=self.store.get(booking_id),
                message=ALREADY_REQUESTED_MESSAGE,
                snapshot=self.store.snapshot(),
            )

        booking = await self._checked(booking_id, action)

        self.store.begin(booking_id, action)
        try:
            ack = await call(booking, reason, str(uuid.uuid4()))
        except ServerError as e:
            logger.warning("%s %s on booking %s refused: %s", self.actor.value, action.value, booking_id, e.message)
            # The service may know something we do not (e.g. a concurrent cancel).
            await self.synchronizer.refresh(RefreshTrigger.POST_MUTATION)
            raise
        except BookingError as e:
            logger.warning("%s %s on booking %s failed: %s", self.actor.value, action.value, booking_id, e.message)
            raise
        finally:
            self.store.finish(booking_id)

        snapshot = await self.synchronizer.refresh(RefreshTrigger.POST_MUTATION)
        return TransitionResult(
            booking=self.store.get(booking_id),
            message=ack.message or SUCCESS_MESSAGES[action],
            snapshot=snapshot,
        )
