"""
Two-phase completion handshake.

Phase 1: the worker requests completion of an in-progress booking. Repeating
the request is harmless. Phase 2: only the customer resolves a pending request,
either confirming it (the booking becomes Completed) or rejecting it (the
booking stays In Progress and the worker may ask again).
"""
from enum import Enum

from .clients import BookingApiClient, MutationResult
from .machine import Action, Actor, check_transition
from .models import Booking
from .status import BookingStatus


class CompletionPhase(str, Enum):
    NOT_STARTED = "not_started"
    NOT_REQUESTED = "not_requested"
    AWAITING_CUSTOMER = "awaiting_customer"
    COMPLETED = "completed"
    CLOSED = "closed"


def completion_phase(booking: Booking) -> CompletionPhase:
    if booking.status == BookingStatus.COMPLETED:
        return CompletionPhase.COMPLETED
    if booking.status == BookingStatus.IN_PROGRESS:
        if booking.completion_requested:
            return CompletionPhase.AWAITING_CUSTOMER
        return CompletionPhase.NOT_REQUESTED
    if booking.is_terminal:
        return CompletionPhase.CLOSED
    return CompletionPhase.NOT_STARTED


class CompletionHandshake:
    def __init__(self, api: BookingApiClient):
        self.api = api

    def _check(self, booking: Booking, action: Action, actor: Actor):
        check_transition(booking, action, actor, self.api.actor.email)

    async def request(self, booking: Booking, idempotency_key: str | None = None) -> MutationResult:
        self._check(booking, Action.REQUEST_COMPLETION, Actor.WORKER)
        return await self.api.request_completion(booking.id, idempotency_key)

    async def confirm(self, booking: Booking, idempotency_key: str | None = None) -> MutationResult:
        self._check(booking, Action.CONFIRM_COMPLETION, Actor.CUSTOMER)
        return await self.api.confirm_completion(booking.id, idempotency_key)

    async def reject(self, booking: Booking, idempotency_key: str | None = None) -> MutationResult:
        self._check(booking, Action.REJECT_COMPLETION, Actor.CUSTOMER)
        return await self.api.reject_completion(booking.id, idempotency_key)
