from bookings_shared.actions import ActionRunner, TransitionResult
from bookings_shared.machine import Action, Actor
from bookings_shared.status import BookingStatus


class WorkerTransitionController(ActionRunner):
    """
    Worker-side booking controls.

    There is deliberately no way to complete a booking from here; the worker
    can only ask for completion and wait for the customer.
    """

    actor = Actor.WORKER

    async def accept(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.ACCEPT,
            lambda booking, reason, key: self.api.update_status(booking.id, BookingStatus.CONFIRMED, idempotency_key=key),
        )

    async def reject(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.REJECT,
            lambda booking, reason, key: self.api.update_status(booking.id, BookingStatus.REJECTED, idempotency_key=key),
        )

    async def start_job(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.START,
            lambda booking, reason, key: self.api.update_status(booking.id, BookingStatus.IN_PROGRESS, idempotency_key=key),
        )

    async def cancel(self, booking_id: str, reason: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.CANCEL,
            lambda booking, reason, key: self.api.update_status(
                booking.id, BookingStatus.CANCELLED, cancellation_reason=reason, idempotency_key=key
            ),
            reason=reason,
        )

    async def request_completion(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.REQUEST_COMPLETION,
            lambda booking, reason, key: self.handshake.request(booking, idempotency_key=key),
        )
