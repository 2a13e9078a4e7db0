import logging

from bookings_shared.actions import ActionRunner, TransitionResult
from bookings_shared.errors import BookingError
from bookings_shared.machine import Action, Actor
from bookings_shared.models import validate_draft
from bookings_shared.status import BookingStatus
from bookings_shared.sync import RefreshTrigger

logger = logging.getLogger(__name__)


class CustomerResponder(ActionRunner):
    """Customer-side controls: settle a completion request, cancel, book."""

    actor = Actor.CUSTOMER

    async def confirm_completion(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.CONFIRM_COMPLETION,
            lambda booking, reason, key: self.handshake.confirm(booking, idempotency_key=key),
        )

    async def reject_completion(self, booking_id: str) -> TransitionResult:
        return await self.perform(
            booking_id,
            Action.REJECT_COMPLETION,
            lambda booking, reason, key: self.handshake.reject(booking, idempotency_key=key),
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

    async def create_booking(self, form: dict) -> TransitionResult:
        draft = validate_draft(form)
        try:
            ack = await self.api.create_booking(draft)
        except BookingError as e:
            logger.warning("Creating booking for %s failed: %s", draft.customer_email, e.message)
            raise
        snapshot = await self.synchronizer.refresh(RefreshTrigger.POST_MUTATION)
        booking = self.store.get(ack.booking.id) if ack.booking else None
        return TransitionResult(booking=booking, message=ack.message or "Booking created successfully", snapshot=snapshot)
