import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookings_shared import errors
from bookings_shared.machine import (
    ALREADY_REQUESTED_MESSAGE,
    SUCCESS_MESSAGES,
    Action,
    action_for_status,
    apply_transition,
)
from bookings_shared.models import Booking as BookingView, BookingDraft
from bookings_shared.status import BookingStatus, TERMINAL_STATUSES, is_known, normalize

from .config import SLOT_DURATION_MINUTES
from .idempotency import find_response, remember
from .models import Booking
from .rbac import get_actor, require_party, require_role, resolve_actor
from .schemas import BookingEnvelope, BookingListEnvelope, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_db(request: Request):
    async with request.app.state.db.sessionmaker() as session:
        yield session


def _now():
    return datetime.now(timezone.utc)


def serialize(booking: Booking) -> dict:
    view = BookingView.model_validate({
        "booking_id": booking.booking_id,
        "status": booking.status,
        "completion_requested": booking.completion_requested,
        "completion_requested_at": booking.completion_requested_at,
        "completed": booking.completed,
        "completed_at": booking.completed_at,
        "worker_id": booking.worker_id,
        "worker_email": booking.worker_email,
        "customer_id": booking.customer_id,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "service_id": booking.service_id,
        "service_type": booking.service_type,
        "price": booking.price,
        "service_fee": booking.service_fee,
        "total_amount": booking.total_amount,
        "payment_status": booking.payment_status,
        "booking_date": booking.booking_date,
        "address": {
            "text": booking.address_text,
            "coordinates": {"lat": booking.latitude, "lng": booking.longitude},
        },
        "notes": booking.notes,
        "cancellation_reason": booking.cancellation_reason,
        "cancelled_by": booking.cancelled_by,
        "is_reviewed": booking.is_reviewed,
        "review_id": booking.review_id,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    })
    return view.to_wire()


async def _load(db: AsyncSession, booking_id: str, lock: bool = False) -> Booking:
    stmt = select(Booking).where(Booking.booking_id == booking_id)
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    booking = res.scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


async def _transition(
    db: AsyncSession,
    booking_id: str,
    user: dict,
    choose_action,
    reason: str | None = None,
    idempotency_key: str | None = None,
):
    """
    Apply one lifecycle action under a row lock.

    ``choose_action(booking, actor)`` decides which action the request stands
    for. A repeated Idempotency-Key replays the first successful response.
    """
    booking = await _load(db, booking_id, lock=True)
    actor = resolve_actor(user, booking)

    if idempotency_key:
        replay = await find_response(db, idempotency_key, booking_id)
        if replay is not None:
            status_code, body = replay
            return JSONResponse(body, status_code=status_code)

    try:
        action = choose_action(booking, actor)
        changes = apply_transition(booking, action, actor, _now(), reason=reason, actor_email=user["sub"])
    except errors.ActorNotAllowedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except errors.InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except errors.ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    message = SUCCESS_MESSAGES[action]
    if changes:
        for name, value in changes.items():
            setattr(booking, name, value.value if isinstance(value, BookingStatus) else value)
        booking.updated_at = _now()
    elif action == Action.REQUEST_COMPLETION:
        message = ALREADY_REQUESTED_MESSAGE

    body = {"success": True, "message": message, "booking": serialize(booking)}
    if idempotency_key:
        remember(db, idempotency_key, booking_id, 200, body)
    await db.commit()

    logger.info(
        "booking %s: %s by %s %s -> %s (completionRequested=%s)",
        booking_id, action.value, actor.value, user["sub"], booking.status, booking.completion_requested,
    )
    return BookingEnvelope(**body)


# -------- CREATE / READ --------

@router.post("/bookings", response_model=BookingEnvelope, status_code=201)
async def create_booking(data: BookingDraft, user=Depends(get_actor), db: AsyncSession = Depends(get_db)):
    require_role(user, ["customer"])
    if data.customer_email.lower() != user["sub"].lower():
        raise HTTPException(status_code=403, detail="Bookings can only be created for yourself")

    start = data.booking_date.astimezone(timezone.utc)
    end = start + timedelta(minutes=SLOT_DURATION_MINUTES)

    res = await db.execute(
        select(Booking).where(
            Booking.worker_id == data.worker_id,
            Booking.booking_date < end,
            Booking.end_date > start,
            Booking.status.not_in([s.value for s in TERMINAL_STATUSES]),
        )
    )
    if res.scalars().first():
        raise HTTPException(status_code=409, detail="This time slot is not available. Please select a different time.")

    now = _now()
    booking = Booking(
        booking_id=str(uuid.uuid4()),
        worker_id=data.worker_id,
        worker_email=data.worker_email,
        customer_id=data.customer_id,
        customer_email=data.customer_email,
        customer_phone=data.customer_phone,
        service_id=data.service_id,
        service_type=data.service_type,
        booking_date=start,
        end_date=end,
        address_text=data.address.text.strip(),
        latitude=data.address.coordinates.lat,
        longitude=data.address.coordinates.lng,
        notes=data.notes,
        status=BookingStatus.PENDING.value,
        completion_requested=False,
        completed=False,
        price=data.price,
        service_fee=data.service_fee,
        total_amount=data.total_amount,
        payment_status="pending",
        is_reviewed=False,
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    await db.commit()

    logger.info("booking %s created by %s for worker %s", booking.booking_id, user["sub"], data.worker_email)
    return BookingEnvelope(message="Booking created successfully", booking=serialize(booking))


@router.get("/bookings/user/{email}")
async def list_user_bookings(email: str, status: str | None = None, user=Depends(get_actor),
                             db: AsyncSession = Depends(get_db)):
    if email.lower() != user["sub"].lower():
        raise HTTPException(status_code=403, detail="You can only list your own bookings")

    stmt = select(Booking).where(func.lower(Booking.customer_email) == email.strip().lower())
    if status:
        wanted = [part for part in status.split(",") if part.strip()]
        unknown = [part for part in wanted if not is_known(part)]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown status filter: {', '.join(unknown)}")
        stmt = stmt.where(Booking.status.in_(sorted({normalize(part).value for part in wanted})))

    res = await db.execute(stmt.order_by(Booking.booking_date.desc()))
    return [serialize(b) for b in res.scalars().all()]


@router.get("/bookings", response_model=BookingListEnvelope)
async def list_bookings(workerEmail: str | None = None, customerEmail: str | None = None,
                        user=Depends(get_actor), db: AsyncSession = Depends(get_db)):
    if not workerEmail and not customerEmail:
        raise HTTPException(status_code=400, detail="workerEmail or customerEmail is required")
    for email in (workerEmail, customerEmail):
        if email and email.lower() != user["sub"].lower():
            raise HTTPException(status_code=403, detail="You can only list your own bookings")

    stmt = select(Booking)
    if workerEmail:
        stmt = stmt.where(func.lower(Booking.worker_email) == workerEmail.strip().lower())
    if customerEmail:
        stmt = stmt.where(func.lower(Booking.customer_email) == customerEmail.strip().lower())

    res = await db.execute(stmt.order_by(Booking.booking_date.asc()))
    return BookingListEnvelope(bookings=[serialize(b) for b in res.scalars().all()])


@router.get("/bookings/{booking_id}")
async def get_booking(booking_id: str, user=Depends(get_actor), db: AsyncSession = Depends(get_db)):
    booking = await _load(db, booking_id)
    require_party(user, booking)
    return serialize(booking)


# -------- STATUS TRANSITIONS --------

@router.api_route("/bookings/{booking_id}/status", methods=["PATCH", "PUT"], response_model=BookingEnvelope)
@router.put("/bookings/{booking_id}", response_model=BookingEnvelope)
async def update_status(
    booking_id: str,
    data: StatusUpdate,
    user=Depends(get_actor),
    idempotency_key: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await _transition(
        db,
        booking_id,
        user,
        lambda booking, actor: action_for_status(booking, data.status, actor),
        reason=data.cancellation_reason,
        idempotency_key=idempotency_key,
    )


# -------- COMPLETION HANDSHAKE --------

@router.post("/bookings/{booking_id}/request-completion", response_model=BookingEnvelope)
async def request_completion(booking_id: str, user=Depends(get_actor),
                             idempotency_key: str | None = Header(default=None),
                             db: AsyncSession = Depends(get_db)):
    return await _transition(db, booking_id, user, lambda booking, actor: Action.REQUEST_COMPLETION,
                             idempotency_key=idempotency_key)


@router.post("/bookings/{booking_id}/confirm-completion", response_model=BookingEnvelope)
async def confirm_completion(booking_id: str, user=Depends(get_actor),
                             idempotency_key: str | None = Header(default=None),
                             db: AsyncSession = Depends(get_db)):
    return await _transition(db, booking_id, user, lambda booking, actor: Action.CONFIRM_COMPLETION,
                             idempotency_key=idempotency_key)


@router.post("/bookings/{booking_id}/reject-completion", response_model=BookingEnvelope)
async def reject_completion(booking_id: str, user=Depends(get_actor),
                            idempotency_key: str | None = Header(default=None),
                            db: AsyncSession = Depends(get_db)):
    return await _transition(db, booking_id, user, lambda booking, actor: Action.REJECT_COMPLETION,
                             idempotency_key=idempotency_key)
