"""
Booking lifecycle state machine.

One declarative table drives both sides of the system: the client apps use it
to decide which controls to enable and to refuse impossible actions before any
network call, and the booking service uses it as the authority when applying
a transition.

    Pending ──accept──> Confirmed ──start──> In Progress ──confirm──> Completed
       │                   │                    │  ▲
     reject              cancel          request│  │reject completion
       ▼                   ▼                    ▼  │
    Rejected           Cancelled        (completion requested)

Completed, Cancelled and Rejected are terminal.
"""
from dataclasses import dataclass
from enum import Enum

from .errors import ActorNotAllowedError, InvalidTransitionError, ValidationError
from .status import BookingStatus, TERMINAL_STATUSES, is_known, normalize


class Actor(str, Enum):
    WORKER = "worker"
    CUSTOMER = "customer"


class Action(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    CANCEL = "cancel"
    REQUEST_COMPLETION = "request_completion"
    CONFIRM_COMPLETION = "confirm_completion"
    REJECT_COMPLETION = "reject_completion"


@dataclass(frozen=True)
class Rule:
    actor: Actor
    sources: frozenset
    target: BookingStatus
    requires_completion_request: bool = False
    requires_reason: bool = False


TRANSITIONS = {
    (Action.ACCEPT, Actor.WORKER): Rule(
        Actor.WORKER, frozenset({BookingStatus.PENDING}), BookingStatus.CONFIRMED
    ),
    (Action.REJECT, Actor.WORKER): Rule(
        Actor.WORKER, frozenset({BookingStatus.PENDING}), BookingStatus.REJECTED
    ),
    (Action.START, Actor.WORKER): Rule(
        Actor.WORKER, frozenset({BookingStatus.CONFIRMED}), BookingStatus.IN_PROGRESS
    ),
    (Action.CANCEL, Actor.WORKER): Rule(
        Actor.WORKER,
        frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}),
        BookingStatus.CANCELLED,
        requires_reason=True,
    ),
    (Action.CANCEL, Actor.CUSTOMER): Rule(
        Actor.CUSTOMER,
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        BookingStatus.CANCELLED,
        requires_reason=True,
    ),
    (Action.REQUEST_COMPLETION, Actor.WORKER): Rule(
        Actor.WORKER, frozenset({BookingStatus.IN_PROGRESS}), BookingStatus.IN_PROGRESS
    ),
    (Action.CONFIRM_COMPLETION, Actor.CUSTOMER): Rule(
        Actor.CUSTOMER,
        frozenset({BookingStatus.IN_PROGRESS}),
        BookingStatus.COMPLETED,
        requires_completion_request=True,
    ),
    (Action.REJECT_COMPLETION, Actor.CUSTOMER): Rule(
        Actor.CUSTOMER,
        frozenset({BookingStatus.IN_PROGRESS}),
        BookingStatus.IN_PROGRESS,
        requires_completion_request=True,
    ),
}

ACTION_LABELS = {
    Action.ACCEPT: "accept",
    Action.REJECT: "reject",
    Action.START: "start",
    Action.CANCEL: "cancel",
    Action.REQUEST_COMPLETION: "request completion for",
    Action.CONFIRM_COMPLETION: "confirm completion of",
    Action.REJECT_COMPLETION: "reject completion of",
}

SUCCESS_MESSAGES = {
    Action.ACCEPT: "Booking accepted",
    Action.REJECT: "Booking rejected",
    Action.START: "Job started",
    Action.CANCEL: "Booking has been cancelled",
    Action.REQUEST_COMPLETION: "Completion request sent to client",
    Action.CONFIRM_COMPLETION: "Booking marked as completed",
    Action.REJECT_COMPLETION: "Completion request rejected",
}

ALREADY_REQUESTED_MESSAGE = "Completion already requested for this booking"


def _owner_email(booking, actor: Actor):
    if actor == Actor.WORKER:
        return getattr(booking, "worker_email", None)
    return getattr(booking, "customer_email", None)


def check_transition(booking, action: Action, actor: Actor, actor_email: str | None = None) -> Rule:
    status = normalize(booking.status)
    label = ACTION_LABELS[action]

    if status in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Booking is already {status.value.lower()}; no further changes are allowed"
        )

    rule = TRANSITIONS.get((action, actor))
    if rule is None:
        raise ActorNotAllowedError(f"A {actor.value} cannot {label} a booking")

    if actor_email is not None:
        owner = _owner_email(booking, actor)
        if not owner or owner.strip().lower() != actor_email.strip().lower():
            raise ActorNotAllowedError(f"This booking is not assigned to {actor_email}")

    if status not in rule.sources:
        raise InvalidTransitionError(f"Cannot {label} a booking that is {status.value}")

    if rule.requires_completion_request and not booking.completion_requested:
        raise InvalidTransitionError("No completion request found for this booking")

    return rule


def require_reason(reason: str | None) -> str:
    text = (reason or "").strip()
    if not text:
        raise ValidationError({"cancellationReason": "Please provide a reason for cancellation."})
    return text


def apply_transition(booking, action: Action, actor: Actor, now, reason: str | None = None,
                     actor_email: str | None = None) -> dict:
    """
    Validate ``action`` against ``booking`` and return the field changes it
    produces, keyed by snake_case attribute name. The booking is not mutated.

    Requesting completion twice is accepted and yields no changes the second
    time.
    """
    rule = check_transition(booking, action, actor, actor_email)

    if action == Action.REQUEST_COMPLETION:
        if booking.completion_requested:
            return {}
        return {"completion_requested": True, "completion_requested_at": now}

    if action == Action.CONFIRM_COMPLETION:
        return {
            "status": BookingStatus.COMPLETED,
            "completed": True,
            "completed_at": now,
            "completion_requested": False,
        }

    if action == Action.REJECT_COMPLETION:
        return {"completion_requested": False}

    if action == Action.CANCEL:
        return {
            "status": BookingStatus.CANCELLED,
            "completion_requested": False,
            "cancellation_reason": require_reason(reason),
            "cancelled_by": actor.value,
        }

    return {"status": rule.target}


def action_for_status(booking, requested, actor: Actor) -> Action:
    """Work out which action a plain "set status to X" request stands for."""
    if not is_known(requested):
        raise ValidationError({"status": f"Unknown status: {requested!r}"})

    target = normalize(requested)
    current = normalize(booking.status)

    if target == BookingStatus.CONFIRMED:
        return Action.ACCEPT
    if target == BookingStatus.REJECTED:
        return Action.REJECT
    if target == BookingStatus.CANCELLED:
        return Action.CANCEL
    if target == BookingStatus.COMPLETED:
        return Action.CONFIRM_COMPLETION
    if target == BookingStatus.IN_PROGRESS:
        if current == BookingStatus.IN_PROGRESS and actor == Actor.CUSTOMER:
            return Action.REJECT_COMPLETION
        return Action.START
    raise InvalidTransitionError("Bookings cannot be moved back to Pending")


def available_actions(booking, actor: Actor) -> list[Action]:
    actions = []
    for (action, rule_actor) in TRANSITIONS:
        if rule_actor != actor:
            continue
        try:
            check_transition(booking, action, actor)
        except (InvalidTransitionError, ActorNotAllowedError):
            continue
        # Once pending, the request control is disabled even though a repeat is tolerated.
        if action == Action.REQUEST_COMPLETION and booking.completion_requested:
            continue
        actions.append(action)
    return actions


def invariant_violations(booking) -> list[str]:
    status = normalize(booking.status)
    problems = []
    if booking.completion_requested and (status != BookingStatus.IN_PROGRESS or booking.completed):
        problems.append("completionRequested is set outside an in-progress, uncompleted booking")
    if booking.completed != (status == BookingStatus.COMPLETED):
        problems.append("completed flag disagrees with status")
    if booking.completed and booking.completion_requested:
        problems.append("completed booking still has a pending completion request")
    if booking.completed and getattr(booking, "completed_at", None) is None:
        problems.append("completed booking has no completedAt")
    return problems
