import json
import logging
import uuid
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import BOOKINGS_API_URL, BOOKINGS_HTTP_TIMEOUT
from .errors import BookingError, MalformedResponseError, NetworkError, ServerError
from .machine import Actor
from .models import Booking, BookingDraft, parse_booking, parse_bookings
from .status import BookingStatus, normalize

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The booking service took too long to respond. Please try again."


@dataclass(frozen=True)
class ActorIdentity:
    email: str
    role: Actor


@dataclass(frozen=True)
class StatusEndpointPolicy:
    """
    Ordered status-update endpoints and when to move on to the next one.

    Only a missing route is worth retrying elsewhere: 405/501, or a 404 whose
    body is not JSON (a framework "Cannot PATCH" page rather than the service
    saying the booking does not exist). Business errors are final.
    """

    endpoints: tuple = (
        ("PATCH", "/bookings/{id}/status"),
        ("PUT", "/bookings/{id}/status"),
        ("PUT", "/bookings/{id}"),
    )
    fallback_statuses: frozenset = frozenset({405, 501})
    missing_route_statuses: frozenset = frozenset({404})

    def should_fall_back(self, exc: BookingError) -> bool:
        status = getattr(exc, "status_code", None)
        if status in self.fallback_statuses:
            return True
        return isinstance(exc, MalformedResponseError) and status in self.missing_route_statuses


@dataclass
class MutationResult:
    message: str | None = None
    booking: Booking | None = None


def _base_headers(request_id: str | None, actor: ActorIdentity | None, idempotency_key: str | None = None):
    headers = {"X-Request-Id": request_id or str(uuid.uuid4())}
    if actor:
        headers["X-User-Sub"] = actor.email
        headers["X-User-Roles"] = json.dumps([actor.role.value])
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    return headers


def decode_response(resp: httpx.Response):
    if not resp.content:
        if resp.is_error:
            raise ServerError(resp.status_code)
        return {}

    try:
        body = resp.json()
    except ValueError:
        raise MalformedResponseError(resp.status_code, resp.text[:500])

    message = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if not isinstance(message, str):
            message = None

    if resp.is_error:
        raise ServerError(resp.status_code, message)
    if isinstance(body, dict) and body.get("success") is False:
        raise ServerError(resp.status_code, message)
    return body


def _unwrap_list(body, status_code: int = 200):
    if isinstance(body, list):
        return body
    if isinstance(body, dict) and isinstance(body.get("bookings"), list):
        return body["bookings"]
    raise MalformedResponseError(status_code, str(body)[:500])


def _unwrap_one(body):
    if isinstance(body, dict) and isinstance(body.get("booking"), dict):
        return body["booking"]
    return body


def _parse(body, parser):
    try:
        return parser(body)
    except PydanticValidationError as e:
        raise MalformedResponseError(200, str(e)[:500]) from e


def _mutation_result(body) -> MutationResult:
    raw = body if isinstance(body, dict) else {}
    booking = None
    candidate = _unwrap_one(body)
    if isinstance(candidate, dict):
        try:
            booking = parse_booking(candidate)
        except PydanticValidationError:
            # Partial acknowledgements are fine; the caller re-reads anyway.
            booking = None
    message = raw.get("message") if isinstance(raw.get("message"), str) else None
    return MutationResult(message=message, booking=booking)


class BookingApiClient:
    def __init__(
        self,
        actor: ActorIdentity,
        base_url: str = BOOKINGS_API_URL,
        timeout: float = BOOKINGS_HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        status_policy: StatusEndpointPolicy | None = None,
    ):
        self.actor = actor
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.status_policy = status_policy or StatusEndpointPolicy()

    async def _call(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        params: dict | None = None,
        idempotency_key: str | None = None,
        request_id: str | None = None,
    ):
        url = f"{self.base_url}{path}"
        headers = _base_headers(request_id, self.actor, idempotency_key)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method=method, url=url, json=payload, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Timeout calling %s %s", method, url)
            raise NetworkError(TIMEOUT_MESSAGE) from e
        except httpx.TransportError as e:
            logger.warning("Network failure calling %s %s: %s", method, url, e)
            raise NetworkError() from e

        try:
            return decode_response(resp)
        except MalformedResponseError as e:
            logger.error("Non-JSON response from %s %s (HTTP %s): %.200s", method, url, e.status_code, e.body)
            raise
        except ServerError as e:
            logger.warning("%s %s failed with HTTP %s: %s", method, url, e.status_code, e.message)
            raise

    # -------- READS --------

    async def list_customer_bookings(self, email: str, statuses=None) -> list[Booking]:
        params = None
        if statuses:
            params = {"status": ",".join(normalize(s).value for s in statuses)}
        body = await self._call("GET", f"/bookings/user/{quote(email, safe='@')}", params=params)
        return _parse(_unwrap_list(body), parse_bookings)

    async def list_worker_bookings(self, email: str) -> list[Booking]:
        body = await self._call("GET", "/bookings", params={"workerEmail": email})
        return _parse(_unwrap_list(body), parse_bookings)

    async def list_bookings(self) -> list[Booking]:
        if self.actor.role == Actor.WORKER:
            return await self.list_worker_bookings(self.actor.email)
        return await self.list_customer_bookings(self.actor.email)

    async def get_booking(self, booking_id: str) -> Booking:
        body = await self._call("GET", f"/bookings/{booking_id}")
        return _parse(_unwrap_one(body), parse_booking)

    # -------- WRITES --------

    async def create_booking(self, draft: BookingDraft) -> MutationResult:
        body = await self._call("POST", "/bookings", payload=draft.to_wire())
        return _mutation_result(body)

    async def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        cancellation_reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> MutationResult:
        """
        Ask the service to move a booking to ``status``.

        Endpoints from the status policy are tried in order with the same
        idempotency key, so a retry on another route can never apply the
        change twice.
        """
        payload = {"status": status.value}
        if cancellation_reason is not None:
            payload["cancellationReason"] = cancellation_reason
        if status == BookingStatus.COMPLETED:
            payload["completed"] = True
            payload["completionRequested"] = False

        key = idempotency_key or str(uuid.uuid4())
        last_error = None
        for method, template in self.status_policy.endpoints:
            path = template.format(id=booking_id)
            try:
                body = await self._call(method, path, payload=payload, idempotency_key=key)
            except (ServerError, MalformedResponseError) as e:
                if not self.status_policy.should_fall_back(e):
                    raise
                logger.info("%s %s unavailable (HTTP %s), trying next status endpoint", method, path, e.status_code)
                last_error = e
                continue
            return _mutation_result(body)
        raise last_error

    async def request_completion(self, booking_id: str, idempotency_key: str | None = None) -> MutationResult:
        body = await self._call("POST", f"/bookings/{booking_id}/request-completion",
                                idempotency_key=idempotency_key or str(uuid.uuid4()))
        return _mutation_result(body)

    async def confirm_completion(self, booking_id: str, idempotency_key: str | None = None) -> MutationResult:
        body = await self._call("POST", f"/bookings/{booking_id}/confirm-completion",
                                idempotency_key=idempotency_key or str(uuid.uuid4()))
        return _mutation_result(body)

    async def reject_completion(self, booking_id: str, idempotency_key: str | None = None) -> MutationResult:
        body = await self._call("POST", f"/bookings/{booking_id}/reject-completion",
                                idempotency_key=idempotency_key or str(uuid.uuid4()))
        return _mutation_result(body)
