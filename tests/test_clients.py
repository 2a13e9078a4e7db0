import json

import httpx
import pytest

from bookings_shared.clients import ActorIdentity, BookingApiClient, TIMEOUT_MESSAGE
from bookings_shared.errors import GENERIC_SERVER_MESSAGE, MalformedResponseError, NetworkError, ServerError
from bookings_shared.machine import Actor
from bookings_shared.status import BookingStatus

pytestmark = pytest.mark.anyio

BOOKING = {"_id": "b1", "status": "pending", "workerEmail": "w@example.com", "customerEmail": "c@example.com"}


def client_for(handler, role=Actor.WORKER, email="w@example.com"):
    return BookingApiClient(
        ActorIdentity(email, role),
        base_url="http://api.test/api",
        transport=httpx.MockTransport(handler),
    )


async def test_html_error_page_is_not_leaked():
    def handler(request):
        return httpx.Response(502, text="<html><body>Bad Gateway</body></html>")

    with pytest.raises(MalformedResponseError) as exc:
        await client_for(handler).get_booking("b1")
    assert exc.value.message == GENERIC_SERVER_MESSAGE
    assert "<html>" not in exc.value.message
    assert exc.value.status_code == 502


async def test_server_message_is_surfaced_verbatim():
    def handler(request):
        return httpx.Response(409, json={"success": False, "message": "No completion request found for this booking"})

    with pytest.raises(ServerError) as exc:
        await client_for(handler, Actor.CUSTOMER, "c@example.com").confirm_completion("b1")
    assert exc.value.message == "No completion request found for this booking"
    assert exc.value.status_code == 409


async def test_server_error_without_message_uses_fallback():
    def handler(request):
        return httpx.Response(500, json={"error": "stack trace here"})

    with pytest.raises(ServerError) as exc:
        await client_for(handler).list_bookings()
    assert exc.value.message == GENERIC_SERVER_MESSAGE


async def test_success_false_envelope_is_a_failure():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Failed to fetch bookings"})

    with pytest.raises(ServerError, match="Failed to fetch bookings"):
        await client_for(handler).list_bookings()


async def test_connection_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await client_for(handler).list_bookings()


async def test_timeout_is_network_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError) as exc:
        await client_for(handler).request_completion("b1")
    assert exc.value.message == TIMEOUT_MESSAGE


async def test_list_accepts_bare_and_enveloped_bodies():
    def worker_handler(request):
        assert request.url.path == "/api/bookings"
        assert request.url.params["workerEmail"] == "w@example.com"
        return httpx.Response(200, json={"success": True, "bookings": [BOOKING]})

    def customer_handler(request):
        assert request.url.path == "/api/bookings/user/c@example.com"
        return httpx.Response(200, json=[BOOKING])

    worker_bookings = await client_for(worker_handler).list_bookings()
    customer_bookings = await client_for(customer_handler, Actor.CUSTOMER, "c@example.com").list_bookings()
    assert [b.id for b in worker_bookings] == [b.id for b in customer_bookings] == ["b1"]


async def test_unexpected_list_shape_is_malformed():
    def handler(request):
        return httpx.Response(200, json={"success": True})

    with pytest.raises(MalformedResponseError):
        await client_for(handler).list_bookings()


async def test_customer_listing_sends_normalized_status_filter():
    seen = {}

    def handler(request):
        seen["status"] = request.url.params["status"]
        return httpx.Response(200, json=[])

    await client_for(handler, Actor.CUSTOMER, "c@example.com").list_customer_bookings(
        "c@example.com", statuses=["in_progress", BookingStatus.PENDING]
    )
    assert seen["status"] == "In Progress,Pending"


async def test_identity_and_idempotency_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "message": "Completion request sent to client",
                                         "booking": {**BOOKING, "status": "In Progress", "completionRequested": True}})

    result = await client_for(handler).request_completion("b1", idempotency_key="key-1")
    request = seen[0]
    assert request.headers["X-User-Sub"] == "w@example.com"
    assert json.loads(request.headers["X-User-Roles"]) == ["worker"]
    assert request.headers["Idempotency-Key"] == "key-1"
    assert request.headers["X-Request-Id"]
    assert result.message == "Completion request sent to client"
    assert result.booking.completion_requested is True


async def test_status_update_falls_back_when_route_is_missing():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path, request.headers["Idempotency-Key"], json.loads(request.content)))
        if request.method == "PATCH":
            return httpx.Response(404, text="<pre>Cannot PATCH /api/bookings/b1/status</pre>")
        if request.url.path.endswith("/status"):
            return httpx.Response(405, json={"message": "Method Not Allowed"})
        return httpx.Response(200, json={"success": True, "booking": {**BOOKING, "status": "Confirmed"}})

    result = await client_for(handler).update_status("b1", BookingStatus.CONFIRMED)

    assert [(m, p) for m, p, _, _ in calls] == [
        ("PATCH", "/api/bookings/b1/status"),
        ("PUT", "/api/bookings/b1/status"),
        ("PUT", "/api/bookings/b1"),
    ]
    assert len({key for _, _, key, _ in calls}) == 1
    assert all(body == {"status": "Confirmed"} for _, _, _, body in calls)
    assert result.booking.status is BookingStatus.CONFIRMED


async def test_business_errors_are_not_retried_elsewhere():
    calls = []

    def handler(request):
        calls.append(request.method)
        return httpx.Response(409, json={"success": False, "message": "Booking is already cancelled"})

    with pytest.raises(ServerError, match="already cancelled"):
        await client_for(handler).update_status("b1", BookingStatus.CONFIRMED)
    assert calls == ["PATCH"]


async def test_json_not_found_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request.method)
        return httpx.Response(404, json={"success": False, "message": "Booking not found"})

    with pytest.raises(ServerError, match="Booking not found"):
        await client_for(handler).update_status("missing", BookingStatus.CONFIRMED)
    assert calls == ["PATCH"]


async def test_completed_status_body_carries_completion_fields():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    await client_for(handler, Actor.CUSTOMER, "c@example.com").update_status("b1", BookingStatus.COMPLETED)
    assert bodies == [{"status": "Completed", "completed": True, "completionRequested": False}]
