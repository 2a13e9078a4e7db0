import itertools
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from booking_service.main import create_app
from customer_app.session import CustomerSession
from worker_app.session import WorkerSession

WORKER = "worker@example.com"
OTHER_WORKER = "other.worker@example.com"
CUSTOMER = "customer@example.com"
BASE_URL = "http://testserver"

_day = itertools.count(1)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def booking_form(**overrides) -> dict:
    form = {
        "serviceId": "svc-plumbing-1",
        "workerId": "worker-1",
        "workerEmail": WORKER,
        "customerId": "customer-1",
        "customerEmail": CUSTOMER,
        "customerPhone": "+15550100",
        "serviceType": "Plumbing",
        "bookingDate": (datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc) + timedelta(days=next(_day))).isoformat(),
        "address": {"text": "12 Main St", "coordinates": {"lat": 40.7, "lng": -74.0}},
        "notes": "Leaking faucet in kitchen",
        "price": 80.0,
        "serviceFee": 5.0,
        "totalAmount": 85.0,
    }
    form.update(overrides)
    return form


def identity(email: str, role: str) -> dict:
    return {"X-User-Sub": email, "X-User-Roles": json.dumps([role])}


@pytest.fixture
async def service_app(tmp_path):
    app = create_app(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await app.state.db.create_all()
    yield app
    await app.state.db.dispose()


@pytest.fixture
def transport(service_app):
    return httpx.ASGITransport(app=service_app)


@pytest.fixture
async def http(transport):
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def worker(transport):
    session = WorkerSession.for_worker(WORKER, base_url=BASE_URL, transport=transport)
    yield session
    session.close()


@pytest.fixture
def customer(transport):
    session = CustomerSession.for_customer(CUSTOMER, base_url=BASE_URL, transport=transport)
    yield session
    session.close()


@pytest.fixture
def book(customer, worker):
    """Create a booking as the customer and return its id with both sessions loaded."""

    async def _book(**overrides):
        result = await customer.responder.create_booking(booking_form(**overrides))
        await worker.load()
        return result.booking.id

    return _book


@pytest.fixture
def in_progress(book, worker):
    async def _in_progress(**overrides):
        booking_id = await book(**overrides)
        await worker.controller.accept(booking_id)
        await worker.controller.start_job(booking_id)
        return booking_id

    return _in_progress
