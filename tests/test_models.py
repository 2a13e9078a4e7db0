from datetime import datetime, timezone

import pytest

from bookings_shared.errors import ValidationError
from bookings_shared.models import Booking, parse_bookings, validate_draft
from bookings_shared.status import BookingStatus

from conftest import booking_form


def test_booking_accepts_legacy_payload():
    booking = Booking.model_validate({
        "_id": "65f0c0ffee",
        "status": "in_progress",
        "completionRequested": None,
        "date": "2030-02-01",
        "time": "14:30",
        "location": "12 Main St",
        "price": None,
    })
    assert booking.id == "65f0c0ffee"
    assert booking.status is BookingStatus.IN_PROGRESS
    assert booking.completion_requested is False
    assert booking.booking_date == datetime(2030, 2, 1, 14, 30, tzinfo=timezone.utc)
    assert booking.address.text == "12 Main St"
    assert booking.price == 0.0


def test_booking_accepts_string_address_and_alternate_id():
    booking = Booking.model_validate({"bookingId": 7, "status": "Confirmed", "address": "4 Elm Rd"})
    assert booking.id == "7"
    assert booking.address.text == "4 Elm Rd"
    assert booking.address.coordinates.lat == 0.0


def test_unknown_status_defaults_to_pending():
    assert Booking.model_validate({"_id": "x", "status": "on hold"}).status is BookingStatus.PENDING


def test_to_wire_uses_service_field_names():
    booking = Booking.model_validate({"_id": "abc", "status": "IN-PROGRESS", "workerEmail": "w@example.com"})
    wire = booking.to_wire()
    assert wire["_id"] == "abc"
    assert wire["status"] == "In Progress"
    assert wire["workerEmail"] == "w@example.com"
    assert wire["completionRequested"] is False


def test_parse_bookings_handles_none():
    assert parse_bookings(None) == []


def test_valid_draft():
    draft = validate_draft(booking_form(notes="Gate code 1234"))
    assert draft.customer_email == "customer@example.com"
    assert draft.booking_date.tzinfo is not None
    assert draft.service_fee == 5.0


def test_draft_combines_date_and_time():
    form = booking_form()
    del form["bookingDate"]
    form.update(date="2030-03-04", time="08:15")
    draft = validate_draft(form)
    assert draft.booking_date == datetime(2030, 3, 4, 8, 15, tzinfo=timezone.utc)


def test_draft_reports_every_bad_field_at_once():
    with pytest.raises(ValidationError) as exc:
        validate_draft({"customerEmail": "not-an-email", "price": 0})
    fields = exc.value.fields
    for name in ("serviceId", "workerId", "workerEmail", "customerEmail", "customerPhone",
                 "serviceType", "bookingDate", "address", "price", "totalAmount"):
        assert name in fields


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"bookingDate": "next tuesday"}, "bookingDate"),
        ({"address": {"text": "   "}}, "address"),
        ({"address": ""}, "address"),
        ({"customerPhone": "  "}, "customerPhone"),
        ({"totalAmount": -1}, "totalAmount"),
    ],
)
def test_draft_rejects_invalid_field(overrides, field):
    with pytest.raises(ValidationError) as exc:
        validate_draft(booking_form(**overrides))
    assert field in exc.value.fields


def test_draft_rejects_malformed_time():
    form = booking_form()
    del form["bookingDate"]
    form.update(date="2030-03-04", time="25:99")
    with pytest.raises(ValidationError) as exc:
        validate_draft(form)
    assert "bookingDate" in exc.value.fields
