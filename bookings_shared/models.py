from datetime import datetime, time, timezone
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import ValidationError
from .status import BookingStatus, TERMINAL_STATUSES, normalize


class Coordinates(BaseModel):
    lat: float = 0.0
    lng: float = 0.0


class Address(BaseModel):
    text: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _coerce_address(value):
    if isinstance(value, str):
        return {"text": value}
    if value is None:
        return {}
    return value


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Booking(_CamelModel):
    """
    A booking as held in client memory.

    Built from whatever the service returns; legacy payloads (``_id``, a
    separate ``date``/``time`` pair, a bare ``location`` string) are accepted
    and folded into the canonical fields. ``status`` is always normalized.
    """

    id: str = Field(
        validation_alias=AliasChoices("_id", "id", "bookingId", "booking_id"),
        serialization_alias="_id",
    )
    status: BookingStatus = BookingStatus.PENDING
    completion_requested: bool = False
    completion_requested_at: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None

    worker_id: Optional[str] = None
    worker_email: Optional[str] = None
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    client_name: Optional[str] = None

    service_id: Optional[str] = None
    service_type: Optional[str] = None
    service_name: Optional[str] = None
    price: float = 0.0
    service_fee: float = 0.0
    total_amount: float = 0.0
    payment_status: str = "pending"

    booking_date: Optional[datetime] = None
    address: Address = Field(default_factory=Address)
    notes: str = ""
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None

    is_reviewed: bool = False
    review_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("bookingDate") and not data.get("booking_date") and data.get("date"):
            legacy = str(data["date"])
            if data.get("time") and "T" not in legacy:
                legacy = f"{legacy}T{data['time']}"
            data["bookingDate"] = legacy
        if not data.get("address") and data.get("location"):
            data["address"] = {"text": data["location"]}
        for key in ("notes", "price", "serviceFee", "totalAmount", "paymentStatus"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return normalize(value)

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value):
        return _coerce_address(value)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    @field_validator("completion_requested", "completed", "is_reviewed", mode="before")
    @classmethod
    def _none_is_false(cls, value):
        return bool(value)

    @field_validator("booking_date", "completed_at", "completion_requested_at",
                     "created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def parse_booking(payload) -> Booking:
    return Booking.model_validate(payload)


def parse_bookings(payload) -> list[Booking]:
    return [Booking.model_validate(item) for item in payload or []]


class BookingDraft(_CamelModel):
    """Everything a customer must supply to create a booking."""

    service_id: str = Field(min_length=1)
    worker_id: str = Field(min_length=1)
    worker_email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    customer_id: str = Field(min_length=1)
    customer_email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    customer_phone: str = Field(min_length=1)
    service_type: str = Field(min_length=1)
    booking_date: datetime
    address: Address
    price: float = Field(gt=0)
    total_amount: float = Field(gt=0)
    service_fee: float = Field(default=0.0, ge=0)
    notes: str = ""

    @model_validator(mode="before")
    @classmethod
    def _combine_date_and_time(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("bookingDate") and not data.get("booking_date") and data.get("date"):
            clock = data.get("time") or "00:00"
            try:
                parsed_clock = time.fromisoformat(str(clock))
            except ValueError:
                # Leave bookingDate unparseable so the error lands on that field.
                data["bookingDate"] = f"{data['date']} {clock}"
            else:
                data["bookingDate"] = f"{data['date']}T{parsed_clock.isoformat()}"
        return data

    @field_validator("service_id", "worker_id", "customer_id", "customer_phone",
                     "service_type", "worker_email", "customer_email", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value):
        return _coerce_address(value)

    @field_validator("address")
    @classmethod
    def _address_has_text(cls, value: Address):
        if not value.text.strip():
            raise ValueError("Address is required")
        return value

    @field_validator("booking_date")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def _field_name(loc) -> str:
    names = [str(part) for part in loc if not isinstance(part, int)]
    return names[0] if names else "booking"


def validate_draft(data: dict) -> BookingDraft:
    """
    Validate a create-booking form in one pass.

    Raises ValidationError listing every offending field so nothing is
    submitted until the whole draft is valid.
    """
    try:
        return BookingDraft.model_validate(data)
    except PydanticValidationError as exc:
        fields = {}
        for error in exc.errors():
            name = _field_name(error["loc"])
            if name == "date":
                name = "bookingDate"
            fields.setdefault(name, error["msg"])
        raise ValidationError(fields) from exc
