from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text

from .db import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    booking_id = Column(String, unique=True, nullable=False, index=True)

    worker_id = Column(String, nullable=False)
    worker_email = Column(String, nullable=False, index=True)
    customer_id = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    customer_phone = Column(String, nullable=False)

    service_id = Column(String, nullable=False)
    service_type = Column(String, nullable=False)

    booking_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    address_text = Column(String, nullable=False)
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    notes = Column(Text, nullable=False, default="")

    status = Column(String, nullable=False, index=True)  # canonical BookingStatus value
    completion_requested = Column(Boolean, nullable=False, default=False)
    completion_requested_at = Column(DateTime(timezone=True), nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String, nullable=True)
    cancelled_by = Column(String, nullable=True)

    price = Column(Float, nullable=False)
    service_fee = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    payment_status = Column(String, nullable=False, default="pending")

    is_reviewed = Column(Boolean, nullable=False, default=False)
    review_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_keys"

    key = Column(String, primary_key=True)
    booking_id = Column(String, nullable=False, index=True)
    status_code = Column(Integer, nullable=False)
    response = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
