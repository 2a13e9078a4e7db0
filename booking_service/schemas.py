from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StatusUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    status: str
    cancellation_reason: Optional[str] = None
    # Older clients send these alongside the status; the service derives them itself.
    completed: Optional[bool] = None
    completed_at: Optional[datetime] = None
    completion_requested: Optional[bool] = None


class BookingEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    booking: dict


class BookingListEnvelope(BaseModel):
    success: bool = True
    bookings: List[dict]
