import json
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import IdempotencyRecord


async def find_response(db: AsyncSession, key: str, booking_id: str):
    """Stored (status_code, body) for an already-processed key, else None."""
    res = await db.execute(select(IdempotencyRecord).where(IdempotencyRecord.key == key))
    record = res.scalar_one_or_none()
    if not record:
        return None
    if record.booking_id != booking_id:
        raise HTTPException(status_code=422, detail="Idempotency-Key was already used for another booking")
    return record.status_code, json.loads(record.response)


def remember(db: AsyncSession, key: str, booking_id: str, status_code: int, body: dict):
    # Added to the caller's transaction so the key commits with the transition.
    db.add(
        IdempotencyRecord(
            key=key,
            booking_id=booking_id,
            status_code=status_code,
            response=json.dumps(body, separators=(",", ":"), ensure_ascii=False),
            created_at=datetime.now(timezone.utc),
        )
    )
