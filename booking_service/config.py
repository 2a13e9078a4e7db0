import os

BOOKING_DB = os.getenv("BOOKING_DB", "sqlite+aiosqlite:///./bookings.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# A booking blocks the worker's calendar for this long.
SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "120"))
