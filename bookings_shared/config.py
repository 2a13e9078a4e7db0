import os

BOOKINGS_API_URL = os.getenv("BOOKINGS_API_URL", "http://localhost:5000/api")

BOOKINGS_HTTP_TIMEOUT = float(os.getenv("BOOKINGS_HTTP_TIMEOUT", "3.0"))

# Foreground always means "refetch" unless explicitly turned off.
BOOKINGS_REFETCH_ON_FOREGROUND = os.getenv("BOOKINGS_REFETCH_ON_FOREGROUND", "true").strip().lower() not in (
    "0",
    "false",
    "no",
    "off",
)

# "empty": drop the list on a failed fetch. "retain": keep last-known-good, marked stale.
BOOKINGS_FETCH_FAILURE_POLICY = os.getenv("BOOKINGS_FETCH_FAILURE_POLICY", "empty").strip().lower()

if BOOKINGS_FETCH_FAILURE_POLICY not in ("empty", "retain"):
    raise RuntimeError(
        f"BOOKINGS_FETCH_FAILURE_POLICY must be 'empty' or 'retain', got {BOOKINGS_FETCH_FAILURE_POLICY!r}"
    )
