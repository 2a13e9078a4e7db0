GENERIC_SERVER_MESSAGE = "Something went wrong on the server. Please try again."
NETWORK_MESSAGE = "Could not reach the booking service. Check your connection and try again."


class BookingError(Exception):
    """Base class; ``message`` is safe to show to the user as-is."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(BookingError):
    def __init__(self, message: str = NETWORK_MESSAGE):
        super().__init__(message)


class ServerError(BookingError):
    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or GENERIC_SERVER_MESSAGE)
        self.status_code = status_code


class MalformedResponseError(BookingError):
    # The raw body (often an HTML error page) is kept for logs, never for display.
    def __init__(self, status_code: int, body: str = ""):
        super().__init__(GENERIC_SERVER_MESSAGE)
        self.status_code = status_code
        self.body = body


class ValidationError(BookingError):
    def __init__(self, fields: dict[str, str]):
        self.fields = dict(fields)
        summary = "; ".join(f"{name}: {msg}" for name, msg in self.fields.items())
        super().__init__(f"Please fix the following: {summary}")


class InvalidTransitionError(BookingError):
    pass


class ActorNotAllowedError(BookingError):
    pass


class BookingNotFound(BookingError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id
