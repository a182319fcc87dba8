"""Booking engine error taxonomy.

Every rejection surfaces with a stable ``kind`` so clients can tell a taken
slot from an exhausted package and re-query availability accordingly.
"""


class BookingError(Exception):
    """Base exception for scheduling and booking errors."""

    kind = "BOOKING_ERROR"
    status_code = 400
    default_message = "Booking request rejected."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ServiceNotFound(BookingError):
    """The requested service does not exist in the catalog."""

    kind = "SERVICE_NOT_FOUND"
    status_code = 404
    default_message = "The requested service does not exist."


class CatalogUnavailable(ServiceNotFound):
    """The catalog could not be reached or answered with an error."""

    kind = "CATALOG_UNAVAILABLE"
    status_code = 503
    default_message = "The catalog is not available right now."


class SlotUnavailable(BookingError):
    kind = "SLOT_UNAVAILABLE"
    status_code = 409
    default_message = "The selected time is no longer available."


class NoCreditsAvailable(BookingError):
    kind = "NO_CREDITS_AVAILABLE"
    status_code = 409
    default_message = "No package credits are available for this service."


class Forbidden(BookingError):
    kind = "FORBIDDEN"
    status_code = 403
    default_message = "You are not allowed to manage this resource."


class NotFound(BookingError):
    kind = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found."


class InvalidTimeRange(BookingError):
    kind = "INVALID_TIME_RANGE"
    status_code = 400
    default_message = "End time must be after start time."


class InvalidSchedule(BookingError):
    kind = "INVALID_SCHEDULE"
    status_code = 400
    default_message = "Weekly schedule is invalid."


class InvalidStateTransition(BookingError):
    kind = "INVALID_STATE_TRANSITION"
    status_code = 409
    default_message = "Appointment cannot change state from its current status."
