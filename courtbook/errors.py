class CourtBookError(Exception):
    """Base class for every error raised by courtbook."""


class ValidationError(CourtBookError):
    """Input rejected locally, before anything reaches the store."""


class ConflictError(CourtBookError):
    """The store refused a booking because the time range is no longer free."""

    default_message = "This time slot was just booked by another user. Please select a different time."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class StoreError(CourtBookError):
    """The backing store could not be reached or returned an unexpected response."""


class CourtNotFoundError(StoreError):
    pass
