class BookingServiceError(Exception):
    """Base class for errors raised by the booking core."""


class ValidationError(BookingServiceError):
    """A submission is missing a required field (name, email or subjects)."""


class PersistenceError(BookingServiceError):
    """A read or write against the record store failed."""


class StoreUnavailable(BookingServiceError):
    """The store file cannot be opened or created. Fatal at startup."""
