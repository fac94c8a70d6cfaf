class SplitSmartError(Exception):
    """Base class for all trip store errors."""


class ValidationError(SplitSmartError, ValueError):
    """Invalid trip or expense input. Raised before any state changes."""


class NotFoundError(SplitSmartError, LookupError):
    """No trip exists with the given id."""

    def __init__(self, trip_id: str):
        super().__init__(f"Trip not found: {trip_id}")
        self.trip_id = trip_id


class PersistenceError(SplitSmartError):
    """The durable key-value store could not be read or written."""
