"""Error taxonomy for the reading companion services.

Each error carries the HTTP status it maps to; `app.main` turns them into
`{"detail": ...}` responses. Errors flagged `expected` are ordinary
user-facing conditions and are never logged as failures.
"""


class ReadingCompanionError(Exception):
    """Base class for service-level errors."""
    status_code = 400
    expected = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidBookError(ReadingCompanionError):
    """Book is not one the user is tracking."""


class InvalidMessageError(ReadingCompanionError):
    """Chat message is empty after trimming."""


class NotFoundError(ReadingCompanionError):
    status_code = 404


class Busy(ReadingCompanionError):
    """A completion is already in flight for this thread."""
    status_code = 409


class AlreadyAdded(ReadingCompanionError):
    status_code = 409


class QuotaExceeded(ReadingCompanionError):
    """Tier limit on active library books."""
    status_code = 403

    def __init__(self, limit: int):
        super().__init__(
            f"Free accounts can track at most {limit} books. "
            "Remove a book or upgrade to premium."
        )
        self.limit = limit


class DailyLimitReached(ReadingCompanionError):
    """Daily assistant-message quota exhausted."""
    status_code = 429

    def __init__(self, limit: int):
        super().__init__(
            f"Daily message limit of {limit} reached. Try again tomorrow."
        )
        self.limit = limit


class ExternalServiceError(ReadingCompanionError):
    """Book search or chat completion call failed."""
    status_code = 502
    expected = False


class PersistenceError(ReadingCompanionError):
    """Storage call failed."""
    status_code = 503
    expected = False
