"""Domain errors raised by the services and mapped to HTTP responses in ``app.main``."""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for booking-domain operations."""

    status_code = 400
    code = "domain_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class SlotUnavailable(DomainError):
    """The requested slot is not free (lost race or stale client state)."""

    status_code = 409
    code = "slot_unavailable"


class InvalidTransition(DomainError):
    """The booking status change is not legal from the current state."""

    status_code = 409
    code = "invalid_transition"


class ScheduleConflict(DomainError):
    """A weekly window already exists for that doctor and weekday."""

    status_code = 409
    code = "schedule_conflict"


class InvalidSchedule(DomainError):
    """A weekly window whose start is not before its end, or similar."""

    status_code = 422
    code = "invalid_schedule"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


class NotAuthorized(DomainError):
    status_code = 403
    code = "not_authorized"


class StorageError(DomainError):
    """Transient persistence failure; callers may retry with backoff."""

    status_code = 503
    code = "storage_error"


@contextmanager
def storage_errors(operation: str):
    """Wrap unexpected SQLAlchemy failures of ``operation`` as :class:`StorageError`."""
    try:
        yield
    except DomainError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Storage failure during %s", operation)
        raise StorageError(f"storage failure during {operation}") from exc
