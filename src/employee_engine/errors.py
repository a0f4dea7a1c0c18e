"""Employee engine exception hierarchy."""

from __future__ import annotations

from typing import Any
from uuid import UUID


class EmployeeEngineError(Exception):
    """Base exception for all employee engine errors."""


class ValidationError(EmployeeEngineError):
    """Malformed or out-of-range input. Fix the input; never retried automatically."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        """Build an error for a single field."""
        return cls(f"{field}: {message}", [{"field": field, "message": message}])


class PreconditionFailed(EmployeeEngineError):
    """Business rule violation, surfaced verbatim to the caller."""


class RetryLimitExceeded(PreconditionFailed):
    """A failed payment already used up its retries."""

    def __init__(self, attempt_id: UUID, retry_count: int, max_retries: int):
        self.attempt_id = attempt_id
        self.retry_count = retry_count
        self.max_retries = max_retries
        super().__init__(
            f"Payment attempt {attempt_id} reached the retry limit "
            f"({retry_count}/{max_retries})"
        )


class ConflictError(EmployeeEngineError):
    """Concurrent write or duplicate record. Safe to retry after re-reading."""


class InvalidTransitionError(EmployeeEngineError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFoundError(EmployeeEngineError):
    """Requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class StorageError(EmployeeEngineError):
    """Storage is unavailable or failed. Retried by the caller, never swallowed."""


class InvariantViolation(EmployeeEngineError):
    """Internal consistency check failed. Should be unreachable through the public API."""
