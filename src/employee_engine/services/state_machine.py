"""Employee and payment state machines with transition validation."""

from __future__ import annotations

from datetime import date
from enum import Enum

from employee_engine.errors import InvalidTransitionError, PreconditionFailed


class EmployeeStatus(str, Enum):
    """Employee status values."""

    ACTIVE = "active"
    ON_LEAVE = "on_leave"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class EmploymentType(str, Enum):
    """Employment type values."""

    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERN = "intern"


class PaymentMode(str, Enum):
    """How salary is paid out."""

    AUTO = "auto"
    MANUAL = "manual"


class PaymentStatus(str, Enum):
    """Payment attempt status values."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class EmployeeStateMachine:
    """State machine for employee status.

    Every status can move to every other status; the only guard is the
    leaving-date rule: once a date of leaving is set, the record may only be
    suspended or terminated.
    """

    # Statuses compatible with a date of leaving
    LEAVING_DATE_ALLOWED = {
        EmployeeStatus.SUSPENDED.value,
        EmployeeStatus.TERMINATED.value,
    }

    STATUSES = {s.value for s in EmployeeStatus}

    @classmethod
    def allows_leaving_date(cls, status: str) -> bool:
        """Check if a status may coexist with a date of leaving."""
        return status in cls.LEAVING_DATE_ALLOWED

    @classmethod
    def validate_status_change(
        cls, from_status: str, to_status: str, date_of_leaving: date | None
    ) -> None:
        """Validate a status change, raising PreconditionFailed if not allowed."""
        if to_status not in cls.STATUSES:
            raise InvalidTransitionError(from_status, to_status, "unknown status")
        if date_of_leaving is not None and not cls.allows_leaving_date(to_status):
            raise PreconditionFailed(
                f"Cannot set status '{to_status}' while a date of leaving "
                f"({date_of_leaving.isoformat()}) is recorded"
            )

    @classmethod
    def status_for_leaving_date(cls, current_status: str, date_of_leaving: date | None) -> str:
        """Status the record must have once the leaving date is applied."""
        if date_of_leaving is None or cls.allows_leaving_date(current_status):
            return current_status
        return EmployeeStatus.TERMINATED.value

    @classmethod
    def is_termination(cls, from_status: str, to_status: str) -> bool:
        """Check if this change terminates the employee."""
        return to_status == EmployeeStatus.TERMINATED and from_status != EmployeeStatus.TERMINATED

    @classmethod
    def is_reinstatement(cls, from_status: str, to_status: str) -> bool:
        """Check if this change brings a terminated employee back."""
        return from_status == EmployeeStatus.TERMINATED and to_status != EmployeeStatus.TERMINATED


class PaymentStateMachine:
    """State machine for payment attempt status.

    Allowed transitions:
    - pending → paid
    - pending → failed
    - failed → pending (explicit retry)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PaymentStatus.PENDING.value: [PaymentStatus.PAID.value, PaymentStatus.FAILED.value],
        PaymentStatus.FAILED.value: [PaymentStatus.PENDING.value],
        PaymentStatus.PAID.value: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if from_status == PaymentStatus.FAILED and to_status == PaymentStatus.PAID:
                reason = "retry the payment first"
            elif from_status == PaymentStatus.PAID:
                reason = "paid is terminal"
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_retryable(cls, status: str) -> bool:
        """Check if a retry would change anything."""
        return status == PaymentStatus.FAILED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
