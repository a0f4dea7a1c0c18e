"""Employee records engine.

Domain engine for employee record management:
- Status lifecycle with the leaving-date rule
- Soft delete and restore with audited reasons
- Effective-dated salary history
- Per-employee payroll ledger with bounded payment retries
- Weekly shift schedules
- Append-only audit trail
"""

from employee_engine.errors import (
    ConflictError,
    EmployeeEngineError,
    InvalidTransitionError,
    InvariantViolation,
    NotFoundError,
    PreconditionFailed,
    RetryLimitExceeded,
    StorageError,
    ValidationError,
)
from employee_engine.services import (
    SYSTEM_ACTOR,
    Actor,
    AuditAction,
    EmployeeService,
    EmployeeStatus,
    EmploymentType,
    PaymentMode,
    PaymentStatus,
)

__version__ = "0.1.0"

__all__ = [
    # Service
    "EmployeeService",
    "Actor",
    "SYSTEM_ACTOR",
    "AuditAction",
    # Enums
    "EmployeeStatus",
    "EmploymentType",
    "PaymentMode",
    "PaymentStatus",
    # Errors
    "EmployeeEngineError",
    "ValidationError",
    "PreconditionFailed",
    "RetryLimitExceeded",
    "ConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "StorageError",
    "InvariantViolation",
]
