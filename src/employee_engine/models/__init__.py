"""ORM models for the employee engine."""

from employee_engine.models.audit import AuditEntry
from employee_engine.models.base import Base, TimestampMixin, UTCDateTime
from employee_engine.models.employee import EmployeeDocument, EmployeeRecord, ShiftDefinition
from employee_engine.models.payroll import PaymentAttempt
from employee_engine.models.salary import SalaryPeriod

__all__ = [
    "AuditEntry",
    "Base",
    "EmployeeDocument",
    "EmployeeRecord",
    "PaymentAttempt",
    "SalaryPeriod",
    "ShiftDefinition",
    "TimestampMixin",
    "UTCDateTime",
]
