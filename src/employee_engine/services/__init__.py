"""Employee engine services."""

from employee_engine.services.audit_trail import SYSTEM_ACTOR, Actor, ActorKind, AuditAction, AuditPage, AuditTrail
from employee_engine.services.employee_service import EmployeeService
from employee_engine.services.lifecycle import DocumentSpec, EmployeeLifecycle
from employee_engine.services.locking_service import EmployeeLockRegistry
from employee_engine.services.payroll_ledger import PayrollLedger, RetryResult
from employee_engine.services.salary_history import SalaryHistoryLedger, ensure_non_overlapping
from employee_engine.services.shift_schedule import ShiftSchedule, ShiftSpec
from employee_engine.services.state_machine import (
    EmployeeStateMachine,
    EmployeeStatus,
    EmploymentType,
    PaymentMode,
    PaymentStateMachine,
    PaymentStatus,
)

__all__ = [
    "SYSTEM_ACTOR",
    "Actor",
    "ActorKind",
    "AuditAction",
    "AuditPage",
    "AuditTrail",
    "EmployeeService",
    "DocumentSpec",
    "EmployeeLifecycle",
    "EmployeeLockRegistry",
    "PayrollLedger",
    "RetryResult",
    "SalaryHistoryLedger",
    "ensure_non_overlapping",
    "ShiftSchedule",
    "ShiftSpec",
    "EmployeeStateMachine",
    "EmployeeStatus",
    "EmploymentType",
    "PaymentMode",
    "PaymentStateMachine",
    "PaymentStatus",
]
