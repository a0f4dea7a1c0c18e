"""Employee lifecycle - status state machine, soft delete and compensation.

Every method either applies its whole effect plus exactly one audit entry,
or raises before touching the record. The caller owns the transaction, so a
failure after the first write is still rolled back as a unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from employee_engine.collaborators import Clock
from employee_engine.config import EngineConfig
from employee_engine.errors import PreconditionFailed, ValidationError
from employee_engine.models import EmployeeDocument, EmployeeRecord
from employee_engine.services.audit_trail import Actor, AuditAction, AuditTrail
from employee_engine.services.salary_history import SalaryHistoryLedger
from employee_engine.services.shift_schedule import ShiftSchedule, ShiftSpec
from employee_engine.services.state_machine import EmployeeStateMachine, EmployeeStatus

logger = logging.getLogger(__name__)

# Plain profile fields editable through update_fields
PROFILE_FIELDS = (
    "name",
    "role",
    "phone",
    "email",
    "emergency_contact",
    "employment_type",
    "payment_mode",
    "notes",
    "avatar_ref",
    "date_of_joining",
)


@dataclass(frozen=True)
class DocumentSpec:
    """A document reference as supplied by a caller."""

    doc_type: str
    content_ref: str
    uploaded_at: datetime | None = None


def _normalize_status(status: str | EmployeeStatus) -> str:
    try:
        return EmployeeStatus(status).value
    except ValueError:
        raise ValidationError.for_field("status", f"unknown status '{status}'") from None


class EmployeeLifecycle:
    """Owns status transitions and the other record-level state changes."""

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditTrail,
        salary: SalaryHistoryLedger,
        clock: Clock,
        config: EngineConfig | None = None,
    ):
        self.session = session
        self.audit = audit
        self.salary = salary
        self.clock = clock
        self.config = config or EngineConfig()
        self.schedule = ShiftSchedule()

    async def set_status(
        self,
        record: EmployeeRecord,
        new_status: str | EmployeeStatus,
        actor: Actor,
        note: str | None = None,
    ) -> bool:
        """Change status. Returns False if the record already had it.

        Raises:
            PreconditionFailed: If the record is deleted, or the new status
                cannot coexist with the recorded date of leaving
        """
        self._ensure_live(record)
        to_status = _normalize_status(new_status)
        from_status = record.status
        EmployeeStateMachine.validate_status_change(
            from_status, to_status, record.date_of_leaving
        )
        if to_status == from_status:
            return False

        now = self.clock.now()
        await self._apply_status(record, to_status, now)
        record.updated_at = now

        await self.audit.append(
            record.employee_id,
            AuditAction.STATUS_CHANGED,
            actor,
            note=note,
            before={"status": from_status},
            after={"status": to_status},
        )
        logger.info(
            "Employee %s status %s -> %s", record.employee_id, from_status, to_status
        )
        return True

    async def set_date_of_leaving(
        self,
        record: EmployeeRecord,
        date_of_leaving: date | None,
        actor: Actor,
    ) -> bool:
        """Set or clear the date of leaving.

        A leaving date on a record that is neither suspended nor terminated
        terminates it; both facts go into a single status_changed entry.
        """
        self._ensure_live(record)
        if date_of_leaving is not None and date_of_leaving < record.date_of_joining:
            raise ValidationError.for_field(
                "date_of_leaving", "cannot be before the date of joining"
            )
        if date_of_leaving == record.date_of_leaving:
            return False

        from_status = record.status
        from_leaving = record.date_of_leaving
        to_status = EmployeeStateMachine.status_for_leaving_date(from_status, date_of_leaving)

        now = self.clock.now()
        # Status first: closing the salary period flushes the record, and a
        # leaving date on an active record violates its check constraint
        if to_status != from_status:
            await self._apply_status(record, to_status, now)
        record.date_of_leaving = date_of_leaving
        if record.status == EmployeeStatus.TERMINATED and date_of_leaving is not None:
            record.terminated_on = date_of_leaving
        record.updated_at = now

        before = {"date_of_leaving": from_leaving}
        after = {"date_of_leaving": date_of_leaving}
        action = AuditAction.UPDATED
        if to_status != from_status:
            before["status"] = from_status
            after["status"] = to_status
            action = AuditAction.STATUS_CHANGED

        await self.audit.append(record.employee_id, action, actor, before=before, after=after)
        logger.info(
            "Employee %s date of leaving %s -> %s (status %s)",
            record.employee_id,
            from_leaving,
            date_of_leaving,
            record.status,
        )
        return True

    async def soft_delete(self, record: EmployeeRecord, reason: str, actor: Actor) -> bool:
        """Hide the record. Returns False if it was already deleted.

        Raises:
            ValidationError: If the reason is too short or too long
        """
        reason = (reason or "").strip()
        min_len = self.config.soft_delete_reason_min_length
        max_len = self.config.soft_delete_reason_max_length
        if not min_len <= len(reason) <= max_len:
            raise ValidationError.for_field(
                "reason", f"must be between {min_len} and {max_len} characters"
            )

        if record.is_deleted:
            return False

        now = self.clock.now()
        record.is_deleted = True
        record.deleted_reason = reason
        record.deleted_at = now
        record.deleted_by = actor.actor_id
        record.updated_at = now

        await self.audit.append(
            record.employee_id,
            AuditAction.SOFT_DELETED,
            actor,
            note=reason,
            before={"is_deleted": False},
            after={"is_deleted": True},
        )
        logger.info("Employee %s soft-deleted by %s", record.employee_id, actor.actor_id)
        return True

    async def restore(self, record: EmployeeRecord, actor: Actor) -> bool:
        """Undo a soft delete. No reason is required."""
        if not record.is_deleted:
            return False

        previous_reason = record.deleted_reason
        record.is_deleted = False
        record.deleted_reason = None
        record.deleted_at = None
        record.deleted_by = None
        record.updated_at = self.clock.now()

        await self.audit.append(
            record.employee_id,
            AuditAction.RESTORED,
            actor,
            before={"is_deleted": True, "deleted_reason": previous_reason},
            after={"is_deleted": False},
        )
        logger.info("Employee %s restored by %s", record.employee_id, actor.actor_id)
        return True

    async def update_compensation(
        self,
        record: EmployeeRecord,
        new_amount: Decimal,
        new_currency: str,
        reason: str | None,
        actor: Actor,
    ) -> bool:
        """Change salary. Returns False when amount and currency are unchanged.

        Closes the open salary period and opens a new one at the same instant.
        A terminated employee only gets the record updated; the period is
        reopened on reinstatement.
        """
        self._ensure_live(record)
        if new_amount < 0:
            raise ValidationError.for_field("salary", "must not be negative")

        current = await self.salary.current_period(record.employee_id)
        terminated = record.status == EmployeeStatus.TERMINATED
        unchanged = new_amount == record.salary and new_currency == record.currency
        if unchanged and (current is not None or terminated):
            return False

        before = {"salary": record.salary, "currency": record.currency}
        now = self.clock.now()
        if not terminated:
            await self.salary.close_open_period(record.employee_id, now)
            await self.salary.open_period(
                record.employee_id, new_amount, new_currency, now, reason
            )
        record.salary = new_amount
        record.currency = new_currency
        record.updated_at = now

        await self.audit.append(
            record.employee_id,
            AuditAction.COMPENSATION_CHANGED,
            actor,
            note=reason,
            before=before,
            after={"salary": new_amount, "currency": new_currency},
        )
        logger.info(
            "Employee %s compensation %s %s -> %s %s",
            record.employee_id,
            before["salary"],
            before["currency"],
            new_amount,
            new_currency,
        )
        return True

    async def replace_shifts(
        self, record: EmployeeRecord, shifts: Sequence[ShiftSpec], actor: Actor
    ) -> bool:
        """Replace the weekly schedule wholesale."""
        self._ensure_live(record)
        previous = self.schedule.as_specs(record)
        if list(previous) == list(shifts):
            return False

        self.schedule.replace(record, shifts)
        record.updated_at = self.clock.now()

        await self.audit.append(
            record.employee_id,
            AuditAction.SHIFTS_UPDATED,
            actor,
            before={"shifts": [_shift_dict(s) for s in previous]},
            after={"shifts": [_shift_dict(s) for s in shifts]},
        )
        return True

    async def update_fields(
        self,
        record: EmployeeRecord,
        changes: dict[str, Any],
        actor: Actor,
        payroll_started: bool = False,
        documents: Sequence[DocumentSpec] | None = None,
    ) -> bool:
        """Update plain profile fields and, optionally, the document list.

        Only fields whose value actually changes are written and audited.

        Raises:
            PreconditionFailed: If the joining date changes after payroll started
        """
        self._ensure_live(record)
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")

        before: dict[str, Any] = {}
        after: dict[str, Any] = {}
        for field, value in changes.items():
            current = getattr(record, field)
            if current != value:
                before[field] = current
                after[field] = value

        if "date_of_joining" in after:
            if payroll_started:
                raise PreconditionFailed(
                    "Date of joining cannot change once payroll has started"
                )
            joining = after["date_of_joining"]
            if record.date_of_leaving is not None and joining > record.date_of_leaving:
                raise ValidationError.for_field(
                    "date_of_joining", "cannot be after the date of leaving"
                )

        now = self.clock.now()
        if documents is not None:
            current_docs = [(d.doc_type, d.content_ref) for d in record.documents]
            new_docs = [(d.doc_type, d.content_ref) for d in documents]
            if current_docs != new_docs:
                before["documents"] = [_doc_dict(t, r) for t, r in current_docs]
                after["documents"] = [_doc_dict(t, r) for t, r in new_docs]
                record.documents = build_documents(documents, now)

        if not after:
            return False

        for field in PROFILE_FIELDS:
            if field in after:
                setattr(record, field, after[field])
        record.updated_at = now

        await self.audit.append(
            record.employee_id, AuditAction.UPDATED, actor, before=before, after=after
        )
        return True

    async def record_credential_change(self, record: EmployeeRecord, actor: Actor) -> None:
        """Note that the employee's login credentials changed."""
        self._ensure_live(record)
        record.updated_at = self.clock.now()
        await self.audit.append(record.employee_id, AuditAction.CREDENTIALS_CHANGED, actor)

    async def _apply_status(self, record: EmployeeRecord, to_status: str, now: datetime) -> None:
        """Set the status and run its salary side effects."""
        from_status = record.status
        if EmployeeStateMachine.is_termination(from_status, to_status):
            await self.salary.close_open_period(record.employee_id, now)
            record.terminated_on = record.date_of_leaving or now.date()
        elif EmployeeStateMachine.is_reinstatement(from_status, to_status):
            record.terminated_on = None
            if await self.salary.current_period(record.employee_id) is None:
                await self.salary.open_period(
                    record.employee_id,
                    record.salary,
                    record.currency,
                    now,
                    "reinstated",
                )
        record.status = to_status

    @staticmethod
    def _ensure_live(record: EmployeeRecord) -> None:
        if record.is_deleted:
            logger.warning("Rejected change to deleted employee %s", record.employee_id)
            raise PreconditionFailed(
                f"Employee {record.employee_id} is deleted; restore it first"
            )


def build_documents(documents: Sequence[DocumentSpec], now: datetime) -> list[EmployeeDocument]:
    """Create document rows from caller supplied references."""
    return [
        EmployeeDocument(
            doc_type=doc.doc_type,
            content_ref=doc.content_ref,
            uploaded_at=doc.uploaded_at or now,
        )
        for doc in documents
    ]


def _shift_dict(shift: ShiftSpec) -> dict[str, Any]:
    return {
        "start_time": shift.start_time.strftime("%H:%M"),
        "end_time": shift.end_time.strftime("%H:%M"),
        "days": list(shift.days),
    }


def _doc_dict(doc_type: str, content_ref: str) -> dict[str, str]:
    return {"type": doc_type, "content_ref": content_ref}
