"""Employee service - the single entry point for employee record operations.

Each mutating call is one unit of work:
1. Hold the employee's in-process lock
2. Open a transaction (plus an advisory lock on PostgreSQL)
3. Load the record, apply the change through the domain components
4. Build the returned view inside the same transaction
5. Commit, then fire any notifications

Nothing is observable unless step 5 commits. Conflicting writers from other
processes are detected through the record's version column.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Sequence
from uuid import UUID, uuid4

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from employee_engine.collaborators import (
    Clock,
    DocumentStore,
    LoggingNotificationSender,
    NotificationSender,
    SystemClock,
)
from employee_engine.config import EngineConfig
from employee_engine.database import acquire_employee_xact_lock
from employee_engine.errors import ConflictError, NotFoundError, StorageError, ValidationError
from employee_engine.models import EmployeeRecord, PaymentAttempt
from employee_engine.schemas import (
    AuditEntryView,
    AuditPageView,
    CompensationChange,
    ContactInfo,
    DocumentInput,
    DocumentView,
    EmployeeCreate,
    EmployeeListItem,
    EmployeeListResponse,
    EmployeeQuery,
    EmployeeUpdate,
    EmployeeView,
    PaymentAttemptView,
    PaymentFailure,
    PayrollPeriodCreate,
    SalaryPeriodView,
    ShiftInput,
    ShiftView,
)
from employee_engine.services.audit_trail import SYSTEM_ACTOR, Actor, AuditAction, AuditTrail
from employee_engine.services.lifecycle import DocumentSpec, EmployeeLifecycle, build_documents
from employee_engine.services.locking_service import EmployeeLockRegistry
from employee_engine.services.payroll_ledger import PayrollLedger, month_bounds
from employee_engine.services.salary_history import SalaryHistoryLedger
from employee_engine.services.shift_schedule import ShiftSchedule
from employee_engine.services.state_machine import (
    EmployeeStateMachine,
    EmployeeStatus,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

_SHIFT_LIST = TypeAdapter(list[ShiftInput])


def _validation_error(exc: PydanticValidationError) -> ValidationError:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "__root__",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return ValidationError(f"Invalid input: {summary}", errors)


def _validate(schema: Any, data: Any) -> Any:
    """Validate input against a pydantic model or TypeAdapter."""
    try:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(data)
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise _validation_error(exc) from None


def _as_uuid(value: UUID | str, field: str = "employee_id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError.for_field(field, f"'{value}' is not a valid id") from None


def _require_aware(value: datetime, field: str) -> datetime:
    if value.tzinfo is None:
        raise ValidationError.for_field(field, "must be timezone-aware")
    return value


def _document_specs(documents: Iterable[DocumentInput]) -> list[DocumentSpec]:
    return [
        DocumentSpec(doc_type=d.type, content_ref=d.content_ref, uploaded_at=d.uploaded_at)
        for d in documents
    ]


def _contact_fields(contact: ContactInfo) -> dict[str, Any]:
    emergency = contact.emergency_contact
    return {
        "phone": contact.phone,
        "email": contact.email,
        "emergency_contact": emergency.model_dump() if emergency is not None else None,
    }


def _record_snapshot(record: EmployeeRecord) -> dict[str, Any]:
    return {
        "name": record.name,
        "role": record.role,
        "phone": record.phone,
        "email": record.email,
        "status": record.status,
        "employment_type": record.employment_type,
        "payment_mode": record.payment_mode,
        "salary": record.salary,
        "currency": record.currency,
        "date_of_joining": record.date_of_joining,
        "shifts": len(record.shifts),
        "documents": len(record.documents),
    }


@dataclass
class _UnitOfWork:
    """Domain components bound to one transaction."""

    session: AsyncSession
    audit: AuditTrail
    salary: SalaryHistoryLedger
    lifecycle: EmployeeLifecycle
    payroll: PayrollLedger


class EmployeeService:
    """Orchestrates employee lifecycle, salary history, payroll and audit.

    Args:
        session_factory: Factory for async sessions, one per unit of work
        clock: Time source (defaults to the system clock)
        notifier: Fire-and-forget notification channel
        document_store: When given, document and avatar references are
            checked against it before they are stored
        config: Policy configuration
        locks: Shared lock registry. Services that write the same database
            inside one process must share a registry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        notifier: NotificationSender | None = None,
        document_store: DocumentStore | None = None,
        config: EngineConfig | None = None,
        locks: EmployeeLockRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.notifier = notifier or LoggingNotificationSender()
        self.document_store = document_store
        self.config = config or EngineConfig()
        self.locks = locks or EmployeeLockRegistry(self.config.lock_timeout_seconds)
        self.schedule = ShiftSchedule()

    # ------------------------------------------------------------------
    # Employee records
    # ------------------------------------------------------------------

    async def create_employee(
        self, data: EmployeeCreate | dict[str, Any], actor: Actor = SYSTEM_ACTOR
    ) -> EmployeeView:
        """Hire an employee and open their first salary period.

        Raises:
            ValidationError: If the input is malformed or references unknown
                documents
        """
        payload: EmployeeCreate = _validate(EmployeeCreate, data)
        await self._check_documents(payload.documents, payload.avatar_ref)

        employee_id = uuid4()
        async with self._unit_of_work(employee_id, load=False) as work:
            now = self.clock.now()
            record = EmployeeRecord(
                employee_id=employee_id,
                name=payload.name,
                role=payload.role,
                status=payload.status.value,
                employment_type=payload.employment_type.value,
                payment_mode=payload.payment_mode.value,
                salary=payload.salary,
                currency=payload.currency,
                date_of_joining=payload.date_of_joining,
                notes=payload.notes,
                avatar_ref=payload.avatar_ref,
                is_deleted=False,
                created_at=now,
                updated_at=now,
                documents=build_documents(_document_specs(payload.documents), now),
                shifts=[],
                **_contact_fields(payload.contact_info),
            )
            self.schedule.replace(record, [s.to_spec() for s in payload.shifts])
            work.session.add(record)
            await work.session.flush()

            await work.salary.open_period(
                employee_id, payload.salary, payload.currency, now, "hired"
            )
            await work.audit.append(
                employee_id, AuditAction.CREATED, actor, after=_record_snapshot(record)
            )
            view = await self._build_view(work, record)

        logger.info("Created employee %s (%s)", employee_id, payload.role)
        await self._notify(
            "welcome",
            employee_id,
            view.contact_info.email,
            {"name": view.name, "role": view.role},
        )
        return view

    async def get_employee(self, employee_id: UUID | str) -> EmployeeView:
        """Get the hydrated view of an employee, deleted or not."""
        employee_id = _as_uuid(employee_id)
        async with self._transaction() as session:
            work = self._bind(session)
            record = await self._load_record(session, employee_id)
            return await self._build_view(work, record)

    async def update_employee(
        self,
        employee_id: UUID | str,
        patch: EmployeeUpdate | dict[str, Any],
        actor: Actor = SYSTEM_ACTOR,
    ) -> EmployeeView:
        """Apply a partial update.

        Profile fields go first, then the leaving date and status, then
        compensation, then shifts. When the requested status may carry a
        leaving date, the status is applied before the date so the record
        is not terminated on the way. Reinstating a terminated record moves
        compensation ahead of the status change. All entries share one
        correlation id.

        Raises:
            ConflictError: If ``expected_version`` no longer matches
        """
        employee_id = _as_uuid(employee_id)
        payload: EmployeeUpdate = _validate(EmployeeUpdate, patch)
        fields = payload.model_fields_set
        if payload.documents is not None or "avatar_ref" in fields:
            await self._check_documents(payload.documents or [], payload.avatar_ref)

        async with self._unit_of_work(employee_id, correlation_id=uuid4()) as (work, record):
            if payload.expected_version is not None and payload.expected_version != record.version:
                raise ConflictError(
                    f"Employee {employee_id} is at version {record.version}, "
                    f"not {payload.expected_version}; re-read and retry"
                )

            changes = self._profile_changes(payload)
            documents = (
                _document_specs(payload.documents) if payload.documents is not None else None
            )
            if changes or documents is not None:
                payroll_started = (
                    "date_of_joining" in changes
                    and await work.payroll.has_payroll(employee_id)
                )
                await work.lifecycle.update_fields(
                    record, changes, actor, payroll_started=payroll_started, documents=documents
                )

            # A terminated record has no open salary period, so compensation
            # goes first and reinstatement opens the period at the new salary
            reinstating = (
                record.status == EmployeeStatus.TERMINATED
                and payload.status is not None
                and payload.status != EmployeeStatus.TERMINATED
            )
            if reinstating:
                await self._apply_compensation(work, record, payload, actor)

            status_first = payload.status is not None and EmployeeStateMachine.allows_leaving_date(
                payload.status.value
            )
            if status_first:
                await work.lifecycle.set_status(record, payload.status, actor)
            if "date_of_leaving" in fields:
                await work.lifecycle.set_date_of_leaving(record, payload.date_of_leaving, actor)
            if payload.status is not None and not status_first:
                await work.lifecycle.set_status(record, payload.status, actor)

            if not reinstating:
                await self._apply_compensation(work, record, payload, actor)

            if payload.shifts is not None:
                await work.lifecycle.replace_shifts(
                    record, [s.to_spec() for s in payload.shifts], actor
                )

            return await self._build_view(work, record)

    async def set_status(
        self,
        employee_id: UUID | str,
        status: EmployeeStatus | str,
        actor: Actor,
        note: str | None = None,
    ) -> EmployeeView:
        """Change an employee's status.

        Raises:
            PreconditionFailed: If the status conflicts with the leaving date
                or the record is deleted
            NotFoundError: If the employee does not exist
        """
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.set_status(record, status, actor, note=note)
            return await self._build_view(work, record)

    async def set_date_of_leaving(
        self, employee_id: UUID | str, date_of_leaving: date | None, actor: Actor
    ) -> EmployeeView:
        """Set or clear the leaving date, terminating an active record."""
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.set_date_of_leaving(record, date_of_leaving, actor)
            return await self._build_view(work, record)

    async def update_compensation(
        self,
        employee_id: UUID | str,
        amount: Decimal | str | int,
        currency: str,
        reason: str | None,
        actor: Actor,
    ) -> EmployeeView:
        """Change salary, closing the current salary period and opening a new one."""
        change: CompensationChange = _validate(
            CompensationChange, {"amount": amount, "currency": currency, "reason": reason}
        )
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.update_compensation(
                record, change.amount, change.currency, change.reason, actor
            )
            return await self._build_view(work, record)

    async def replace_shifts(
        self,
        employee_id: UUID | str,
        shifts: Sequence[ShiftInput | dict[str, Any]],
        actor: Actor,
    ) -> EmployeeView:
        """Replace the weekly shift schedule."""
        parsed: list[ShiftInput] = _validate(_SHIFT_LIST, list(shifts))
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.replace_shifts(record, [s.to_spec() for s in parsed], actor)
            return await self._build_view(work, record)

    async def soft_delete(self, employee_id: UUID | str, reason: str, actor: Actor) -> EmployeeView:
        """Hide an employee. Deleting a deleted employee succeeds without changes.

        Raises:
            ValidationError: If the reason length is out of bounds
            NotFoundError: If the employee does not exist
        """
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.soft_delete(record, reason, actor)
            return await self._build_view(work, record)

    async def restore(self, employee_id: UUID | str, actor: Actor) -> EmployeeView:
        """Bring back a soft-deleted employee."""
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.restore(record, actor)
            return await self._build_view(work, record)

    async def record_credential_change(self, employee_id: UUID | str, actor: Actor) -> EmployeeView:
        """Audit a login credential change and notify the employee.

        The credentials themselves never pass through the engine.
        """
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            await work.lifecycle.record_credential_change(record, actor)
            view = await self._build_view(work, record)

        await self._notify(
            "credentials_changed",
            view.employee_id,
            view.contact_info.email,
            {"name": view.name, "changed_by": actor.actor_id},
        )
        return view

    async def list_employees(
        self, query: EmployeeQuery | dict[str, Any] | None = None
    ) -> EmployeeListResponse:
        """List employees with filtering, sorting and pagination."""
        params: EmployeeQuery = _validate(EmployeeQuery, query or {})
        filters = params.filters
        month_start, month_end = month_bounds(self.clock.now().date())

        conditions = []
        if not filters.include_deleted:
            conditions.append(EmployeeRecord.is_deleted.is_(False))
        if filters.statuses:
            conditions.append(EmployeeRecord.status.in_([s.value for s in filters.statuses]))
        if filters.employment_types:
            conditions.append(
                EmployeeRecord.employment_type.in_([t.value for t in filters.employment_types])
            )
        if filters.search and filters.search.strip():
            pattern = f"%{filters.search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(EmployeeRecord.name).like(pattern),
                    func.lower(EmployeeRecord.email).like(pattern),
                    EmployeeRecord.phone.like(pattern),
                )
            )
        if filters.salary_min is not None:
            conditions.append(EmployeeRecord.salary >= filters.salary_min)
        if filters.salary_max is not None:
            conditions.append(EmployeeRecord.salary <= filters.salary_max)
        if filters.joined_after is not None:
            conditions.append(EmployeeRecord.date_of_joining >= filters.joined_after)
        if filters.joined_before is not None:
            conditions.append(EmployeeRecord.date_of_joining <= filters.joined_before)
        if filters.left_after is not None:
            conditions.append(EmployeeRecord.date_of_leaving >= filters.left_after)
        if filters.left_before is not None:
            conditions.append(EmployeeRecord.date_of_leaving <= filters.left_before)
        if filters.payment_statuses:
            paid_in_month = select(PaymentAttempt.employee_id).where(
                PaymentAttempt.period_start >= month_start,
                PaymentAttempt.period_start < month_end,
                PaymentAttempt.status.in_([s.value for s in filters.payment_statuses]),
            )
            conditions.append(EmployeeRecord.employee_id.in_(paid_in_month))

        column = getattr(EmployeeRecord, params.sort_by)
        order = column.asc() if params.sort_order == "asc" else column.desc()

        async with self._transaction() as session:
            total_result = await session.execute(
                select(func.count()).select_from(EmployeeRecord).where(*conditions)
            )
            total = int(total_result.scalar_one())

            result = await session.execute(
                select(EmployeeRecord)
                .where(*conditions)
                .order_by(order, EmployeeRecord.employee_id)
                .offset((params.page - 1) * params.limit)
                .limit(params.limit)
            )
            records = list(result.scalars().all())

            payment_status: dict[UUID, PaymentStatus] = {}
            if records:
                attempts = await session.execute(
                    select(PaymentAttempt)
                    .where(
                        PaymentAttempt.employee_id.in_([r.employee_id for r in records]),
                        PaymentAttempt.period_start >= month_start,
                        PaymentAttempt.period_start < month_end,
                    )
                    .order_by(PaymentAttempt.period_start)
                )
                # Later periods overwrite earlier ones
                for attempt in attempts.scalars():
                    payment_status[attempt.employee_id] = PaymentStatus(attempt.status)

            docs = [
                EmployeeListItem.model_validate(record).model_copy(
                    update={
                        "shift_summary": self.schedule.summary(record),
                        "current_payment_status": payment_status.get(record.employee_id),
                    }
                )
                for record in records
            ]

        pages = (total + params.limit - 1) // params.limit
        return EmployeeListResponse(docs=docs, total=total, page=params.page, pages=pages)

    # ------------------------------------------------------------------
    # Payroll
    # ------------------------------------------------------------------

    async def open_payroll_period(
        self,
        employee_id: UUID | str,
        period_start: date,
        amount: Decimal | str | int,
        currency: str,
        due_date: date,
        actor: Actor = SYSTEM_ACTOR,
    ) -> PaymentAttemptView:
        """Open the pending payment attempt for a pay period.

        Raises:
            ConflictError: If the period already exists, or the employee is
                terminated before it or deleted
        """
        period: PayrollPeriodCreate = _validate(
            PayrollPeriodCreate,
            {
                "period_start": period_start,
                "amount": amount,
                "currency": currency,
                "due_date": due_date,
            },
        )
        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            attempt = await work.payroll.open_period(
                record, period.period_start, period.amount, period.currency, period.due_date, actor
            )
            self._touch(record)
            return PaymentAttemptView.model_validate(attempt)

    async def mark_payment_paid(
        self,
        attempt_id: UUID | str,
        attempted_at: datetime | None = None,
        actor: Actor = SYSTEM_ACTOR,
        transaction_ref: str | None = None,
        paid_by: str | None = None,
    ) -> PaymentAttemptView:
        """Settle a pending payment.

        Raises:
            InvalidTransitionError: If the attempt is not pending
        """
        attempt_id = _as_uuid(attempt_id, "attempt_id")
        at = _require_aware(attempted_at or self.clock.now(), "attempted_at")
        async with self._payment_work(attempt_id) as (work, record, attempt):
            await work.payroll.mark_paid(
                attempt, at, actor, transaction_ref=transaction_ref, paid_by=paid_by
            )
            self._touch(record)
            return PaymentAttemptView.model_validate(attempt)

    async def mark_payment_failed(
        self,
        attempt_id: UUID | str,
        attempted_at: datetime | None,
        reason: str,
        actor: Actor = SYSTEM_ACTOR,
    ) -> PaymentAttemptView:
        """Record a failed payment.

        Raises:
            InvalidTransitionError: If the attempt is not pending
        """
        attempt_id = _as_uuid(attempt_id, "attempt_id")
        failure: PaymentFailure = _validate(PaymentFailure, {"reason": reason})
        at = _require_aware(attempted_at or self.clock.now(), "attempted_at")
        async with self._payment_work(attempt_id) as (work, record, attempt):
            await work.payroll.mark_failed(attempt, at, failure.reason, actor)
            self._touch(record)
            return PaymentAttemptView.model_validate(attempt)

    async def retry_payment(self, attempt_id: UUID | str, actor: Actor) -> PaymentAttemptView:
        """Put a failed payment back to pending.

        Pending and paid attempts are returned unchanged, so duplicate
        requests are harmless.

        Raises:
            RetryLimitExceeded: If the attempt has no retries left
        """
        attempt_id = _as_uuid(attempt_id, "attempt_id")
        async with self._payment_work(attempt_id) as (work, record, attempt):
            result = await work.payroll.retry(attempt, actor)
            if result.retried:
                self._touch(record)
            return PaymentAttemptView.model_validate(result.attempt)

    async def list_payroll(self, employee_id: UUID | str) -> list[PaymentAttemptView]:
        """All payment attempts of an employee, oldest period first."""
        employee_id = _as_uuid(employee_id)
        async with self._transaction() as session:
            work = self._bind(session)
            await self._load_record(session, employee_id)
            attempts = await work.payroll.history(employee_id)
            return [PaymentAttemptView.model_validate(a) for a in attempts]

    # ------------------------------------------------------------------
    # Audit and salary history
    # ------------------------------------------------------------------

    async def list_audit(
        self, employee_id: UUID | str, page_size: int | None = None
    ) -> AsyncIterator[AuditEntryView]:
        """Iterate over the whole audit trail, newest first.

        Pages are fetched lazily, each in its own short transaction, so
        iteration can stop at any point without holding a connection.
        """
        employee_id = _as_uuid(employee_id)
        size = page_size or self.config.audit_page_size
        page = await self.audit_page(employee_id, size)
        while True:
            for entry in page.entries:
                yield entry
            if page.next_before_seq is None:
                return
            page = await self.audit_page(employee_id, size, page.next_before_seq)

    async def audit_page(
        self,
        employee_id: UUID | str,
        limit: int | None = None,
        before_seq: int | None = None,
    ) -> AuditPageView:
        """One page of the audit trail, newest first."""
        employee_id = _as_uuid(employee_id)
        limit = limit or self.config.audit_page_size
        if limit < 1:
            raise ValidationError.for_field("limit", "must be at least 1")

        async with self._transaction() as session:
            work = self._bind(session)
            await self._load_record(session, employee_id)
            page = await work.audit.list_for(employee_id, limit, before_seq)
            return AuditPageView(
                entries=[AuditEntryView.from_entry(e) for e in page.entries],
                next_before_seq=page.next_before_seq,
            )

    async def correct_audit_entry(
        self, employee_id: UUID | str, seq: int, note: str, actor: Actor
    ) -> AuditEntryView:
        """Append a correction that references an earlier entry."""
        if not note or not note.strip():
            raise ValidationError.for_field("note", "a correction needs a note")

        async with self._unit_of_work(_as_uuid(employee_id)) as (work, record):
            entry = await work.audit.append_correction(
                record.employee_id, seq, note.strip(), actor
            )
            self._touch(record)
            return AuditEntryView.from_entry(entry)

    async def list_salary_history(self, employee_id: UUID | str) -> list[SalaryPeriodView]:
        """Salary periods, oldest first."""
        employee_id = _as_uuid(employee_id)
        async with self._transaction() as session:
            work = self._bind(session)
            await self._load_record(session, employee_id)
            periods = await work.salary.history(employee_id)
            return [SalaryPeriodView.model_validate(p) for p in periods]

    # ------------------------------------------------------------------
    # Unit of work plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """One transaction, with storage errors mapped into the engine's taxonomy."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except StaleDataError as exc:
            logger.warning("Concurrent modification detected: %s", exc)
            raise ConflictError(
                "The employee was modified concurrently; re-read and retry"
            ) from exc
        except IntegrityError as exc:
            logger.warning("Integrity violation: %s", exc.orig)
            raise ConflictError(f"Write rejected by the database: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error("Storage failure: %s", exc)
            raise StorageError(str(exc)) from exc

    @asynccontextmanager
    async def _unit_of_work(
        self,
        employee_id: UUID,
        load: bool = True,
        correlation_id: UUID | None = None,
    ) -> AsyncIterator[Any]:
        """Serialize on the employee and run one transaction.

        Yields ``(work, record)``, or just ``work`` when ``load`` is False.
        """
        async with self.locks.hold(employee_id):
            async with self._transaction() as session:
                await acquire_employee_xact_lock(session, employee_id)
                work = self._bind(session, correlation_id)
                if not load:
                    yield work
                    return
                record = await self._load_record(session, employee_id)
                yield work, record

    @asynccontextmanager
    async def _payment_work(self, attempt_id: UUID) -> AsyncIterator[Any]:
        """Unit of work for an attempt, serialized on its owning employee."""
        async with self._transaction() as session:
            attempt = await session.get(PaymentAttempt, attempt_id)
            if attempt is None:
                raise NotFoundError("Payment attempt", attempt_id)
            employee_id = attempt.employee_id

        async with self._unit_of_work(employee_id) as (work, record):
            # Re-read under the lock; the first read may be stale
            attempt = await work.payroll.get(attempt_id)
            if attempt is None:
                raise NotFoundError("Payment attempt", attempt_id)
            yield work, record, attempt

    def _bind(self, session: AsyncSession, correlation_id: UUID | None = None) -> _UnitOfWork:
        audit = AuditTrail(session, self.clock, correlation_id)
        salary = SalaryHistoryLedger(session)
        return _UnitOfWork(
            session=session,
            audit=audit,
            salary=salary,
            lifecycle=EmployeeLifecycle(session, audit, salary, self.clock, self.config),
            payroll=PayrollLedger(session, audit, self.clock, self.config),
        )

    @staticmethod
    async def _load_record(session: AsyncSession, employee_id: UUID) -> EmployeeRecord:
        record = await session.get(EmployeeRecord, employee_id)
        if record is None:
            raise NotFoundError("Employee", employee_id)
        return record

    def _touch(self, record: EmployeeRecord) -> None:
        """Bump the record version for writes to its child collections."""
        record.updated_at = self.clock.now()

    async def _build_view(self, work: _UnitOfWork, record: EmployeeRecord) -> EmployeeView:
        employee_id = record.employee_id
        current_period = await work.salary.current_period(employee_id)
        attempt = await work.payroll.current_attempt(employee_id, self.clock.now().date())
        recent = await work.audit.recent(employee_id, self.config.recent_audit_limit)
        # Flush pending changes so version and server-side state are current
        await work.session.flush()

        return EmployeeView(
            employee_id=employee_id,
            name=record.name,
            role=record.role,
            contact_info=ContactInfo(
                phone=record.phone,
                email=record.email,
                emergency_contact=record.emergency_contact,
            ),
            status=record.status,
            employment_type=record.employment_type,
            payment_mode=record.payment_mode,
            salary=record.salary,
            currency=record.currency,
            date_of_joining=record.date_of_joining,
            date_of_leaving=record.date_of_leaving,
            terminated_on=record.terminated_on,
            notes=record.notes,
            avatar_ref=record.avatar_ref,
            is_deleted=record.is_deleted,
            deleted_reason=record.deleted_reason,
            deleted_at=record.deleted_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
            version=record.version,
            documents=[DocumentView.model_validate(d) for d in record.documents],
            shifts=[ShiftView.model_validate(s) for s in record.shifts],
            shift_summary=self.schedule.summary(record),
            current_salary_period=(
                SalaryPeriodView.model_validate(current_period) if current_period else None
            ),
            current_payment=PaymentAttemptView.model_validate(attempt) if attempt else None,
            recent_audit=[AuditEntryView.from_entry(e) for e in recent],
        )

    def _profile_changes(self, payload: EmployeeUpdate) -> dict[str, Any]:
        fields = payload.model_fields_set
        changes: dict[str, Any] = {}
        for name in ("name", "role", "notes", "avatar_ref", "date_of_joining"):
            if name in fields:
                changes[name] = getattr(payload, name)
        if payload.employment_type is not None:
            changes["employment_type"] = payload.employment_type.value
        if payload.payment_mode is not None:
            changes["payment_mode"] = payload.payment_mode.value
        if payload.contact_info is not None:
            changes.update(_contact_fields(payload.contact_info))
        return changes

    async def _apply_compensation(
        self, work: _UnitOfWork, record: EmployeeRecord, payload: EmployeeUpdate, actor: Actor
    ) -> None:
        if payload.salary is None and payload.currency is None:
            return
        await work.lifecycle.update_compensation(
            record,
            payload.salary if payload.salary is not None else record.salary,
            payload.currency or record.currency,
            payload.salary_reason,
            actor,
        )

    async def _check_documents(
        self, documents: Sequence[DocumentInput], avatar_ref: str | None
    ) -> None:
        """Reject references the document store does not know. Content is never read."""
        if self.document_store is None:
            return

        refs = [(f"documents.{i}.content_ref", d.content_ref) for i, d in enumerate(documents)]
        if avatar_ref:
            refs.append(("avatar_ref", avatar_ref))

        errors = []
        for field, ref in refs:
            if not await self.document_store.exists(ref):
                errors.append({"field": field, "message": f"unknown content reference '{ref}'"})
        if errors:
            raise ValidationError("Unknown document references", errors)

    async def _notify(
        self,
        kind: str,
        employee_id: UUID,
        recipient: str | None,
        context: dict[str, Any],
    ) -> None:
        """Send a notification. Failures are logged, never raised."""
        try:
            await self.notifier.send(kind, employee_id, recipient, context)
        except Exception:
            logger.exception("Failed to send %s notification for employee %s", kind, employee_id)
