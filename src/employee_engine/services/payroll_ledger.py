"""Payroll ledger - one payment attempt per employee per pay period.

Status moves:
- pending → paid
- pending → failed
- failed → pending (explicit retry only)

There is no retry loop in here. Retry cadence and backoff belong to the
caller or an external scheduler; this ledger only enforces how many retries
an attempt may have.

Every write appends one audit entry in the same transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employee_engine.collaborators import Clock
from employee_engine.config import EngineConfig
from employee_engine.errors import ConflictError, RetryLimitExceeded
from employee_engine.models import EmployeeRecord, PaymentAttempt
from employee_engine.services.audit_trail import Actor, AuditAction, AuditTrail
from employee_engine.services.state_machine import PaymentStateMachine, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    """Result of a retry request.

    ``retried`` is False when the attempt was already pending or paid and the
    request was accepted as a no-op.
    """

    attempt: PaymentAttempt
    retried: bool


def month_bounds(today: date) -> tuple[date, date]:
    """First day of today's month and first day of the next month."""
    start = today.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class PayrollLedger:
    """Tracks payment attempts and their status transitions."""

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditTrail,
        clock: Clock,
        config: EngineConfig | None = None,
    ):
        self.session = session
        self.audit = audit
        self.clock = clock
        self.config = config or EngineConfig()

    async def open_period(
        self,
        record: EmployeeRecord,
        period_start: date,
        amount: Decimal,
        currency: str,
        due_date: date,
        actor: Actor,
    ) -> PaymentAttempt:
        """Create the pending attempt for a pay period.

        Raises:
            ConflictError: If the period already has an attempt, the employee
                was terminated before the period starts, or the record is
                soft-deleted
        """
        if record.is_deleted:
            raise ConflictError(
                f"Employee {record.employee_id} is deleted; no new pay periods"
            )

        terminated_on = record.termination_effective_date()
        if terminated_on is not None and period_start > terminated_on:
            raise ConflictError(
                f"Employee {record.employee_id} was terminated on "
                f"{terminated_on.isoformat()}; no payroll for period "
                f"{period_start.isoformat()}"
            )

        existing = await self.get_for_period(record.employee_id, period_start)
        if existing is not None:
            raise ConflictError(
                f"Payment attempt for employee {record.employee_id} and period "
                f"{period_start.isoformat()} already exists ({existing.attempt_id})"
            )

        now = self.clock.now()
        attempt = PaymentAttempt(
            employee_id=record.employee_id,
            period_start=period_start,
            amount=amount,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            due_date=due_date,
            retry_count=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(attempt)
        await self.session.flush()

        await self.audit.append(
            record.employee_id,
            AuditAction.PAYMENT_PERIOD_OPENED,
            actor,
            after=self._snapshot(attempt),
        )
        logger.info(
            "Opened pay period %s for employee %s (attempt %s)",
            period_start,
            record.employee_id,
            attempt.attempt_id,
        )
        return attempt

    async def mark_paid(
        self,
        attempt: PaymentAttempt,
        attempted_at: datetime,
        actor: Actor,
        transaction_ref: str | None = None,
        paid_by: str | None = None,
    ) -> PaymentAttempt:
        """Settle a pending attempt. A failed attempt must be retried first."""
        PaymentStateMachine.validate_transition(attempt.status, PaymentStatus.PAID.value)

        before = self._snapshot(attempt)
        attempt.status = PaymentStatus.PAID.value
        attempt.attempted_at = attempted_at
        attempt.paid_at = attempted_at
        attempt.transaction_ref = transaction_ref
        attempt.paid_by = paid_by
        attempt.updated_at = self.clock.now()

        await self.audit.append(
            attempt.employee_id,
            AuditAction.PAYMENT_PAID,
            actor,
            before=before,
            after=self._snapshot(attempt),
        )
        logger.info("Payment attempt %s marked paid", attempt.attempt_id)
        return attempt

    async def mark_failed(
        self,
        attempt: PaymentAttempt,
        attempted_at: datetime,
        reason: str,
        actor: Actor,
    ) -> PaymentAttempt:
        """Record a failed pending attempt."""
        PaymentStateMachine.validate_transition(attempt.status, PaymentStatus.FAILED.value)

        before = self._snapshot(attempt)
        attempt.status = PaymentStatus.FAILED.value
        attempt.attempted_at = attempted_at
        attempt.failure_reason = reason
        attempt.updated_at = self.clock.now()

        await self.audit.append(
            attempt.employee_id,
            AuditAction.PAYMENT_FAILED,
            actor,
            note=reason,
            before=before,
            after=self._snapshot(attempt),
        )
        logger.info("Payment attempt %s failed: %s", attempt.attempt_id, reason)
        return attempt

    async def retry(self, attempt: PaymentAttempt, actor: Actor) -> RetryResult:
        """Put a failed attempt back to pending.

        Pending and paid attempts are left untouched and reported as a
        successful no-op, so repeated clicks on a retry button are harmless.

        Raises:
            RetryLimitExceeded: If the attempt already used all its retries
        """
        if not PaymentStateMachine.is_retryable(attempt.status):
            logger.debug(
                "Retry ignored for attempt %s in status %s",
                attempt.attempt_id,
                attempt.status,
            )
            return RetryResult(attempt=attempt, retried=False)

        if attempt.retry_count >= self.config.max_payment_retries:
            raise RetryLimitExceeded(
                attempt.attempt_id, attempt.retry_count, self.config.max_payment_retries
            )

        PaymentStateMachine.validate_transition(attempt.status, PaymentStatus.PENDING.value)

        before = self._snapshot(attempt)
        attempt.status = PaymentStatus.PENDING.value
        attempt.failure_reason = None
        attempt.retry_count += 1
        attempt.updated_at = self.clock.now()

        await self.audit.append(
            attempt.employee_id,
            AuditAction.PAYMENT_RETRIED,
            actor,
            before=before,
            after=self._snapshot(attempt),
        )
        logger.info(
            "Payment attempt %s queued for retry %d/%d",
            attempt.attempt_id,
            attempt.retry_count,
            self.config.max_payment_retries,
        )
        return RetryResult(attempt=attempt, retried=True)

    async def get(self, attempt_id: UUID) -> PaymentAttempt | None:
        """Get an attempt by id."""
        result = await self.session.execute(
            select(PaymentAttempt).where(PaymentAttempt.attempt_id == attempt_id)
        )
        return result.scalar_one_or_none()

    async def get_for_period(self, employee_id: UUID, period_start: date) -> PaymentAttempt | None:
        """Get the attempt for an employee's pay period."""
        result = await self.session.execute(
            select(PaymentAttempt).where(
                PaymentAttempt.employee_id == employee_id,
                PaymentAttempt.period_start == period_start,
            )
        )
        return result.scalar_one_or_none()

    async def current_attempt(self, employee_id: UUID, today: date) -> PaymentAttempt | None:
        """Attempt for the pay period starting in today's month (latest if several)."""
        start, end = month_bounds(today)
        result = await self.session.execute(
            select(PaymentAttempt)
            .where(
                PaymentAttempt.employee_id == employee_id,
                PaymentAttempt.period_start >= start,
                PaymentAttempt.period_start < end,
            )
            .order_by(PaymentAttempt.period_start.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def history(self, employee_id: UUID) -> list[PaymentAttempt]:
        """All attempts of an employee, oldest period first."""
        result = await self.session.execute(
            select(PaymentAttempt)
            .where(PaymentAttempt.employee_id == employee_id)
            .order_by(PaymentAttempt.period_start)
        )
        return list(result.scalars().all())

    async def has_payroll(self, employee_id: UUID) -> bool:
        """Check if payroll has started for an employee."""
        result = await self.session.execute(
            select(PaymentAttempt.attempt_id)
            .where(PaymentAttempt.employee_id == employee_id)
            .limit(1)
        )
        return result.first() is not None

    @staticmethod
    def _snapshot(attempt: PaymentAttempt) -> dict[str, object]:
        return {
            "attempt_id": attempt.attempt_id,
            "period_start": attempt.period_start,
            "amount": attempt.amount,
            "currency": attempt.currency,
            "status": attempt.status,
            "failure_reason": attempt.failure_reason,
            "retry_count": attempt.retry_count,
        }
