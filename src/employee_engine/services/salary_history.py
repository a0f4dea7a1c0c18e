"""Salary history ledger - non-overlapping, time-ordered salary periods."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employee_engine.errors import ConflictError, InvariantViolation
from employee_engine.models import SalaryPeriod

# Shortest closed period; the database stores microsecond precision
_MIN_PERIOD = timedelta(microseconds=1)


def ensure_non_overlapping(periods: Iterable[SalaryPeriod]) -> None:
    """Check the invariants of one employee's salary history.

    - every closed period ends strictly after it starts
    - at most one period is open
    - no two [effective_from, effective_to) ranges overlap

    Raises InvariantViolation on the first problem found.
    """
    ordered = sorted(periods, key=lambda p: p.effective_from)
    open_count = 0
    previous: SalaryPeriod | None = None

    for period in ordered:
        if period.effective_to is None:
            open_count += 1
        elif period.effective_to <= period.effective_from:
            raise InvariantViolation(
                f"Salary period {period.period_id} ends before it starts"
            )

        if previous is not None:
            # Only the last period in time order may be open
            if previous.effective_to is None or previous.effective_to > period.effective_from:
                raise InvariantViolation(
                    f"Salary periods {previous.period_id} and {period.period_id} overlap"
                )
        previous = period

    if open_count > 1:
        raise InvariantViolation(f"{open_count} open salary periods")


class SalaryHistoryLedger:
    """Maintains effective-dated salary periods per employee.

    Periods are closed, never edited: a compensation change closes the
    current period and opens a new one. EmployeeLifecycle always performs the
    close-then-open pair inside a single transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def open_period(
        self,
        employee_id: UUID,
        amount: Decimal,
        currency: str,
        effective_from: datetime,
        reason: str | None = None,
    ) -> SalaryPeriod:
        """Open a new current period.

        A start earlier than the end of the latest closed period is moved up
        to that end, so a coarse clock still yields contiguous periods.

        Raises:
            ConflictError: If the employee already has an open period
        """
        existing = await self.current_period(employee_id)
        if existing is not None:
            raise ConflictError(
                f"Employee {employee_id} already has an open salary period "
                f"from {existing.effective_from.isoformat()}"
            )

        latest_end = max(
            (p.effective_to for p in await self.history(employee_id) if p.effective_to),
            default=None,
        )
        if latest_end is not None and effective_from < latest_end:
            effective_from = latest_end

        period = SalaryPeriod(
            employee_id=employee_id,
            amount=amount,
            currency=currency,
            effective_from=effective_from,
            effective_to=None,
            reason=reason,
            created_at=effective_from,
        )
        self.session.add(period)
        await self._check_invariants(employee_id, pending=period)
        await self.session.flush()
        return period

    async def close_open_period(
        self, employee_id: UUID, effective_to: datetime
    ) -> SalaryPeriod | None:
        """Close the open period, if any. Returns the closed period.

        The end is clamped to just after the period's start, so a period
        opened and closed at the same clock reading is still a valid range.
        """
        period = await self.current_period(employee_id)
        if period is None:
            return None

        period.effective_to = max(effective_to, period.effective_from + _MIN_PERIOD)
        await self._check_invariants(employee_id)
        await self.session.flush()
        return period

    async def current_period(self, employee_id: UUID) -> SalaryPeriod | None:
        """Get the open period."""
        result = await self.session.execute(
            select(SalaryPeriod).where(
                SalaryPeriod.employee_id == employee_id,
                SalaryPeriod.effective_to.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def period_at(self, employee_id: UUID, moment: datetime) -> SalaryPeriod | None:
        """Get the period effective at a given instant."""
        for period in await self.history(employee_id):
            if period.covers(moment):
                return period
        return None

    async def history(self, employee_id: UUID) -> list[SalaryPeriod]:
        """All periods, oldest first."""
        result = await self.session.execute(
            select(SalaryPeriod)
            .where(SalaryPeriod.employee_id == employee_id)
            .order_by(SalaryPeriod.effective_from, SalaryPeriod.created_at)
        )
        return list(result.scalars().all())

    async def _check_invariants(
        self, employee_id: UUID, pending: SalaryPeriod | None = None
    ) -> None:
        periods = await self.history(employee_id)
        if pending is not None and pending not in periods:
            periods.append(pending)
        ensure_non_overlapping(periods)
