"""Salary history models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    event,
    inspect,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from employee_engine.errors import InvariantViolation
from employee_engine.models.base import Base, TimestampMixin, UTCDateTime


class SalaryPeriod(Base, TimestampMixin):
    """Effective salary over the half-open range [effective_from, effective_to)."""

    __tablename__ = "salary_period"

    period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_record.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    effective_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    effective_to: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="salary_period_amount_check"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to > effective_from",
            name="salary_period_range_check",
        ),
        # At most one open period per employee
        Index(
            "salary_period_one_open",
            "employee_id",
            unique=True,
            postgresql_where=text("effective_to IS NULL"),
            sqlite_where=text("effective_to IS NULL"),
        ),
        Index("salary_period_employee_idx", "employee_id", "effective_from"),
    )

    @property
    def is_open(self) -> bool:
        """Check if this is the current, still effective period."""
        return self.effective_to is None

    def covers(self, moment: datetime) -> bool:
        """Check if the period is effective at a given instant."""
        if self.effective_from > moment:
            return False
        if self.effective_to is not None and self.effective_to <= moment:
            return False
        return True


_FROZEN_ATTRIBUTES = ("employee_id", "amount", "currency", "effective_from", "reason")


@event.listens_for(SalaryPeriod, "before_update")
def _guard_salary_period_update(mapper: Any, connection: Any, target: SalaryPeriod) -> None:
    """Only closing an open period is allowed; closed periods never change."""
    state = inspect(target)
    for attr in _FROZEN_ATTRIBUTES:
        if state.attrs[attr].history.has_changes():
            raise InvariantViolation(
                f"Salary period {target.period_id}: '{attr}' cannot be modified"
            )
    history = state.attrs.effective_to.history
    previous = history.deleted[0] if history.deleted else None
    if previous is not None:
        raise InvariantViolation(f"Salary period {target.period_id} is closed")


@event.listens_for(SalaryPeriod, "before_delete")
def _reject_salary_period_delete(mapper: Any, connection: Any, target: SalaryPeriod) -> None:
    raise InvariantViolation(f"Salary period {target.period_id} cannot be deleted")
