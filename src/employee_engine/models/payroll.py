"""Payroll ledger models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from employee_engine.errors import InvariantViolation
from employee_engine.models.base import Base, TimestampMixin, UTCDateTime


class PaymentAttempt(Base, TimestampMixin):
    """Salary payment for one employee and one pay period.

    Holds the employee id only, with no relationship back to the record.
    """

    __tablename__ = "payment_attempt"

    attempt_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_record.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    attempted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "period_start", name="payment_attempt_one_per_period"
        ),
        CheckConstraint(
            "status IN ('pending', 'paid', 'failed')",
            name="payment_attempt_status_check",
        ),
        CheckConstraint("amount > 0", name="payment_attempt_amount_check"),
        CheckConstraint(
            "due_date >= period_start",
            name="payment_attempt_due_date_check",
        ),
        CheckConstraint(
            "status = 'failed' OR failure_reason IS NULL",
            name="payment_attempt_failure_reason_check",
        ),
    )


@event.listens_for(PaymentAttempt, "before_delete")
def _reject_payment_delete(mapper: Any, connection: Any, target: PaymentAttempt) -> None:
    raise InvariantViolation(f"Payment attempt {target.attempt_id} is a financial record")
