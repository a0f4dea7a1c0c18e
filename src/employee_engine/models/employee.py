"""Employee record, document and shift models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from employee_engine.models.base import Base, JSONType, TimestampMixin, UTCDateTime


class EmployeeRecord(Base, TimestampMixin):
    """Employee record.

    The record plus its documents, shifts, salary periods, audit entries and
    payment attempts form one consistency boundary. ``version`` is bumped on
    every write to that boundary so concurrent writers from other processes
    fail instead of overwriting each other.
    """

    __tablename__ = "employee_record"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    emergency_contact: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    employment_type: Mapped[str] = mapped_column(String, nullable=False)
    payment_mode: Mapped[str] = mapped_column(String, nullable=False, default="manual")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    date_of_joining: Mapped[date] = mapped_column(Date, nullable=False)
    date_of_leaving: Mapped[date | None] = mapped_column(Date, nullable=True)
    terminated_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'on_leave', 'suspended', 'terminated')",
            name="employee_record_status_check",
        ),
        CheckConstraint(
            "employment_type IN ('full_time', 'part_time', 'contract', 'intern')",
            name="employee_record_employment_type_check",
        ),
        CheckConstraint(
            "payment_mode IN ('auto', 'manual')",
            name="employee_record_payment_mode_check",
        ),
        CheckConstraint("salary >= 0", name="employee_record_salary_check"),
        CheckConstraint(
            "date_of_leaving IS NULL OR status IN ('suspended', 'terminated')",
            name="employee_record_leaving_status_check",
        ),
        CheckConstraint(
            "date_of_leaving IS NULL OR date_of_leaving >= date_of_joining",
            name="employee_record_dates_check",
        ),
        Index("employee_record_status_idx", "status", "is_deleted"),
    )

    # Relationships (loaded eagerly; async sessions cannot lazy load)
    documents: Mapped[list[EmployeeDocument]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeeDocument.uploaded_at",
        lazy="selectin",
    )
    shifts: Mapped[list[ShiftDefinition]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="ShiftDefinition.position",
        lazy="selectin",
    )

    def termination_effective_date(self) -> date | None:
        """Date after which no payroll obligation exists, if terminated."""
        if self.status != "terminated":
            return None
        return self.date_of_leaving or self.terminated_on


class EmployeeDocument(Base):
    """Reference to a document held by the external document store."""

    __tablename__ = "employee_document"

    document_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_record.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    doc_type: Mapped[str] = mapped_column(String, nullable=False)
    content_ref: Mapped[str] = mapped_column(String, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    employee: Mapped[EmployeeRecord] = relationship(back_populates="documents")


class ShiftDefinition(Base):
    """Recurring weekly shift."""

    __tablename__ = "shift_definition"

    shift_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_record.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    days: Mapped[list[str]] = mapped_column(JSONType, nullable=False)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="shift_definition_times_check"),
    )

    employee: Mapped[EmployeeRecord] = relationship(back_populates="shifts")
