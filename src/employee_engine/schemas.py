"""Pydantic schemas for engine requests, patches, queries and views."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from employee_engine.services.shift_schedule import ShiftSpec
from employee_engine.services.state_machine import (
    EmployeeStatus,
    EmploymentType,
    PaymentMode,
    PaymentStatus,
)

DayOfWeek = Literal["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

CURRENCY_PATTERN = r"^[A-Z]{3}$"
PHONE_PATTERN = r"^\+?[0-9][0-9 \-]{5,19}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _upper_currency(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


# ============================================================================
# Request building blocks
# ============================================================================


class EmergencyContact(BaseModel):
    """Person to call in an emergency."""

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    phone: str = Field(pattern=PHONE_PATTERN)
    relation: str = Field(min_length=1)


class ContactInfo(BaseModel):
    """Contact details. Phone is required."""

    model_config = ConfigDict(str_strip_whitespace=True)

    phone: str = Field(pattern=PHONE_PATTERN)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    emergency_contact: EmergencyContact | None = None


class ShiftInput(BaseModel):
    """Recurring weekly shift, times in 24h local time."""

    model_config = ConfigDict(from_attributes=True)

    start_time: time
    end_time: time
    days: list[DayOfWeek] = Field(min_length=1)

    @model_validator(mode="after")
    def check_shift(self) -> ShiftInput:
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if len(set(self.days)) != len(self.days):
            raise ValueError("days must not repeat")
        return self

    def to_spec(self) -> ShiftSpec:
        return ShiftSpec(
            start_time=self.start_time,
            end_time=self.end_time,
            days=tuple(self.days),
        )


class DocumentInput(BaseModel):
    """Reference to a document held by the document store."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(min_length=1)
    content_ref: str = Field(min_length=1)
    uploaded_at: datetime | None = None


# ============================================================================
# Employee requests
# ============================================================================


class EmployeeCreate(BaseModel):
    """Input for hiring an employee."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    role: str = Field(min_length=1)
    contact_info: ContactInfo
    employment_type: EmploymentType
    payment_mode: PaymentMode = PaymentMode.MANUAL
    salary: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    currency: str = Field(pattern=CURRENCY_PATTERN)
    date_of_joining: date
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    shifts: list[ShiftInput] = Field(default_factory=list)
    documents: list[DocumentInput] = Field(default_factory=list)
    notes: str | None = None
    avatar_ref: str | None = None

    normalize_currency = field_validator("currency", mode="before")(_upper_currency)

    @field_validator("status")
    @classmethod
    def not_terminated(cls, value: EmployeeStatus) -> EmployeeStatus:
        if value == EmployeeStatus.TERMINATED:
            raise ValueError("a new employee cannot start terminated")
        return value


class EmployeeUpdate(BaseModel):
    """Partial update. Only fields that are explicitly set are applied.

    Setting ``date_of_leaving`` to null clears it. ``expected_version``
    makes the update conditional on the record not having changed since it
    was read.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    expected_version: int | None = None
    name: str | None = Field(default=None, min_length=1)
    role: str | None = Field(default=None, min_length=1)
    contact_info: ContactInfo | None = None
    employment_type: EmploymentType | None = None
    payment_mode: PaymentMode | None = None
    status: EmployeeStatus | None = None
    salary: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)
    salary_reason: str | None = None
    date_of_joining: date | None = None
    date_of_leaving: date | None = None
    shifts: list[ShiftInput] | None = None
    documents: list[DocumentInput] | None = None
    notes: str | None = None
    avatar_ref: str | None = None

    normalize_currency = field_validator("currency", mode="before")(_upper_currency)

    @model_validator(mode="after")
    def check_required_fields(self) -> EmployeeUpdate:
        # These may be omitted but never nulled out
        for field in ("name", "role", "contact_info", "employment_type", "payment_mode",
                      "status", "salary", "currency", "date_of_joining"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class CompensationChange(BaseModel):
    """New salary for an employee."""

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    currency: str = Field(pattern=CURRENCY_PATTERN)
    reason: str | None = None

    normalize_currency = field_validator("currency", mode="before")(_upper_currency)


class PayrollPeriodCreate(BaseModel):
    """Input for opening a pay period."""

    period_start: date
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    currency: str = Field(pattern=CURRENCY_PATTERN)
    due_date: date

    normalize_currency = field_validator("currency", mode="before")(_upper_currency)

    @model_validator(mode="after")
    def check_due_date(self) -> PayrollPeriodCreate:
        if self.due_date < self.period_start:
            raise ValueError("due_date cannot be before period_start")
        return self


class PaymentFailure(BaseModel):
    """Failure report for a payment attempt."""

    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(min_length=1, max_length=500)


# ============================================================================
# Views
# ============================================================================


class SalaryPeriodView(BaseModel):
    """One salary period."""

    model_config = ConfigDict(from_attributes=True)

    period_id: UUID
    amount: Decimal
    currency: str
    effective_from: datetime
    effective_to: datetime | None = None
    reason: str | None = None


class AuditEntryView(BaseModel):
    """One audit entry."""

    seq: int
    employee_id: UUID
    action: str
    actor_id: str
    actor_kind: str
    note: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    correlation_id: UUID | None = None
    references_seq: int | None = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: Any) -> AuditEntryView:
        return cls(
            seq=entry.seq,
            employee_id=entry.employee_id,
            action=entry.action,
            actor_id=entry.actor_id,
            actor_kind=entry.actor_kind,
            note=entry.note,
            before=entry.before_json,
            after=entry.after_json,
            correlation_id=entry.correlation_id,
            references_seq=entry.references_seq,
            created_at=entry.created_at,
        )


class AuditPageView(BaseModel):
    """Page of audit entries, newest first."""

    entries: list[AuditEntryView]
    next_before_seq: int | None = None


class PaymentAttemptView(BaseModel):
    """One payment attempt."""

    model_config = ConfigDict(from_attributes=True)

    attempt_id: UUID
    employee_id: UUID
    period_start: date
    amount: Decimal
    currency: str
    status: PaymentStatus
    due_date: date
    attempted_at: datetime | None = None
    paid_at: datetime | None = None
    failure_reason: str | None = None
    transaction_ref: str | None = None
    paid_by: str | None = None
    retry_count: int


class ShiftView(BaseModel):
    """One weekly shift."""

    model_config = ConfigDict(from_attributes=True)

    start_time: time
    end_time: time
    days: list[str]


class DocumentView(BaseModel):
    """One document reference."""

    model_config = ConfigDict(from_attributes=True)

    doc_type: str
    content_ref: str
    uploaded_at: datetime


class EmployeeView(BaseModel):
    """Fully hydrated employee, returned by every mutating call."""

    employee_id: UUID
    name: str
    role: str
    contact_info: ContactInfo
    status: EmployeeStatus
    employment_type: EmploymentType
    payment_mode: PaymentMode
    salary: Decimal
    currency: str
    date_of_joining: date
    date_of_leaving: date | None = None
    terminated_on: date | None = None
    notes: str | None = None
    avatar_ref: str | None = None
    is_deleted: bool
    deleted_reason: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    version: int
    documents: list[DocumentView]
    shifts: list[ShiftView]
    shift_summary: str
    current_salary_period: SalaryPeriodView | None = None
    current_payment: PaymentAttemptView | None = None
    recent_audit: list[AuditEntryView]


# ============================================================================
# Listing
# ============================================================================


SortKey = Literal[
    "name",
    "email",
    "status",
    "employment_type",
    "salary",
    "date_of_joining",
    "date_of_leaving",
    "created_at",
    "updated_at",
]


class EmployeeFilters(BaseModel):
    """Filter criteria for listing employees."""

    statuses: list[EmployeeStatus] | None = None
    employment_types: list[EmploymentType] | None = None
    payment_statuses: list[PaymentStatus] | None = None
    search: str | None = None
    salary_min: Decimal | None = Field(default=None, ge=0)
    salary_max: Decimal | None = Field(default=None, ge=0)
    joined_after: date | None = None
    joined_before: date | None = None
    left_after: date | None = None
    left_before: date | None = None
    include_deleted: bool = False

    @model_validator(mode="after")
    def check_ranges(self) -> EmployeeFilters:
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_min > self.salary_max
        ):
            raise ValueError("salary_min cannot exceed salary_max")
        return self


class EmployeeQuery(BaseModel):
    """Paging, sorting and filtering for the employee list."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: SortKey = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    filters: EmployeeFilters = Field(default_factory=EmployeeFilters)


class EmployeeListItem(BaseModel):
    """Compact employee row for tables."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    name: str
    email: str | None = None
    phone: str
    status: EmployeeStatus
    employment_type: EmploymentType
    payment_mode: PaymentMode
    salary: Decimal
    currency: str
    date_of_joining: date
    date_of_leaving: date | None = None
    avatar_ref: str | None = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime
    shift_summary: str = ""
    current_payment_status: PaymentStatus | None = None


class EmployeeListResponse(BaseModel):
    """Paginated employee list."""

    docs: list[EmployeeListItem]
    total: int
    page: int
    pages: int
