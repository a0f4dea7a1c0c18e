"""Audit trail model."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from employee_engine.errors import InvariantViolation
from employee_engine.models.base import Base, JSONType, SequenceType, TimestampMixin


class AuditEntry(Base, TimestampMixin):
    """Audit trail entry.

    Append-only: corrections are new entries pointing at the old one through
    ``references_seq``.
    """

    __tablename__ = "audit_entry"

    seq: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_record.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[str] = mapped_column(String, nullable=False)
    actor_kind: Mapped[str] = mapped_column(String, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    correlation_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    references_seq: Mapped[int | None] = mapped_column(
        SequenceType,
        ForeignKey("audit_entry.seq", ondelete="RESTRICT"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("actor_kind IN ('user', 'system')", name="audit_entry_actor_kind_check"),
        Index("audit_entry_employee_seq_idx", "employee_id", "seq"),
    )


@event.listens_for(AuditEntry, "before_update")
def _reject_audit_update(mapper: Any, connection: Any, target: AuditEntry) -> None:
    raise InvariantViolation(f"Audit entry {target.seq} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _reject_audit_delete(mapper: Any, connection: Any, target: AuditEntry) -> None:
    raise InvariantViolation(f"Audit entry {target.seq} cannot be deleted")
