"""Audit trail - append-only, per-employee ordered log.

Every state-changing operation on an employee writes exactly one entry in
the same transaction as the change itself. Entries are never updated or
deleted (the ORM rejects both); corrections are new entries that reference
the corrected one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from employee_engine.collaborators import Clock
from employee_engine.errors import NotFoundError
from employee_engine.models import AuditEntry


class AuditAction(str, Enum):
    """Audit entry actions."""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    SOFT_DELETED = "soft_deleted"
    RESTORED = "restored"
    COMPENSATION_CHANGED = "compensation_changed"
    SHIFTS_UPDATED = "shifts_updated"
    PAYMENT_PERIOD_OPENED = "payment_period_opened"
    PAYMENT_PAID = "payment_paid"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_RETRIED = "payment_retried"
    CREDENTIALS_CHANGED = "credentials_changed"
    CORRECTION = "correction"


class ActorKind(str, Enum):
    """Who performed an action."""

    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Identity recorded on audit entries."""

    actor_id: str
    kind: ActorKind = ActorKind.USER

    @classmethod
    def user(cls, actor_id: str | UUID) -> Actor:
        return cls(actor_id=str(actor_id), kind=ActorKind.USER)


SYSTEM_ACTOR = Actor(actor_id="system", kind=ActorKind.SYSTEM)


@dataclass(frozen=True)
class AuditPage:
    """One page of audit entries, newest first.

    Pass ``next_before_seq`` back to ``list_for`` to continue; it is None on
    the last page.
    """

    entries: list[AuditEntry]
    next_before_seq: int | None


def to_audit_value(value: Any) -> Any:
    """Convert a value into something the JSON diff columns can hold."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: to_audit_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_audit_value(v) for v in value]
    return value


class AuditTrail:
    """Append-only audit log bound to one session."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        correlation_id: UUID | None = None,
    ):
        self.session = session
        self.clock = clock
        # Shared by every entry of one logical operation unless overridden
        self.correlation_id = correlation_id

    async def append(
        self,
        employee_id: UUID,
        action: AuditAction,
        actor: Actor,
        *,
        note: str | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        correlation_id: UUID | None = None,
        references_seq: int | None = None,
    ) -> AuditEntry:
        """Append an entry and flush it so it receives its sequence number."""
        created_at = self.clock.now()
        latest = await self.latest(employee_id)
        if latest is not None and latest.created_at > created_at:
            # Clock went backwards; keep the trail's timestamps monotonic
            created_at = latest.created_at

        entry = AuditEntry(
            employee_id=employee_id,
            action=AuditAction(action).value,
            actor_id=actor.actor_id,
            actor_kind=ActorKind(actor.kind).value,
            note=note,
            before_json=to_audit_value(before) if before is not None else None,
            after_json=to_audit_value(after) if after is not None else None,
            correlation_id=correlation_id or self.correlation_id,
            references_seq=references_seq,
            created_at=created_at,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def append_correction(
        self,
        employee_id: UUID,
        references_seq: int,
        note: str,
        actor: Actor,
    ) -> AuditEntry:
        """Record a correction to an earlier entry without touching it."""
        original = await self.get(employee_id, references_seq)
        if original is None:
            raise NotFoundError("Audit entry", references_seq)

        return await self.append(
            employee_id,
            AuditAction.CORRECTION,
            actor,
            note=note,
            correlation_id=original.correlation_id,
            references_seq=original.seq,
        )

    async def get(self, employee_id: UUID, seq: int) -> AuditEntry | None:
        """Get one entry of an employee's trail."""
        result = await self.session.execute(
            select(AuditEntry).where(
                AuditEntry.employee_id == employee_id,
                AuditEntry.seq == seq,
            )
        )
        return result.scalar_one_or_none()

    async def latest(self, employee_id: UUID) -> AuditEntry | None:
        """Get the most recent entry for an employee."""
        result = await self.session.execute(
            select(AuditEntry)
            .where(AuditEntry.employee_id == employee_id)
            .order_by(AuditEntry.seq.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for(
        self,
        employee_id: UUID,
        limit: int,
        before_seq: int | None = None,
    ) -> AuditPage:
        """List entries newest first, starting below ``before_seq``."""
        if limit < 1:
            raise ValueError("limit must be at least 1")

        query = select(AuditEntry).where(AuditEntry.employee_id == employee_id)
        if before_seq is not None:
            query = query.where(AuditEntry.seq < before_seq)

        # Fetch one extra row to know whether another page exists
        result = await self.session.execute(
            query.order_by(AuditEntry.seq.desc()).limit(limit + 1)
        )
        rows = list(result.scalars().all())
        entries = rows[:limit]
        next_before_seq = entries[-1].seq if len(rows) > limit else None
        return AuditPage(entries=entries, next_before_seq=next_before_seq)

    async def recent(self, employee_id: UUID, limit: int) -> list[AuditEntry]:
        """Most recent entries, newest first."""
        if limit < 1:
            return []
        page = await self.list_for(employee_id, limit)
        return page.entries

    async def count_for(self, employee_id: UUID, action: AuditAction | None = None) -> int:
        """Count entries, optionally for a single action."""
        query = select(func.count()).select_from(AuditEntry).where(
            AuditEntry.employee_id == employee_id
        )
        if action is not None:
            query = query.where(AuditEntry.action == AuditAction(action).value)
        result = await self.session.execute(query)
        return int(result.scalar_one())
