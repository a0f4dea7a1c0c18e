"""Boundary collaborators consumed by the engine.

The engine never talks to the outside world directly. It reads time from a
Clock, checks document references against a DocumentStore and hands
notifications to a NotificationSender. All three are injected so tests can
replace them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

logger = logging.getLogger(__name__)


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@runtime_checkable
class NotificationSender(Protocol):
    """Fire-and-forget notification channel (email, SMS, ...)."""

    async def send(
        self,
        kind: str,
        employee_id: UUID,
        recipient: str | None,
        context: dict[str, Any],
    ) -> None:
        """Deliver a notification. May raise; callers log and continue."""
        ...


class LoggingNotificationSender:
    """Default sender that only logs what would have been sent."""

    async def send(
        self,
        kind: str,
        employee_id: UUID,
        recipient: str | None,
        context: dict[str, Any],
    ) -> None:
        logger.info(
            "Notification %s for employee %s to %s",
            kind,
            employee_id,
            recipient or "<no recipient>",
        )


@runtime_checkable
class DocumentStore(Protocol):
    """Store holding avatar and document content, keyed by opaque reference."""

    async def exists(self, content_ref: str) -> bool:
        """Return True if content is stored under the reference."""
        ...
