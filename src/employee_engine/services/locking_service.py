"""Per-employee write serialization."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from employee_engine.errors import ConflictError

logger = logging.getLogger(__name__)


class EmployeeLockRegistry:
    """Registry of in-process locks, one per employee.

    Guarantees at most one in-flight mutation per employee inside this
    process. Different employees never contend. Cross-process writers are
    caught by the advisory lock and the record version column.
    """

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._waiters: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, employee_id: UUID) -> AsyncIterator[None]:
        """Hold the employee's lock for the duration of the block.

        Raises ConflictError if the lock is not acquired within the timeout.
        """
        lock = self._locks.get(employee_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[employee_id] = lock
        self._waiters[employee_id] = self._waiters.get(employee_id, 0) + 1

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Timed out after %.1fs waiting for employee %s",
                    self.timeout_seconds,
                    employee_id,
                )
                raise ConflictError(
                    f"Employee {employee_id} is busy with another operation; retry later"
                ) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_waiter(employee_id)

    def is_locked(self, employee_id: UUID) -> bool:
        """Check if a writer currently holds the employee's lock."""
        lock = self._locks.get(employee_id)
        return lock is not None and lock.locked()

    def _release_waiter(self, employee_id: UUID) -> None:
        """Drop the lock once nobody holds or awaits it."""
        remaining = self._waiters.get(employee_id, 1) - 1
        if remaining > 0:
            self._waiters[employee_id] = remaining
            return
        self._waiters.pop(employee_id, None)
        self._locks.pop(employee_id, None)
