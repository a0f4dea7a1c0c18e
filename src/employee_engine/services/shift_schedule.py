"""Weekly shift schedule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Sequence

from employee_engine.errors import ValidationError
from employee_engine.models import EmployeeRecord, ShiftDefinition

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class ShiftSpec:
    """A shift as requested by a caller, before it is attached to a record."""

    start_time: time
    end_time: time
    days: tuple[str, ...]


def validate_shift(shift: ShiftSpec, index: int = 0) -> None:
    """Basic sanity checks for one shift definition."""
    field = f"shifts[{index}]"
    if shift.start_time >= shift.end_time:
        raise ValidationError.for_field(field, "start_time must be before end_time")
    if not shift.days:
        raise ValidationError.for_field(field, "at least one weekday is required")
    unknown = [d for d in shift.days if d not in WEEKDAYS]
    if unknown:
        raise ValidationError.for_field(field, f"unknown weekdays {unknown}")
    if len(set(shift.days)) != len(shift.days):
        raise ValidationError.for_field(field, "weekdays must not repeat")


def sort_days(days: Sequence[str]) -> list[str]:
    """Order weekday labels Monday first."""
    return sorted(days, key=WEEKDAYS.index)


class ShiftSchedule:
    """Holds an employee's recurring weekly shifts.

    Purely data: the schedule is replaced wholesale on every edit and has no
    lifecycle beyond the parent record's.
    """

    def replace(self, record: EmployeeRecord, shifts: Sequence[ShiftSpec]) -> list[ShiftDefinition]:
        """Replace the record's shifts. Validates everything before touching the record."""
        for index, shift in enumerate(shifts):
            validate_shift(shift, index)

        definitions = [
            ShiftDefinition(
                position=position,
                start_time=shift.start_time,
                end_time=shift.end_time,
                days=sort_days(shift.days),
            )
            for position, shift in enumerate(shifts)
        ]
        record.shifts = definitions
        return definitions

    @staticmethod
    def as_specs(record: EmployeeRecord) -> list[ShiftSpec]:
        """Current shifts in request form."""
        return [
            ShiftSpec(start_time=s.start_time, end_time=s.end_time, days=tuple(s.days))
            for s in record.shifts
        ]

    @staticmethod
    def summary(record: EmployeeRecord) -> str:
        """Short human readable description, e.g. 'Mon-Fri 09:00-17:00'."""
        parts = []
        for shift in record.shifts:
            days = shift.days
            if len(days) > 2 and _is_consecutive(days):
                label = f"{days[0]}-{days[-1]}"
            else:
                label = ",".join(days)
            parts.append(
                f"{label} {shift.start_time.strftime('%H:%M')}-{shift.end_time.strftime('%H:%M')}"
            )
        return "; ".join(parts)


def _is_consecutive(days: Sequence[str]) -> bool:
    indexes = [WEEKDAYS.index(d) for d in days]
    return indexes == list(range(indexes[0], indexes[0] + len(indexes)))
