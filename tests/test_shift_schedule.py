"""Tests for the weekly shift schedule."""

from datetime import time

import pytest

from employee_engine.errors import ValidationError
from employee_engine.models import EmployeeRecord
from employee_engine.services.shift_schedule import ShiftSchedule, ShiftSpec, sort_days, validate_shift


def shift(start: str, end: str, *days: str) -> ShiftSpec:
    return ShiftSpec(
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        days=days,
    )


class TestValidateShift:
    """Basic time-range sanity."""

    def test_valid_shift(self):
        validate_shift(shift("09:00", "17:00", "Mon", "Tue"))

    @pytest.mark.parametrize(
        "start,end",
        [("17:00", "09:00"), ("09:00", "09:00")],
    )
    def test_start_must_precede_end(self, start, end):
        with pytest.raises(ValidationError) as exc_info:
            validate_shift(shift(start, end, "Mon"), index=2)
        assert exc_info.value.errors[0]["field"] == "shifts[2]"

    def test_days_required(self):
        with pytest.raises(ValidationError):
            validate_shift(shift("09:00", "17:00"))

    def test_unknown_day(self):
        with pytest.raises(ValidationError, match="unknown weekdays"):
            validate_shift(shift("09:00", "17:00", "Monday"))

    def test_duplicate_day(self):
        with pytest.raises(ValidationError):
            validate_shift(shift("09:00", "17:00", "Mon", "Mon"))


def test_sort_days():
    assert sort_days(["Sun", "Mon", "Wed"]) == ["Mon", "Wed", "Sun"]


class TestShiftSchedule:
    """Wholesale replacement on a record."""

    def test_replace_orders_days_and_positions(self):
        record = EmployeeRecord(shifts=[])
        schedule = ShiftSchedule()

        definitions = schedule.replace(
            record,
            [shift("09:00", "13:00", "Wed", "Mon"), shift("14:00", "18:00", "Sat")],
        )

        assert [d.position for d in definitions] == [0, 1]
        assert definitions[0].days == ["Mon", "Wed"]
        assert record.shifts == definitions

    def test_replace_with_empty_list(self):
        record = EmployeeRecord(shifts=[])
        schedule = ShiftSchedule()
        schedule.replace(record, [shift("09:00", "17:00", "Mon")])

        schedule.replace(record, [])

        assert record.shifts == []

    def test_invalid_shift_leaves_record_untouched(self):
        record = EmployeeRecord(shifts=[])
        schedule = ShiftSchedule()
        schedule.replace(record, [shift("09:00", "17:00", "Mon")])

        with pytest.raises(ValidationError):
            schedule.replace(
                record,
                [shift("08:00", "12:00", "Tue"), shift("12:00", "10:00", "Wed")],
            )

        assert len(record.shifts) == 1
        assert record.shifts[0].days == ["Mon"]

    def test_summary(self):
        record = EmployeeRecord(shifts=[])
        schedule = ShiftSchedule()
        schedule.replace(
            record,
            [
                shift("09:00", "17:00", "Mon", "Tue", "Wed", "Thu", "Fri"),
                shift("10:00", "14:00", "Sat", "Mon"),
            ],
        )

        assert schedule.summary(record) == "Mon-Fri 09:00-17:00; Mon,Sat 10:00-14:00"

    def test_as_specs_round_trip(self):
        record = EmployeeRecord(shifts=[])
        schedule = ShiftSchedule()
        specs = [shift("09:00", "17:00", "Mon", "Fri")]
        schedule.replace(record, specs)

        assert schedule.as_specs(record) == specs
