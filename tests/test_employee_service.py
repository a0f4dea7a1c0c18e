"""Tests for the employee service: records, lifecycle and audit."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from employee_engine.errors import (
    ConflictError,
    NotFoundError,
    PreconditionFailed,
    ValidationError,
)
from employee_engine.services.employee_service import EmployeeService

from tests.conftest import (
    FakeDocumentStore,
    RecordingNotificationSender,
    SteppingClock,
    employee_payload,
)


async def audit_actions(service, employee_id) -> list[str]:
    """All audit actions, oldest first."""
    entries = [e async for e in service.list_audit(employee_id)]
    return [e.action for e in reversed(entries)]


class TestCreateEmployee:
    """Hiring."""

    async def test_create_returns_hydrated_view(self, service, actor, notifier):
        view = await service.create_employee(employee_payload(), actor)

        assert view.status == "active"
        assert view.salary == Decimal("50000")
        assert view.currency == "BDT"
        assert view.version == 1
        assert view.current_salary_period is not None
        assert view.current_salary_period.amount == Decimal("50000")
        assert view.current_salary_period.effective_to is None
        assert [e.action for e in view.recent_audit] == ["created"]
        assert view.recent_audit[0].actor_id == "admin-1"
        assert view.current_payment is None

        assert notifier.sent[0][0] == "welcome"
        assert notifier.sent[0][1] == view.employee_id
        assert notifier.sent[0][2] == "rahim@example.com"

    async def test_create_with_shifts_and_documents(self, service, actor):
        view = await service.create_employee(
            employee_payload(
                shifts=[{"start_time": "09:00", "end_time": "17:00", "days": ["Fri", "Mon"]}],
                documents=[{"type": "nid", "content_ref": "docs/nid-1"}],
                contact_info={
                    "phone": "+8801712345678",
                    "emergency_contact": {
                        "name": "Ayesha",
                        "phone": "+8801799999999",
                        "relation": "Sister",
                    },
                },
            ),
            actor,
        )

        assert len(view.shifts) == 1
        assert view.shifts[0].days == ["Mon", "Fri"]
        assert view.shift_summary == "Mon,Fri 09:00-17:00"
        assert view.documents[0].doc_type == "nid"
        assert view.documents[0].content_ref == "docs/nid-1"
        assert view.contact_info.email is None
        assert view.contact_info.emergency_contact.relation == "Sister"

        reloaded = await service.get_employee(view.employee_id)
        assert reloaded.shifts[0].days == ["Mon", "Fri"]
        assert reloaded.contact_info.emergency_contact.name == "Ayesha"

    async def test_currency_is_normalized(self, service, actor):
        view = await service.create_employee(employee_payload(currency=" bdt "), actor)
        assert view.currency == "BDT"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"salary": "-1"}, "salary"),
            ({"currency": "TAKA"}, "currency"),
            ({"role": ""}, "role"),
            ({"contact_info": {"email": "a@b.co"}}, "contact_info.phone"),
            ({"employment_type": "volunteer"}, "employment_type"),
            ({"status": "terminated"}, "status"),
        ],
    )
    async def test_invalid_input(self, service, actor, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_employee(employee_payload(**overrides), actor)

        assert field in [e["field"] for e in exc_info.value.errors]

    async def test_missing_field(self, service, actor):
        payload = employee_payload()
        del payload["currency"]

        with pytest.raises(ValidationError):
            await service.create_employee(payload, actor)

    async def test_invalid_shift(self, service, actor):
        with pytest.raises(ValidationError):
            await service.create_employee(
                employee_payload(
                    shifts=[{"start_time": "18:00", "end_time": "09:00", "days": ["Mon"]}]
                ),
                actor,
            )

    async def test_notification_failure_is_logged(self, session_factory, clock, actor, caplog):
        service = EmployeeService(
            session_factory, clock=clock, notifier=RecordingNotificationSender(fail=True)
        )

        with caplog.at_level(logging.ERROR):
            view = await service.create_employee(employee_payload(), actor)

        assert view.status == "active"
        assert "Failed to send welcome notification" in caplog.text

    async def test_unknown_document_reference(self, session_factory, clock, actor):
        store = FakeDocumentStore({"docs/known"})
        service = EmployeeService(session_factory, clock=clock, document_store=store)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_employee(
                employee_payload(
                    documents=[
                        {"type": "cv", "content_ref": "docs/known"},
                        {"type": "nid", "content_ref": "docs/missing"},
                    ]
                ),
                actor,
            )

        assert exc_info.value.errors == [
            {
                "field": "documents.1.content_ref",
                "message": "unknown content reference 'docs/missing'",
            }
        ]

    async def test_known_document_reference(self, session_factory, clock, actor):
        store = FakeDocumentStore({"docs/known", "avatars/1"})
        service = EmployeeService(session_factory, clock=clock, document_store=store)

        view = await service.create_employee(
            employee_payload(
                documents=[{"type": "cv", "content_ref": "docs/known"}],
                avatar_ref="avatars/1",
            ),
            actor,
        )

        assert view.avatar_ref == "avatars/1"
        assert sorted(store.checked) == ["avatars/1", "docs/known"]


class TestGetEmployee:
    async def test_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.get_employee(uuid4())

    async def test_invalid_id(self, service):
        with pytest.raises(ValidationError):
            await service.get_employee("not-a-uuid")

    async def test_string_id(self, service, employee):
        view = await service.get_employee(str(employee.employee_id))
        assert view.employee_id == employee.employee_id


class TestStatusAndLeavingDate:
    """Status lifecycle and the leaving-date rule."""

    async def test_leaving_date_terminates_active_employee(self, service, employee, actor):
        view = await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 1), actor)

        assert view.status == "terminated"
        assert view.date_of_leaving == date(2025, 1, 1)
        assert view.terminated_on == date(2025, 1, 1)
        assert await audit_actions(service, employee.employee_id) == [
            "created",
            "status_changed",
        ]
        entry = view.recent_audit[0]
        assert entry.before == {"status": "active", "date_of_leaving": None}
        assert entry.after == {"status": "terminated", "date_of_leaving": "2025-01-01"}

    async def test_termination_closes_salary_period(self, service, employee, actor):
        view = await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 1), actor)

        assert view.current_salary_period is None
        history = await service.list_salary_history(employee.employee_id)
        assert len(history) == 1
        assert history[0].effective_to is not None

    async def test_leaving_date_terminates_employee_on_leave(self, service, employee, actor):
        await service.set_status(employee.employee_id, "on_leave", actor)

        view = await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 10), actor)

        assert view.status == "terminated"
        assert view.date_of_leaving == date(2025, 1, 10)
        assert view.terminated_on == date(2025, 1, 10)
        assert view.current_salary_period is None
        entry = view.recent_audit[0]
        assert entry.action == "status_changed"
        assert entry.before == {"status": "on_leave", "date_of_leaving": None}

    async def test_cannot_activate_with_leaving_date(self, service, employee, actor):
        await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 1), actor)

        with pytest.raises(PreconditionFailed):
            await service.set_status(employee.employee_id, "active", actor)

        view = await service.get_employee(employee.employee_id)
        assert view.status == "terminated"
        assert len(view.recent_audit) == 2

    async def test_leaving_date_on_suspended_keeps_status(self, service, employee, actor):
        await service.set_status(employee.employee_id, "suspended", actor)

        view = await service.set_date_of_leaving(employee.employee_id, date(2025, 2, 1), actor)

        assert view.status == "suspended"
        assert view.recent_audit[0].action == "updated"

    async def test_leaving_date_before_joining_rejected(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.set_date_of_leaving(employee.employee_id, date(2020, 1, 1), actor)

    async def test_clear_leaving_date_then_reinstate(self, service, employee, actor):
        await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 1), actor)
        await service.set_date_of_leaving(employee.employee_id, None, actor)

        view = await service.set_status(employee.employee_id, "active", actor, note="rehired")

        assert view.status == "active"
        assert view.date_of_leaving is None
        assert view.terminated_on is None
        assert view.current_salary_period is not None
        assert view.recent_audit[0].note == "rehired"
        history = await service.list_salary_history(employee.employee_id)
        assert [p.effective_to is None for p in history] == [False, True]
        assert history[0].effective_to <= history[1].effective_from

    async def test_same_status_is_noop(self, service, employee, actor):
        view = await service.set_status(employee.employee_id, "active", actor)

        assert view.version == employee.version
        assert len(view.recent_audit) == 1

    async def test_unknown_status(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.set_status(employee.employee_id, "retired", actor)

    async def test_on_leave_round_trip(self, service, employee, actor):
        await service.set_status(employee.employee_id, "on_leave", actor)
        view = await service.set_status(employee.employee_id, "active", actor)

        assert view.status == "active"
        # Salary keeps accruing through leave
        assert len(await service.list_salary_history(employee.employee_id)) == 1

    async def test_not_found(self, service, actor):
        with pytest.raises(NotFoundError):
            await service.set_status(uuid4(), "active", actor)


class TestSoftDelete:
    """Soft delete and restore."""

    async def test_short_reason_has_no_side_effects(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.soft_delete(employee.employee_id, "too short", actor)

        view = await service.get_employee(employee.employee_id)
        assert view.is_deleted is False
        assert view.version == employee.version
        assert [e.action for e in view.recent_audit] == ["created"]

    async def test_long_reason_rejected(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.soft_delete(employee.employee_id, "x" * 501, actor)

    async def test_reason_is_trimmed(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.soft_delete(employee.employee_id, "   short    ", actor)

    async def test_soft_delete_and_restore(self, service, employee, actor):
        reason = "Duplicate record created by mistake"
        view = await service.soft_delete(employee.employee_id, reason, actor)

        assert view.is_deleted is True
        assert view.deleted_reason == reason
        assert view.deleted_at is not None
        assert view.recent_audit[0].action == "soft_deleted"
        assert view.recent_audit[0].note == reason

        view = await service.restore(employee.employee_id, actor)

        assert view.is_deleted is False
        assert view.deleted_reason is None
        assert view.recent_audit[0].action == "restored"

    async def test_double_delete_is_noop(self, service, employee, actor):
        reason = "Employee record no longer needed"
        first = await service.soft_delete(employee.employee_id, reason, actor)
        second = await service.soft_delete(employee.employee_id, reason, actor)

        assert second.is_deleted is True
        assert second.version == first.version
        assert await audit_actions(service, employee.employee_id) == ["created", "soft_deleted"]

    async def test_restore_live_record_is_noop(self, service, employee, actor):
        view = await service.restore(employee.employee_id, actor)

        assert view.version == employee.version
        assert len(view.recent_audit) == 1

    async def test_deleted_record_rejects_changes(self, service, employee, actor):
        await service.soft_delete(employee.employee_id, "Left without notice", actor)

        with pytest.raises(PreconditionFailed):
            await service.set_status(employee.employee_id, "suspended", actor)
        with pytest.raises(PreconditionFailed):
            await service.update_compensation(employee.employee_id, 1, "BDT", None, actor)
        with pytest.raises(PreconditionFailed):
            await service.update_employee(employee.employee_id, {"name": "New"}, actor)

    async def test_deleted_record_still_readable(self, service, employee, actor):
        await service.soft_delete(employee.employee_id, "Left without notice", actor)

        view = await service.get_employee(employee.employee_id)
        assert view.is_deleted is True


class TestCompensation:
    """Salary changes and history."""

    async def test_raise_closes_and_opens_period(self, service, employee, actor):
        view = await service.update_compensation(
            employee.employee_id, 60000, "BDT", "annual raise", actor
        )

        assert view.salary == Decimal("60000")
        history = await service.list_salary_history(employee.employee_id)
        assert [p.amount for p in history] == [Decimal("50000"), Decimal("60000")]
        old, new = history
        assert old.effective_to == new.effective_from
        assert new.effective_to is None
        assert new.reason == "annual raise"
        assert view.current_salary_period.period_id == new.period_id
        assert view.recent_audit[0].action == "compensation_changed"
        assert view.recent_audit[0].before == {"salary": "50000.00", "currency": "BDT"}

    async def test_unchanged_compensation_is_noop(self, service, employee, actor):
        view = await service.update_compensation(employee.employee_id, "50000", "BDT", None, actor)

        assert view.version == employee.version
        assert len(await service.list_salary_history(employee.employee_id)) == 1

    async def test_currency_change_alone(self, service, employee, actor):
        await service.update_compensation(employee.employee_id, 50000, "usd", None, actor)

        history = await service.list_salary_history(employee.employee_id)
        assert [p.currency for p in history] == ["BDT", "USD"]

    async def test_negative_salary_rejected(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.update_compensation(employee.employee_id, -5, "BDT", None, actor)

    async def test_terminated_employee_gets_period_on_reinstatement(
        self, service, employee, actor
    ):
        await service.set_status(employee.employee_id, "terminated", actor)
        view = await service.update_compensation(employee.employee_id, 55000, "BDT", None, actor)

        assert view.salary == Decimal("55000")
        assert view.current_salary_period is None

        view = await service.set_status(employee.employee_id, "active", actor)
        assert view.current_salary_period.amount == Decimal("55000")

    async def test_history_is_chronological(self, service, employee, actor):
        for amount in (51000, 52000, 53000):
            await service.update_compensation(employee.employee_id, amount, "BDT", None, actor)

        history = await service.list_salary_history(employee.employee_id)
        starts = [p.effective_from for p in history]
        assert starts == sorted(starts)
        assert sum(1 for p in history if p.effective_to is None) == 1
        for older, newer in zip(history, history[1:]):
            assert older.effective_to <= newer.effective_from


class TestUpdateEmployee:
    """Partial updates."""

    async def test_profile_diff_only(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {"name": "Rahim U.", "role": "Tour Guide", "notes": "Speaks French"},
            actor,
        )

        assert view.name == "Rahim U."
        entry = view.recent_audit[0]
        assert entry.action == "updated"
        assert entry.before == {"name": "Rahim Uddin", "notes": None}
        assert entry.after == {"name": "Rahim U.", "notes": "Speaks French"}

    async def test_empty_patch_is_noop(self, service, employee, actor):
        view = await service.update_employee(employee.employee_id, {}, actor)

        assert view.version == employee.version
        assert len(view.recent_audit) == 1

    async def test_expected_version_mismatch(self, service, employee, actor):
        await service.update_employee(employee.employee_id, {"notes": "first"}, actor)

        with pytest.raises(ConflictError):
            await service.update_employee(
                employee.employee_id,
                {"notes": "second", "expected_version": employee.version},
                actor,
            )

        view = await service.get_employee(employee.employee_id)
        assert view.notes == "first"

    async def test_expected_version_match(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {"notes": "ok", "expected_version": employee.version},
            actor,
        )
        assert view.notes == "ok"
        assert view.version > employee.version

    async def test_null_for_required_field_rejected(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.update_employee(employee.employee_id, {"name": None}, actor)

    async def test_combined_update_shares_correlation_id(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {
                "role": "Senior Guide",
                "salary": "65000",
                "salary_reason": "promotion",
                "shifts": [{"start_time": "08:00", "end_time": "16:00", "days": ["Sat"]}],
            },
            actor,
        )

        actions = [e.action for e in view.recent_audit[:3]]
        assert actions == ["shifts_updated", "compensation_changed", "updated"]
        correlation_ids = {e.correlation_id for e in view.recent_audit[:3]}
        assert len(correlation_ids) == 1
        assert None not in correlation_ids
        assert view.salary == Decimal("65000")
        assert view.shift_summary == "Sat 08:00-16:00"

    async def test_leaving_date_with_suspended_status(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {"status": "suspended", "date_of_leaving": date(2025, 3, 1)},
            actor,
        )

        assert view.status == "suspended"
        assert view.date_of_leaving == date(2025, 3, 1)
        # Never passed through terminated
        assert len(await service.list_salary_history(employee.employee_id)) == 1

    async def test_clear_leaving_date_and_activate(self, service, employee, actor):
        await service.set_date_of_leaving(employee.employee_id, date(2025, 1, 1), actor)

        view = await service.update_employee(
            employee.employee_id,
            {"status": "active", "date_of_leaving": None},
            actor,
        )

        assert view.status == "active"
        assert view.date_of_leaving is None

    async def test_reinstate_with_raise(self, service, employee, actor):
        await service.set_status(employee.employee_id, "terminated", actor)

        view = await service.update_employee(
            employee.employee_id, {"status": "active", "salary": "70000"}, actor
        )

        assert view.status == "active"
        assert view.current_salary_period.amount == Decimal("70000")
        history = await service.list_salary_history(employee.employee_id)
        assert [p.amount for p in history] == [Decimal("50000"), Decimal("70000")]
        assert [e.action for e in view.recent_audit[:2]] == [
            "status_changed",
            "compensation_changed",
        ]

    async def test_activate_with_leaving_date_rolls_back(self, service, employee, actor):
        with pytest.raises(PreconditionFailed):
            await service.update_employee(
                employee.employee_id,
                {"notes": "changed", "date_of_leaving": date(2025, 1, 1), "status": "active"},
                actor,
            )

        view = await service.get_employee(employee.employee_id)
        assert view.notes is None
        assert view.status == "active"
        assert view.date_of_leaving is None
        assert len(view.recent_audit) == 1

    async def test_joining_date_locked_after_payroll(self, service, employee, actor):
        await service.update_employee(
            employee.employee_id, {"date_of_joining": date(2024, 2, 1)}, actor
        )
        await service.open_payroll_period(
            employee.employee_id, date(2025, 1, 1), 50000, "BDT", date(2025, 1, 5)
        )

        with pytest.raises(PreconditionFailed):
            await service.update_employee(
                employee.employee_id, {"date_of_joining": date(2024, 3, 1)}, actor
            )

    async def test_contact_info_replaced(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {"contact_info": {"phone": "+8801900000000"}},
            actor,
        )

        assert view.contact_info.phone == "+8801900000000"
        assert view.contact_info.email is None

    async def test_documents_replaced(self, service, employee, actor):
        view = await service.update_employee(
            employee.employee_id,
            {"documents": [{"type": "contract", "content_ref": "docs/contract-7"}]},
            actor,
        )

        assert [d.content_ref for d in view.documents] == ["docs/contract-7"]
        assert view.recent_audit[0].after == {
            "documents": [{"type": "contract", "content_ref": "docs/contract-7"}]
        }


class TestFrozenClock:
    """Every change lands on the same clock reading."""

    @pytest.fixture
    def frozen_service(self, session_factory, notifier, config) -> EmployeeService:
        clock = SteppingClock(step=timedelta(0))
        return EmployeeService(session_factory, clock=clock, notifier=notifier, config=config)

    async def test_raise_right_after_hire(self, frozen_service, actor):
        created = await frozen_service.create_employee(employee_payload(), actor)

        view = await frozen_service.update_compensation(
            created.employee_id, 60000, "BDT", "annual raise", actor
        )

        assert view.salary == Decimal("60000")
        old, new = await frozen_service.list_salary_history(created.employee_id)
        assert old.effective_from < old.effective_to == new.effective_from
        assert new.amount == Decimal("60000")
        assert new.effective_to is None

    async def test_terminate_and_rehire(self, frozen_service, actor):
        created = await frozen_service.create_employee(employee_payload(), actor)
        await frozen_service.set_status(created.employee_id, "terminated", actor)

        view = await frozen_service.set_status(created.employee_id, "active", actor)

        assert view.current_salary_period is not None
        history = await frozen_service.list_salary_history(created.employee_id)
        assert [p.effective_to is None for p in history] == [False, True]
        assert history[0].effective_to == history[1].effective_from

    async def test_reinstate_with_raise(self, frozen_service, actor):
        created = await frozen_service.create_employee(employee_payload(), actor)
        await frozen_service.set_status(created.employee_id, "terminated", actor)

        view = await frozen_service.update_employee(
            created.employee_id, {"status": "active", "salary": "70000"}, actor
        )

        assert view.status == "active"
        history = await frozen_service.list_salary_history(created.employee_id)
        assert [p.amount for p in history] == [Decimal("50000"), Decimal("70000")]
        assert history[-1].effective_to is None


class TestShifts:
    async def test_replace_shifts(self, service, employee, actor):
        view = await service.replace_shifts(
            employee.employee_id,
            [
                {"start_time": "09:00", "end_time": "17:00", "days": ["Mon", "Tue", "Wed"]},
                {"start_time": "10:00", "end_time": "12:00", "days": ["Sat"]},
            ],
            actor,
        )

        assert view.shift_summary == "Mon-Wed 09:00-17:00; Sat 10:00-12:00"
        assert view.recent_audit[0].action == "shifts_updated"

        view = await service.replace_shifts(employee.employee_id, [], actor)
        assert view.shifts == []

    async def test_invalid_shift_rejected(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.replace_shifts(
                employee.employee_id,
                [{"start_time": "09:00", "end_time": "17:00", "days": ["Mon", "Mon"]}],
                actor,
            )


class TestAudit:
    """Audit listing and corrections."""

    async def test_list_audit_is_lazy_and_complete(self, service, employee, actor):
        for i in range(6):
            await service.update_employee(employee.employee_id, {"notes": f"note {i}"}, actor)

        entries = [e async for e in service.list_audit(employee.employee_id, page_size=2)]

        assert len(entries) == 7
        seqs = [e.seq for e in entries]
        assert seqs == sorted(seqs, reverse=True)
        assert entries[-1].action == "created"

    async def test_list_audit_can_stop_early(self, service, employee, actor):
        for i in range(4):
            await service.update_employee(employee.employee_id, {"notes": f"note {i}"}, actor)

        seen = []
        async for entry in service.list_audit(employee.employee_id, page_size=2):
            seen.append(entry)
            if len(seen) == 3:
                break

        assert len(seen) == 3

    async def test_audit_page(self, service, employee, actor):
        for i in range(3):
            await service.update_employee(employee.employee_id, {"notes": f"note {i}"}, actor)

        page = await service.audit_page(employee.employee_id, limit=2)
        assert len(page.entries) == 2
        rest = await service.audit_page(employee.employee_id, 10, page.next_before_seq)
        assert len(rest.entries) == 2
        assert rest.next_before_seq is None

    async def test_audit_timestamps_strictly_ordered(self, service, employee, actor, clock):
        await service.update_employee(employee.employee_id, {"notes": "a"}, actor)
        clock.advance(timedelta(days=-1))
        await service.update_employee(employee.employee_id, {"notes": "b"}, actor)

        entries = [e async for e in service.list_audit(employee.employee_id)]
        timestamps = [e.created_at for e in reversed(entries)]
        assert timestamps == sorted(timestamps)

    async def test_audit_entries_unchanged_between_reads(self, service, employee, actor):
        await service.set_status(employee.employee_id, "on_leave", actor)
        first = [e async for e in service.list_audit(employee.employee_id)]
        await service.set_status(employee.employee_id, "active", actor)
        second = [e async for e in service.list_audit(employee.employee_id)]

        assert second[1:] == first

    async def test_correct_audit_entry(self, service, employee, actor):
        view = await service.update_employee(employee.employee_id, {"notes": "wrong"}, actor)
        original = view.recent_audit[0]

        correction = await service.correct_audit_entry(
            employee.employee_id, original.seq, "Note was entered for the wrong employee", actor
        )

        assert correction.action == "correction"
        assert correction.references_seq == original.seq
        page = await service.audit_page(employee.employee_id, 10)
        assert page.entries[1] == original

    async def test_correction_needs_note(self, service, employee, actor):
        with pytest.raises(ValidationError):
            await service.correct_audit_entry(employee.employee_id, 1, "  ", actor)

    async def test_audit_of_unknown_employee(self, service):
        with pytest.raises(NotFoundError):
            await service.audit_page(uuid4())


class TestCredentials:
    async def test_credential_change_is_audited_and_notified(self, service, employee, actor, notifier):
        view = await service.record_credential_change(employee.employee_id, actor)

        assert view.recent_audit[0].action == "credentials_changed"
        assert notifier.sent[-1][0] == "credentials_changed"
        assert notifier.sent[-1][3]["changed_by"] == "admin-1"

    async def test_notification_failure_does_not_propagate(
        self, session_factory, clock, actor, caplog
    ):
        notifier = RecordingNotificationSender()
        service = EmployeeService(session_factory, clock=clock, notifier=notifier)
        view = await service.create_employee(employee_payload(), actor)
        notifier.fail = True

        with caplog.at_level(logging.ERROR):
            updated = await service.record_credential_change(view.employee_id, actor)

        assert updated.recent_audit[0].action == "credentials_changed"
        assert "credentials_changed" in caplog.text
