"""Admin edit, flag, and manual backfill."""

from datetime import datetime, timedelta

import pytest

from attendance.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from attendance.models import AttendanceEntry, EntryStatus
from attendance.services import audit_service

from conftest import T0


@pytest.fixture
def closed_entry(engines, employee, clock):
    clock.set(T0.replace(hour=8))
    engines.clock.clock_in(employee.id)
    clock.advance(hours=3)
    entry = engines.clock.clock_out(employee.id, work_summary="Sprint planning")
    clock.set(T0)
    return entry


def test_edit_recomputes_duration_and_marks_edited(engines, admin, closed_entry):
    entry = engines.overrides.edit_entry(
        closed_entry.id,
        actor=admin,
        edit_reason="Forgot to clock out on time",
        clock_out=T0.replace(hour=10, minute=30),
    )

    assert entry.status is EntryStatus.EDITED
    assert entry.clock_in == T0.replace(hour=8)
    assert entry.clock_out == T0.replace(hour=10, minute=30)
    assert entry.duration_minutes == 150
    assert entry.edited_by_id == admin.id
    assert entry.edited_at == T0
    assert entry.edit_reason == "Forgot to clock out on time"


def test_edit_requires_reason(engines, admin, closed_entry):
    with pytest.raises(ValidationError):
        engines.overrides.edit_entry(closed_entry.id, actor=admin, edit_reason="  ")


def test_edit_rejects_clock_out_before_clock_in(engines, admin, closed_entry):
    with pytest.raises(ValidationError):
        engines.overrides.edit_entry(
            closed_entry.id,
            actor=admin,
            edit_reason="Typo",
            clock_out=T0.replace(hour=7),
        )


def test_edit_rejects_future_times(engines, admin, closed_entry):
    with pytest.raises(ValidationError):
        engines.overrides.edit_entry(
            closed_entry.id,
            actor=admin,
            edit_reason="Typo",
            clock_out=T0 + timedelta(hours=1),
        )


def test_edit_open_entry_needs_clock_out(engines, admin, employee, clock):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=1)

    with pytest.raises(ValidationError):
        engines.overrides.edit_entry(entry.id, actor=admin, edit_reason="Adjust start", clock_in=T0 - timedelta(minutes=5))

    edited = engines.overrides.edit_entry(
        entry.id,
        actor=admin,
        edit_reason="Left early, forgot to clock out",
        clock_out=T0 + timedelta(minutes=40),
    )
    assert edited.status is EntryStatus.EDITED
    assert edited.duration_minutes == 40
    # The session is closed, so the employee may clock in again
    assert engines.store.find_open_by_employee(employee.id) is None


def test_edit_keeps_flag_fields(engines, admin, closed_entry):
    engines.overrides.flag_entry(closed_entry.id, actor=admin, is_flagged=True, flag_reason="Check badge logs")

    entry = engines.overrides.edit_entry(
        closed_entry.id, actor=admin, edit_reason="Fix end", clock_out=T0.replace(hour=10)
    )
    assert entry.is_flagged is True
    assert entry.flag_reason == "Check badge logs"


def test_edit_writes_audit_diff(engines, admin, closed_entry):
    engines.overrides.edit_entry(
        closed_entry.id, actor=admin, edit_reason="Fix end", clock_out=T0.replace(hour=10)
    )

    events = audit_service.list_events(engines.store, closed_entry.id)
    assert [e.event_type for e in events] == [
        audit_service.CLOCK_IN,
        audit_service.CLOCK_OUT,
        audit_service.EDITED,
    ]
    edit = events[-1]
    assert edit.actor_id == admin.id
    assert edit.note == "Fix end"
    assert edit.payload["clock_out"] == {"from": "2026-03-10T11:00:00Z", "to": "2026-03-10T10:00:00Z"}
    assert edit.payload["duration_minutes"] == {"from": 180, "to": 120}
    assert edit.payload["status"] == {"from": "COMPLETED", "to": "EDITED"}
    assert "clock_in" not in edit.payload


def test_edit_with_stale_version_conflicts(engines, admin, closed_entry):
    version = closed_entry.version_id
    engines.overrides.flag_entry(closed_entry.id, actor=admin, is_flagged=True, flag_reason="Review")

    with pytest.raises(ConflictError):
        engines.overrides.edit_entry(
            closed_entry.id,
            actor=admin,
            edit_reason="Fix end",
            clock_out=T0.replace(hour=10),
            expected_version=version,
        )


def test_edit_missing_entry(engines, admin):
    with pytest.raises(NotFoundError):
        engines.overrides.edit_entry(999, actor=admin, edit_reason="Nope", clock_out=T0)


def test_non_admin_cannot_override(engines, employee, closed_entry):
    with pytest.raises(AuthorizationError):
        engines.overrides.edit_entry(closed_entry.id, actor=employee, edit_reason="Mine", clock_out=T0)
    with pytest.raises(AuthorizationError):
        engines.overrides.flag_entry(closed_entry.id, actor=employee, is_flagged=True, flag_reason="x")
    with pytest.raises(AuthorizationError):
        engines.overrides.manual_entry(
            actor=employee,
            employee_id=employee.id,
            clock_in=T0 - timedelta(hours=2),
            clock_out=T0 - timedelta(hours=1),
            manual_entry_reason="Backfill",
        )


def test_flag_and_unflag(engines, admin, closed_entry):
    flagged = engines.overrides.flag_entry(
        closed_entry.id, actor=admin, is_flagged=True, flag_reason="Duration looks off"
    )
    assert flagged.is_flagged is True
    assert flagged.flag_reason == "Duration looks off"
    assert flagged.flagged_by_id == admin.id
    assert flagged.flagged_at == T0
    # Flagging never changes status
    assert flagged.status is EntryStatus.COMPLETED

    cleared = engines.overrides.flag_entry(closed_entry.id, actor=admin, is_flagged=False)
    assert cleared.is_flagged is False
    assert cleared.flag_reason is None
    assert cleared.flagged_by_id is None
    assert cleared.flagged_at is None
    assert cleared.status is EntryStatus.COMPLETED


def test_flag_requires_reason(engines, admin, closed_entry):
    with pytest.raises(ValidationError):
        engines.overrides.flag_entry(closed_entry.id, actor=admin, is_flagged=True, flag_reason="")


def test_manual_entry_backfills_closed_session(engines, admin, employee):
    entry = engines.overrides.manual_entry(
        actor=admin,
        employee_id=employee.id,
        clock_in=datetime(2026, 3, 9, 9, 0),
        clock_out=datetime(2026, 3, 9, 17, 30),
        manual_entry_reason="Badge reader was down",
        work_summary="On-site support",
    )

    assert entry.status is EntryStatus.MANUAL
    assert entry.is_manual_entry is True
    assert entry.manual_entry_reason == "Badge reader was down"
    assert entry.duration_minutes == 510
    assert entry.work_summary == "On-site support"


def test_manual_entry_ignores_open_session(engines, admin, employee):
    engines.clock.clock_in(employee.id)

    entry = engines.overrides.manual_entry(
        actor=admin,
        employee_id=employee.id,
        clock_in=T0 - timedelta(hours=4),
        clock_out=T0 - timedelta(hours=2),
        manual_entry_reason="Earlier shift not recorded",
    )
    assert entry.status is EntryStatus.MANUAL
    assert engines.store.find_open_by_employee(employee.id) is not None


def test_manual_entry_validation(engines, admin, employee):
    with pytest.raises(ValidationError):
        engines.overrides.manual_entry(
            actor=admin,
            employee_id=employee.id,
            clock_in=T0 - timedelta(hours=1),
            clock_out=T0 - timedelta(hours=2),
            manual_entry_reason="Backwards",
        )
    with pytest.raises(ValidationError):
        engines.overrides.manual_entry(
            actor=admin,
            employee_id=employee.id,
            clock_in=T0 - timedelta(hours=2),
            clock_out=T0 - timedelta(hours=1),
            manual_entry_reason=None,
        )
    with pytest.raises(ValidationError):
        engines.overrides.manual_entry(
            actor=admin,
            employee_id=employee.id,
            clock_in=T0 - timedelta(hours=1),
            clock_out=T0 + timedelta(hours=1),
            manual_entry_reason="Future",
        )


def test_manual_entry_unknown_employee(engines, admin, db_session):
    with pytest.raises(NotFoundError):
        engines.overrides.manual_entry(
            actor=admin,
            employee_id=4242,
            clock_in=T0 - timedelta(hours=2),
            clock_out=T0 - timedelta(hours=1),
            manual_entry_reason="Who?",
        )
    assert db_session.query(AttendanceEntry).count() == 0
