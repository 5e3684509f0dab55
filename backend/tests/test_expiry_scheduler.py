"""Auto-expiry sweep and its race with clock-out."""

import threading
from datetime import timedelta

import pytest
import sqlalchemy as sa

from attendance.errors import ConflictError, NotClockedInError
from attendance.models import AttendanceAuditEvent, AttendanceEntry, EntryStatus
from attendance.services import audit_service
from attendance.services.clock_engine import ClockEngine
from attendance.services.entry_store import EntryStore
from attendance.services.runtime import get_runtime

from conftest import T0


@pytest.fixture
def scheduler(engines):
    return get_runtime().scheduler


def test_sweep_expires_session_at_cap(engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=4)

    assert scheduler.tick() == 1

    entry = db_session.get(AttendanceEntry, entry.id)
    assert entry.status is EntryStatus.AUTO_EXPIRED
    assert entry.clock_out == T0 + timedelta(hours=4)
    assert entry.duration_minutes == 240


def test_sweep_pins_clock_out_even_when_late(engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    # Sweep was down for a long time
    clock.advance(hours=11, minutes=17)

    scheduler.tick()

    entry = db_session.get(AttendanceEntry, entry.id)
    assert entry.clock_out == T0 + timedelta(hours=4)
    assert entry.duration_minutes == 240


def test_sweep_leaves_younger_sessions_open(engines, employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=3, minutes=59, seconds=59)

    assert scheduler.tick() == 0
    assert engines.store.find_open_by_employee(employee.id) is not None


def test_sweep_is_idempotent(engines, employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=5)

    assert scheduler.tick() == 1
    assert scheduler.tick() == 0


def test_sweep_records_audit_event_without_actor(engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=4, minutes=1)
    scheduler.tick()

    events = db_session.query(AttendanceAuditEvent).filter_by(
        entry_id=entry.id, event_type=audit_service.AUTO_EXPIRED
    ).all()
    assert len(events) == 1
    assert events[0].actor_id is None


def test_only_overdue_sessions_expire(engines, employee, other_employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=2)
    engines.clock.clock_in(other_employee.id)
    clock.advance(hours=2)

    assert scheduler.tick() == 1
    assert engines.store.find_open_by_employee(employee.id) is None
    assert engines.store.find_open_by_employee(other_employee.id) is not None


def test_clock_in_allowed_after_expiry(engines, employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=4)
    scheduler.tick()

    entry = engines.clock.clock_in(employee.id)
    assert entry.status is EntryStatus.IN_PROGRESS


def test_clock_out_after_expiry_is_rejected(engines, employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=4)
    scheduler.tick()

    with pytest.raises(NotClockedInError):
        engines.clock.clock_out(employee.id, work_summary="Too late")


def test_clock_out_losing_race_to_sweep(engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=4)

    class StaleReadStore(EntryStore):
        """Returns the entry as read before the sweep committed."""

        def find_open_by_employee(self, employee_id):
            return entry

    racing = ClockEngine(StaleReadStore(db_session), get_runtime().policy, clock=clock)
    scheduler.tick()

    with pytest.raises(NotClockedInError):
        racing.clock_out(employee.id, work_summary="Racing the sweep")

    entry = db_session.get(AttendanceEntry, entry.id)
    assert entry.status is EntryStatus.AUTO_EXPIRED
    assert entry.work_summary is None


def _bump_version(session, entry_id):
    """Commit a non-closing concurrent write (an admin flag) on the entry."""
    session.execute(
        sa.update(AttendanceEntry)
        .where(AttendanceEntry.id == entry_id)
        .values(is_flagged=True, flag_reason="Under review", version_id=AttendanceEntry.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    session.commit()


def test_clock_out_retries_after_concurrent_flag(engines, employee, clock, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=1)

    class FlaggedMidwayStore(EntryStore):
        """An admin flags the entry between the read and the first close attempt."""
        flagged = False

        def close_if_open(self, entry_id, expected_version, **kwargs):
            if not self.flagged:
                self.flagged = True
                _bump_version(self.session, entry_id)
            return super().close_if_open(entry_id, expected_version, **kwargs)

    racing = ClockEngine(FlaggedMidwayStore(db_session), get_runtime().policy, clock=clock)
    closed = racing.clock_out(employee.id, work_summary="Done for the day")

    assert closed.status is EntryStatus.COMPLETED
    assert closed.duration_minutes == 60
    assert closed.is_flagged is True
    assert closed.flag_reason == "Under review"


def test_clock_out_conflict_when_entry_keeps_changing(engines, employee, clock, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=1)

    class BusyStore(EntryStore):
        """Every close attempt loses to another non-closing write."""

        def close_if_open(self, entry_id, expected_version, **kwargs):
            _bump_version(self.session, entry_id)
            return super().close_if_open(entry_id, expected_version, **kwargs)

    racing = ClockEngine(BusyStore(db_session), get_runtime().policy, clock=clock)
    with pytest.raises(ConflictError):
        racing.clock_out(employee.id, work_summary="Done")

    entry = db_session.get(AttendanceEntry, entry.id)
    assert entry.status is EntryStatus.IN_PROGRESS
    assert entry.clock_out is None


def test_sweep_losing_race_to_clock_out(engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    stale_version = entry.version_id
    clock.advance(hours=4)
    engines.clock.clock_out(employee.id, work_summary="Beat the sweep")

    # CAS against the version the sweep would have read
    won = engines.store.close_if_open(
        entry.id,
        stale_version,
        clock_out=T0 + timedelta(hours=4),
        duration_minutes=240,
        status=EntryStatus.AUTO_EXPIRED,
    )
    db_session.commit()

    assert won is False
    entry = db_session.get(AttendanceEntry, entry.id)
    assert entry.status is EntryStatus.COMPLETED
    assert entry.work_summary == "Beat the sweep"


def test_overlapping_tick_is_skipped(engines, employee, clock, scheduler):
    engines.clock.clock_in(employee.id)
    clock.advance(hours=5)

    scheduler._tick_lock.acquire()
    try:
        assert scheduler.tick() == 0
    finally:
        scheduler._tick_lock.release()

    assert scheduler.tick() == 1


def test_run_forever_stops_on_event(app, engines, employee, clock, scheduler, db_session):
    entry = engines.clock.clock_in(employee.id)
    clock.advance(hours=4)

    stop = threading.Event()
    stop.set()
    # Ticks once, then sees the stop event
    scheduler.run_forever(app, interval=0.01, stop_event=stop)

    db_session.expire_all()
    assert db_session.get(AttendanceEntry, entry.id).status is EntryStatus.AUTO_EXPIRED
