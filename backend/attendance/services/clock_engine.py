# Overview: Employee clock-in / clock-out operations and live session status.

"""
Clock Engine

WHY: Employees open a session on clock-in and close it with a work summary on
clock-out. Only one session per employee may be open at a time.

The clock is injected (defaults to utcnow) so the expiry math can be tested
against fixed instants.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..errors import AlreadyClockedInError, ConflictError, NotClockedInError
from ..models import AttendanceEntry, EntryStatus
from ..validation import require_text
from . import audit_service
from .entry_store import EntryStore
from .policy import AttendancePolicy
from attendance.time_utils import day_bounds, to_utc_z, utcnow, whole_minutes

logger = logging.getLogger(__name__)


class ClockEngine:
    def __init__(self, store: EntryStore, policy: AttendancePolicy, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._policy = policy
        self._clock = clock

    def clock_in(
        self,
        employee_id: int,
        *,
        note: str | None = None,
        device_info: str | None = None,
    ) -> AttendanceEntry:
        if self._store.find_open_by_employee(employee_id):
            raise AlreadyClockedInError("Already clocked in")

        now = self._clock()
        try:
            entry = self._store.create_open_entry(employee_id, now, note=note, device_info=device_info)
        except ConflictError as exc:
            raise AlreadyClockedInError("Already clocked in") from exc

        audit_service.append_audit_event(
            self._store,
            entry_id=entry.id,
            event_type=audit_service.CLOCK_IN,
            actor_id=employee_id,
            occurred_at=now,
            note=note,
        )
        self._store.commit()
        logger.info("Employee %s clocked in (entry %s)", employee_id, entry.id)
        return entry

    def clock_out(self, employee_id: int, *, work_summary: str | None) -> AttendanceEntry:
        entry = self._store.find_open_by_employee(employee_id)
        if not entry:
            raise NotClockedInError("Not clocked in")

        summary = require_text(work_summary, "workSummary")

        # One retry: a flag or other non-closing write may bump the version
        # between our read and the CAS while the session is still open.
        for _ in range(2):
            # Never close before the open time, even if the server clock stepped back
            now = max(self._clock(), entry.clock_in)
            closed = self._store.close_if_open(
                entry.id,
                entry.version_id,
                clock_out=now,
                duration_minutes=whole_minutes(entry.clock_in, now),
                status=EntryStatus.COMPLETED,
                work_summary=summary,
            )
            if closed:
                break

            self._store.rollback()
            entry = self._store.get(entry.id)
            if not entry.status.is_open:
                # The expiry sweep (or an admin edit) closed the session first
                raise NotClockedInError("Session was already closed")
            logger.debug("Entry %s changed before clock-out; retrying", entry.id)
        else:
            raise ConflictError("Session was modified concurrently; retry clock-out")

        audit_service.append_audit_event(
            self._store,
            entry_id=entry.id,
            event_type=audit_service.CLOCK_OUT,
            actor_id=employee_id,
            occurred_at=now,
        )
        self._store.commit()
        logger.info("Employee %s clocked out (entry %s)", employee_id, entry.id)
        return self._store.refresh(entry)

    def status(self, employee_id: int) -> dict:
        now = self._clock()
        start, end = day_bounds(now.date())

        closed_today = sum(
            e.duration_minutes or 0
            for e in self._store.list_by_employee(employee_id, start, end)
            if not e.status.is_open
        )

        entry = self._store.find_open_by_employee(employee_id)
        if not entry:
            return {
                "isClocked": False,
                "entryId": None,
                "clockedInAt": None,
                "elapsedSeconds": None,
                "expiresInSeconds": None,
                "willAutoExpire": False,
                "todayTotalMinutes": closed_today,
            }

        elapsed = max(int((now - entry.clock_in).total_seconds()), 0)
        expires_in = max(0, self._policy.max_session_seconds - elapsed)
        # Only the part of the open session that falls on today
        today_seconds = max(int((now - max(entry.clock_in, start)).total_seconds()), 0)
        return {
            "isClocked": True,
            "entryId": entry.id,
            "clockedInAt": to_utc_z(entry.clock_in),
            "elapsedSeconds": elapsed,
            "expiresInSeconds": expires_in,
            "willAutoExpire": expires_in <= self._policy.warning_window_seconds,
            "todayTotalMinutes": closed_today + today_seconds // 60,
        }
