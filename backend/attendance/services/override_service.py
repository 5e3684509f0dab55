# Overview: Admin overrides on attendance entries (edit, flag, manual backfill) with audit trail.

"""
Override Service

WHY: Recorded time is sometimes wrong (forgotten clock-out, wrong device
clock) or suspicious. Admins fix entries in place, but every change records
who made it, when, and why, and appends a before/after audit event.

RULES:
- edit: editReason required; resulting clockOut must exist and be >= clockIn;
  status becomes EDITED whatever it was; flag fields untouched.
- flag: flagReason required when flagging; unflagging clears all flag fields.
- manual entry: manualEntryReason required; creates a closed MANUAL entry and
  deliberately skips the one-open-session check (it is a historical backfill).

Concurrent overrides on the same entry are serialized by version_id: the
loser gets ConflictError and must reload.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..errors import AuthorizationError, ValidationError
from ..models import AttendanceEntry, Employee, EntryStatus
from ..validation import ensure_chronological, require_text
from . import audit_service
from .directory_service import EmployeeDirectory
from .entry_store import EntryStore
from attendance.time_utils import utcnow, whole_minutes

logger = logging.getLogger(__name__)


def _require_admin(actor: Employee | None) -> Employee:
    if actor is None or not actor.is_admin:
        raise AuthorizationError("Admin role required")
    return actor


class OverrideService:
    def __init__(
        self,
        store: EntryStore,
        directory: EmployeeDirectory,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._directory = directory
        self._clock = clock

    def _reject_future(self, value: datetime | None, field_name: str, now: datetime) -> None:
        if value is not None and value > now:
            raise ValidationError(f"{field_name} cannot be in the future")

    def edit_entry(
        self,
        entry_id: int,
        *,
        actor: Employee,
        edit_reason: str | None,
        clock_in: datetime | None = None,
        clock_out: datetime | None = None,
        work_summary: str | None = None,
        expected_version: int | None = None,
    ) -> AttendanceEntry:
        _require_admin(actor)
        reason = require_text(edit_reason, "editReason")
        now = self._clock()
        captured = {}

        def _apply(entry: AttendanceEntry) -> None:
            new_in = clock_in or entry.clock_in
            new_out = clock_out or entry.clock_out
            if new_out is None:
                raise ValidationError("clockOut is required when editing an open entry")
            ensure_chronological(new_in, new_out)
            self._reject_future(new_in, "clockIn", now)
            self._reject_future(new_out, "clockOut", now)

            captured["before"] = audit_service.snapshot(entry)
            entry.clock_in = new_in
            entry.clock_out = new_out
            entry.duration_minutes = whole_minutes(new_in, new_out)
            if work_summary is not None:
                entry.work_summary = work_summary
            entry.status = EntryStatus.EDITED
            entry.edited_by_id = actor.id
            entry.edited_at = now
            entry.edit_reason = reason

        entry = self._store.update(entry_id, _apply, expected_version=expected_version)

        audit_service.append_audit_event(
            self._store,
            entry_id=entry.id,
            event_type=audit_service.EDITED,
            actor_id=actor.id,
            occurred_at=now,
            note=reason,
            payload=audit_service.diff(captured["before"], audit_service.snapshot(entry)),
        )
        self._store.commit()
        logger.info("Entry %s edited by %s", entry.id, actor.id)
        return entry

    def flag_entry(
        self,
        entry_id: int,
        *,
        actor: Employee,
        is_flagged: bool,
        flag_reason: str | None = None,
        expected_version: int | None = None,
    ) -> AttendanceEntry:
        _require_admin(actor)
        if is_flagged:
            flag_reason = require_text(flag_reason, "flagReason")
        now = self._clock()
        captured = {}

        def _apply(entry: AttendanceEntry) -> None:
            captured["before"] = audit_service.snapshot(entry)
            if is_flagged:
                entry.is_flagged = True
                entry.flag_reason = flag_reason
                entry.flagged_by_id = actor.id
                entry.flagged_at = now
            else:
                entry.is_flagged = False
                entry.flag_reason = None
                entry.flagged_by_id = None
                entry.flagged_at = None

        entry = self._store.update(entry_id, _apply, expected_version=expected_version)

        audit_service.append_audit_event(
            self._store,
            entry_id=entry.id,
            event_type=audit_service.FLAGGED if is_flagged else audit_service.UNFLAGGED,
            actor_id=actor.id,
            occurred_at=now,
            note=flag_reason if is_flagged else None,
            payload=audit_service.diff(captured["before"], audit_service.snapshot(entry)),
        )
        self._store.commit()
        return entry

    def manual_entry(
        self,
        *,
        actor: Employee,
        employee_id: int | None,
        clock_in: datetime | None,
        clock_out: datetime | None,
        manual_entry_reason: str | None,
        work_summary: str | None = None,
    ) -> AttendanceEntry:
        _require_admin(actor)
        reason = require_text(manual_entry_reason, "manualEntryReason")
        if employee_id is None:
            raise ValidationError("employeeId is required")
        if clock_in is None or clock_out is None:
            raise ValidationError("clockIn and clockOut are required")
        ensure_chronological(clock_in, clock_out)
        now = self._clock()
        self._reject_future(clock_out, "clockOut", now)

        self._directory.require(employee_id)

        entry = self._store.create_closed_entry(
            employee_id=employee_id,
            clock_in=clock_in,
            clock_out=clock_out,
            status=EntryStatus.MANUAL,
            work_summary=work_summary,
            is_manual_entry=True,
            manual_entry_reason=reason,
        )
        audit_service.append_audit_event(
            self._store,
            entry_id=entry.id,
            event_type=audit_service.MANUAL_ENTRY,
            actor_id=actor.id,
            occurred_at=now,
            note=reason,
            payload=audit_service.snapshot(entry),
        )
        self._store.commit()
        logger.info("Manual entry %s created for employee %s by %s", entry.id, employee_id, actor.id)
        return entry
