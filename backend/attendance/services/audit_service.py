# Overview: Service-layer operations for the attendance audit trail.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models import AttendanceAuditEvent, AttendanceEntry
from attendance.time_utils import to_utc_z
"""
Attendance Audit Invariants

- Append-only log of every change to an attendance entry.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time (the engine clock); created_at is system time.
"""

CLOCK_IN = "attendance.clock_in"
CLOCK_OUT = "attendance.clock_out"
AUTO_EXPIRED = "attendance.auto_expired"
EDITED = "attendance.edited"
FLAGGED = "attendance.flagged"
UNFLAGGED = "attendance.unflagged"
MANUAL_ENTRY = "attendance.manual_entry"

# Fields captured in before/after snapshots
AUDITED_FIELDS = (
    "clock_in",
    "clock_out",
    "duration_minutes",
    "work_summary",
    "status",
    "is_flagged",
    "flag_reason",
)


def _jsonable(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    if hasattr(value, "value"):
        return value.value
    return value


def snapshot(entry: AttendanceEntry) -> dict:
    return {field: _jsonable(getattr(entry, field)) for field in AUDITED_FIELDS}


def diff(before: dict, after: dict) -> dict:
    """Only the fields that changed, as {field: {"from": ..., "to": ...}}."""
    return {
        field: {"from": before.get(field), "to": after.get(field)}
        for field in AUDITED_FIELDS
        if before.get(field) != after.get(field)
    }


def append_audit_event(
    store,
    *,
    entry_id: int,
    event_type: str,
    occurred_at: datetime,
    actor_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AttendanceAuditEvent:
    """
    Append-only audit event. Staged on the store's session; the caller commits.
    """
    ev = AttendanceAuditEvent(
        entry_id=entry_id,
        event_type=event_type,
        actor_id=actor_id,
        occurred_at=occurred_at,
        note=note,
        payload=payload,
    )
    store.add(ev)
    return ev


def list_events(store, entry_id: int) -> list[AttendanceAuditEvent]:
    store.get(entry_id)
    return store.session.query(AttendanceAuditEvent).filter_by(
        entry_id=entry_id,
    ).order_by(AttendanceAuditEvent.occurred_at.asc(), AttendanceAuditEvent.id.asc()).all()
