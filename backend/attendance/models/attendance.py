from __future__ import annotations

import enum

from ..extensions import db
from attendance.time_utils import to_utc_z


class EntryStatus(str, enum.Enum):
    """
    Lifecycle status of an attendance entry.

    - IN_PROGRESS: clocked in, no clock-out yet (the only open status)
    - COMPLETED: closed by the employee's clock-out
    - AUTO_EXPIRED: force-closed by the expiry sweep at the session cap
    - EDITED: times adjusted by an admin (from any prior status)
    - MANUAL: backfilled by an admin, created already closed
    """
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    AUTO_EXPIRED = "AUTO_EXPIRED"
    EDITED = "EDITED"
    MANUAL = "MANUAL"

    @property
    def is_open(self) -> bool:
        return self is EntryStatus.IN_PROGRESS


class AttendanceEntry(db.Model):
    """
    One clock-in/clock-out session for an employee.

    LIFECYCLE:
    - IN_PROGRESS -> COMPLETED (clock-out) or AUTO_EXPIRED (expiry sweep)
    - any -> EDITED (admin edit)
    - MANUAL entries are created closed

    INVARIANTS:
    - At most one IN_PROGRESS entry per employee (partial unique index below)
    - clock_out >= clock_in whenever both are set
    - is_flagged implies flag_reason; is_manual_entry implies manual_entry_reason

    Entries are never deleted. Every mutation bumps version_id; writers holding
    a stale version lose with StaleDataError.
    """
    __tablename__ = "attendance_entries"
    __table_args__ = (
        db.Index("ix_attendance_employee_clock_in", "employee_id", "clock_in"),
        db.Index("ix_attendance_status", "status"),
        db.Index(
            "uq_attendance_open_per_employee",
            "employee_id",
            unique=True,
            sqlite_where=db.text("status = 'IN_PROGRESS'"),
            postgresql_where=db.text("status = 'IN_PROGRESS'"),
        ),
        db.CheckConstraint("clock_out IS NULL OR clock_out >= clock_in", name="ck_attendance_chronological"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)

    clock_in = db.Column(db.DateTime(timezone=True), nullable=False)
    clock_out = db.Column(db.DateTime(timezone=True), nullable=True)

    # floor((clock_out - clock_in) / 60s); NULL while open
    duration_minutes = db.Column(db.Integer, nullable=True)

    work_summary = db.Column(db.Text, nullable=True)

    status = db.Column(
        db.Enum(EntryStatus, name="attendance_entry_status", native_enum=False, length=16),
        nullable=False,
        default=EntryStatus.IN_PROGRESS,
    )

    # Clock-in metadata
    note = db.Column(db.Text, nullable=True)
    device_info = db.Column(db.String(255), nullable=True)

    # Manual backfill
    is_manual_entry = db.Column(db.Boolean, nullable=False, default=False)
    manual_entry_reason = db.Column(db.Text, nullable=True)

    # Flag (orthogonal to status)
    is_flagged = db.Column(db.Boolean, nullable=False, default=False, index=True)
    flag_reason = db.Column(db.Text, nullable=True)
    flagged_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    flagged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Admin edit trail (kept even if status later changes)
    edited_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    edit_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", foreign_keys=[employee_id], backref=db.backref("attendance_entries", lazy=True))
    flagged_by = db.relationship("Employee", foreign_keys=[flagged_by_id])
    edited_by = db.relationship("Employee", foreign_keys=[edited_by_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def work_date(self):
        return self.clock_in.date()

    def to_dict(self, *, include_employee: bool = False) -> dict:
        data = {
            "id": self.id,
            "employeeId": self.employee_id,
            "date": self.work_date.isoformat(),
            "clockIn": to_utc_z(self.clock_in),
            "clockOut": to_utc_z(self.clock_out) if self.clock_out else None,
            "durationMinutes": self.duration_minutes,
            "workSummary": self.work_summary,
            "status": self.status.value,
            "note": self.note,
            "deviceInfo": self.device_info,
            "isManualEntry": self.is_manual_entry,
            "manualEntryReason": self.manual_entry_reason,
            "isFlagged": self.is_flagged,
            "flagReason": self.flag_reason,
            "flaggedBy": self.flagged_by_id,
            "flaggedAt": to_utc_z(self.flagged_at) if self.flagged_at else None,
            "editedBy": self.edited_by_id,
            "editedAt": to_utc_z(self.edited_at) if self.edited_at else None,
            "editReason": self.edit_reason,
            "versionId": self.version_id,
        }
        if include_employee:
            employee = self.employee
            data["employeeName"] = employee.name if employee else None
            data["department"] = employee.department_name if employee else None
            data["flaggedByName"] = self.flagged_by.name if self.flagged_by else None
            data["editedByName"] = self.edited_by.name if self.edited_by else None
        return data


class AttendanceAuditEvent(db.Model):
    """
    Append-only audit trail for attendance entries.

    WHY: Admin overrides change recorded working time. Each change keeps the
    actor, the reason, and the before/after values of the changed fields.

    - Written in the same DB transaction as the change it records.
    - actor_id is NULL for the expiry sweep.
    - No updates or deletes.
    """
    __tablename__ = "attendance_audit_events"
    __table_args__ = (
        db.Index("ix_attendance_audit_entry", "entry_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("attendance_entries.id"), nullable=False, index=True)
    event_type = db.Column(db.String(64), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    entry = db.relationship("AttendanceEntry", backref=db.backref("audit_events", lazy=True))
    actor = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entryId": self.entry_id,
            "eventType": self.event_type,
            "actorId": self.actor_id,
            "actorName": self.actor.name if self.actor else None,
            "occurredAt": to_utc_z(self.occurred_at),
            "note": self.note,
            "payload": self.payload,
        }
