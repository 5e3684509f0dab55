# Overview: Durable store for attendance entries; the single serialization point for open sessions.

"""
Entry Store

WHY: Every component (clock engine, expiry sweep, overrides, aggregation)
reads and writes attendance entries through this one seam, so the open-entry
uniqueness rule and optimistic concurrency live in exactly one place.

CONCURRENCY:
- create_open_entry: check-then-insert, backed by the partial unique index
  uq_attendance_open_per_employee. A concurrent insert that slips past the
  check fails on flush and is reported as ConflictError.
- update: ORM flush guarded by version_id (UPDATE ... WHERE version_id = ?).
- close_if_open: compare-and-swap on (status = IN_PROGRESS, version_id) used by
  both clock-out and the expiry sweep, so exactly one terminal transition wins.

The store flushes but never commits on its own; callers own the transaction
and call commit() when their unit of work is complete.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import AttendanceEntry, Employee, EntryStatus
from ..validation import ensure_chronological, require_text
from .concurrency import commit_with_retry, stale_as_conflict
from attendance.time_utils import day_bounds, whole_minutes


STATUS_ALL = "ALL"
STATUS_FLAGGED = "FLAGGED"


@dataclass(frozen=True)
class LogFilters:
    """Admin log filters. `date` wins over the date_from/date_to range."""
    date: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    employee_id: int | None = None
    department_id: int | None = None
    status: str | None = None


class EntryStore:
    def __init__(self, session):
        self._session = session

    @property
    def session(self):
        return self._session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: int) -> AttendanceEntry:
        entry = self._session.get(AttendanceEntry, entry_id)
        if entry is None:
            raise NotFoundError("Attendance entry not found")
        return entry

    def refresh(self, entry: AttendanceEntry) -> AttendanceEntry:
        self._session.refresh(entry)
        return entry

    def find_open_by_employee(self, employee_id: int) -> AttendanceEntry | None:
        return self._session.query(AttendanceEntry).filter_by(
            employee_id=employee_id,
            status=EntryStatus.IN_PROGRESS,
        ).first()

    def list_open(self) -> list[AttendanceEntry]:
        return self._session.query(AttendanceEntry).filter_by(
            status=EntryStatus.IN_PROGRESS,
        ).order_by(AttendanceEntry.clock_in.asc()).all()

    def list_by_employee(self, employee_id: int, start: datetime, end: datetime) -> list[AttendanceEntry]:
        """Entries whose clock_in falls in [start, end), oldest first."""
        return self._session.query(AttendanceEntry).filter(
            AttendanceEntry.employee_id == employee_id,
            AttendanceEntry.clock_in >= start,
            AttendanceEntry.clock_in < end,
        ).order_by(AttendanceEntry.clock_in.asc(), AttendanceEntry.id.asc()).all()

    def list_in_range(self, start: datetime, end: datetime) -> list[AttendanceEntry]:
        return self._session.query(AttendanceEntry).filter(
            AttendanceEntry.clock_in >= start,
            AttendanceEntry.clock_in < end,
        ).order_by(AttendanceEntry.clock_in.asc(), AttendanceEntry.id.asc()).all()

    def _filtered_logs(self, filters: LogFilters):
        query = self._session.query(AttendanceEntry)

        if filters.date:
            start, end = day_bounds(filters.date)
            query = query.filter(AttendanceEntry.clock_in >= start, AttendanceEntry.clock_in < end)
        else:
            if filters.date_from:
                query = query.filter(AttendanceEntry.clock_in >= day_bounds(filters.date_from)[0])
            if filters.date_to:
                query = query.filter(AttendanceEntry.clock_in < day_bounds(filters.date_to)[1])

        if filters.employee_id:
            query = query.filter(AttendanceEntry.employee_id == filters.employee_id)

        if filters.department_id:
            query = query.join(Employee, Employee.id == AttendanceEntry.employee_id).filter(
                Employee.department_id == filters.department_id
            )

        status = (filters.status or "").strip().upper()
        if status and status != STATUS_ALL:
            if status == STATUS_FLAGGED:
                query = query.filter(AttendanceEntry.is_flagged.is_(True))
            else:
                try:
                    query = query.filter(AttendanceEntry.status == EntryStatus(status))
                except ValueError:
                    raise ValidationError(f"Unknown status filter: {filters.status}")

        return query.order_by(AttendanceEntry.clock_in.desc(), AttendanceEntry.id.desc())

    def query_logs(self, filters: LogFilters, *, page: int, page_size: int) -> tuple[int, list[AttendanceEntry]]:
        if page < 1:
            raise ValidationError("page must be >= 1")
        query = self._filtered_logs(filters)
        count = query.order_by(None).count()
        rows = query.offset((page - 1) * page_size).limit(page_size).all()
        return count, rows

    def list_logs(self, filters: LogFilters, *, limit: int = 10000) -> list[AttendanceEntry]:
        return self._filtered_logs(filters).limit(limit).all()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_open_entry(
        self,
        employee_id: int,
        at: datetime,
        *,
        note: str | None = None,
        device_info: str | None = None,
    ) -> AttendanceEntry:
        if self.find_open_by_employee(employee_id):
            raise ConflictError("Employee already has an open attendance entry")

        entry = AttendanceEntry(
            employee_id=employee_id,
            clock_in=at,
            status=EntryStatus.IN_PROGRESS,
            note=note,
            device_info=device_info,
            is_manual_entry=False,
            is_flagged=False,
        )
        self._session.add(entry)
        try:
            self._session.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent clock-in for the same employee
            self._session.rollback()
            raise ConflictError("Employee already has an open attendance entry") from exc
        return entry

    def create_closed_entry(
        self,
        *,
        employee_id: int,
        clock_in: datetime,
        clock_out: datetime,
        status: EntryStatus,
        work_summary: str | None = None,
        is_manual_entry: bool = False,
        manual_entry_reason: str | None = None,
    ) -> AttendanceEntry:
        if status.is_open:
            raise ValidationError("Closed entries cannot be IN_PROGRESS")
        if clock_out is None:
            raise ValidationError("clockOut is required")
        ensure_chronological(clock_in, clock_out)
        if is_manual_entry:
            manual_entry_reason = require_text(manual_entry_reason, "manualEntryReason")

        entry = AttendanceEntry(
            employee_id=employee_id,
            clock_in=clock_in,
            clock_out=clock_out,
            duration_minutes=whole_minutes(clock_in, clock_out),
            status=status,
            work_summary=work_summary,
            is_manual_entry=is_manual_entry,
            manual_entry_reason=manual_entry_reason,
            is_flagged=False,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def update(
        self,
        entry_id: int,
        mutator: Callable[[AttendanceEntry], None],
        *,
        expected_version: int | None = None,
    ) -> AttendanceEntry:
        """
        Apply mutator to the entry and flush under the version check.

        expected_version lets a client that read the entry earlier assert it
        has not changed since; a mismatch is a ConflictError.
        """
        entry = self.get(entry_id)
        if expected_version is not None and entry.version_id != expected_version:
            raise ConflictError("Entry was modified concurrently; reload and retry")

        mutator(entry)
        with stale_as_conflict(self._session):
            self._session.flush()
        return entry

    def close_if_open(
        self,
        entry_id: int,
        expected_version: int,
        *,
        clock_out: datetime,
        duration_minutes: int,
        status: EntryStatus,
        work_summary: str | None = None,
    ) -> bool:
        """
        Compare-and-swap an open entry into a terminal status.

        Returns False (no error) when the entry is no longer IN_PROGRESS at
        expected_version, i.e. another writer closed or edited it first.
        """
        if status.is_open:
            raise ValidationError("Terminal status required")

        values = {
            "clock_out": clock_out,
            "duration_minutes": duration_minutes,
            "status": status,
            "version_id": AttendanceEntry.version_id + 1,
        }
        if work_summary is not None:
            values["work_summary"] = work_summary

        stmt = (
            sa.update(AttendanceEntry)
            .where(
                AttendanceEntry.id == entry_id,
                AttendanceEntry.status == EntryStatus.IN_PROGRESS,
                AttendanceEntry.version_id == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    def add(self, obj) -> None:
        """Stage a related record (e.g. audit event) in the current unit of work."""
        self._session.add(obj)

    def commit(self) -> None:
        commit_with_retry(self._session)

    def rollback(self) -> None:
        self._session.rollback()
