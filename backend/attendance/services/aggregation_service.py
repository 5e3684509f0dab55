# Overview: Read-only attendance views: live board, today, monthly history, admin summary, admin logs.

"""
Aggregation Engine

WHY: Employees and admins look at the same entry log through different
lenses. Everything here is a pure read of the Entry Store plus the Employee
Directory; nothing is cached and nothing is written. Staleness is bounded by
the caller's polling interval.

Entries belong to the calendar day (UTC) of their clock_in. Worked minutes
only count closed entries; an open session contributes its elapsed time only
where noted (live board, status).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from ..errors import ValidationError
from ..models import AttendanceEntry, EntryStatus
from .directory_service import EmployeeDirectory
from .entry_store import EntryStore, LogFilters
from .policy import AttendancePolicy
from attendance.time_utils import day_bounds, month_bounds, to_utc_z, utcnow

DAILY_ATTENDANCE_DAYS = 7

# Whether an entry's duration counts as worked time. Every status must be
# listed; a new status without a row here fails loudly on lookup.
_COUNTS_AS_WORKED = {
    EntryStatus.IN_PROGRESS: False,
    EntryStatus.COMPLETED: True,
    EntryStatus.AUTO_EXPIRED: True,
    EntryStatus.EDITED: True,
    EntryStatus.MANUAL: True,
}


def worked_minutes(entries: Iterable[AttendanceEntry]) -> int:
    return sum(e.duration_minutes or 0 for e in entries if _COUNTS_AS_WORKED[e.status])


def group_by_day(entries: Iterable[AttendanceEntry]) -> dict[date, list[AttendanceEntry]]:
    grouped: dict[date, list[AttendanceEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.work_date].append(entry)
    return grouped


class AggregationEngine:
    def __init__(
        self,
        store: EntryStore,
        directory: EmployeeDirectory,
        policy: AttendancePolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._directory = directory
        self._policy = policy
        self._clock = clock

    # ------------------------------------------------------------------
    # Employee views
    # ------------------------------------------------------------------

    def today(self, employee_id: int) -> dict:
        now = self._clock()
        start, end = day_bounds(now.date())
        entries = self._store.list_by_employee(employee_id, start, end)
        is_in = self._store.find_open_by_employee(employee_id) is not None

        closed_outs = [e.clock_out for e in entries if e.clock_out is not None]
        return {
            "date": now.date().isoformat(),
            "totalWorkMinutes": worked_minutes(entries),
            "firstClockIn": to_utc_z(entries[0].clock_in) if entries else None,
            "lastClockOut": to_utc_z(max(closed_outs)) if closed_outs and not is_in else None,
            "isCurrentlyIn": is_in,
            "hasAutoExpiredEntry": any(e.status is EntryStatus.AUTO_EXPIRED for e in entries),
            "entries": [e.to_dict() for e in entries],
        }

    def history(self, employee_id: int, year: int, month: int) -> dict:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        if not 1970 <= year <= 9999:
            raise ValidationError("year is out of range")

        start, end = month_bounds(year, month)
        grouped = group_by_day(self._store.list_by_employee(employee_id, start, end))

        # Every calendar day of the month up to today, most recent first
        last_day = min((end - timedelta(days=1)).date(), self._clock().date())
        days = []
        day = last_day
        while day >= start.date():
            day_entries = grouped.get(day, [])
            days.append({
                "date": day.isoformat(),
                "entries": [e.to_dict() for e in day_entries],
                "totalWorkMinutes": worked_minutes(day_entries),
            })
            day -= timedelta(days=1)

        # Entries dated after "today" (clock skew, future backfill) still count
        days_worked = len(grouped)
        total = sum(worked_minutes(v) for v in grouped.values())
        return {
            "year": year,
            "month": month,
            "entries": days,
            "totalDaysWorked": days_worked,
            "totalWorkMinutes": total,
            "avgMinutesPerDay": total // days_worked if days_worked else 0,
        }

    # ------------------------------------------------------------------
    # Admin views
    # ------------------------------------------------------------------

    def live_status(self) -> dict:
        now = self._clock()
        open_entries = self._store.list_open()
        open_by_employee = {e.employee_id: e for e in open_entries}

        live = []
        for entry in open_entries:
            employee = entry.employee
            elapsed = max(int((now - entry.clock_in).total_seconds()), 0)
            expires_in = max(0, self._policy.max_session_seconds - elapsed)
            live.append({
                "entryId": entry.id,
                "employeeId": entry.employee_id,
                "employeeName": employee.name if employee else None,
                "department": employee.department_name if employee else None,
                "clockedInAt": to_utc_z(entry.clock_in),
                "elapsedSeconds": elapsed,
                "expiresInSeconds": expires_in,
                "willAutoExpire": expires_in <= self._policy.warning_window_seconds,
            })

        not_clocked = [
            {
                "employeeId": employee.id,
                "employeeName": employee.name,
                "department": employee.department_name,
            }
            for employee in self._directory.list_active()
            if employee.id not in open_by_employee
        ]

        return {
            "liveCount": len(live),
            "liveEmployees": live,
            "notClockedIn": not_clocked,
        }

    def admin_summary(self, day: date | None = None) -> dict:
        day = day or self._clock().date()
        policy = self._policy
        employees = self._directory.list_active()
        active_ids = {e.id for e in employees}

        window_days = max(policy.summary_window_days, DAILY_ATTENDANCE_DAYS)
        range_start = day_bounds(day - timedelta(days=window_days - 1))[0]
        range_end = day_bounds(day)[1]
        entries = self._store.list_in_range(range_start, range_end)
        by_day = group_by_day(entries)

        today_entries = by_day.get(day, [])
        present_ids = {e.employee_id for e in today_entries}

        metrics_start = day - timedelta(days=policy.summary_window_days - 1)
        metric_entries = [e for e in entries if e.work_date >= metrics_start]

        daily = []
        for offset in range(DAILY_ATTENDANCE_DAYS - 1, -1, -1):
            d = day - timedelta(days=offset)
            daily.append({
                "date": d.isoformat(),
                "count": len({e.employee_id for e in by_day.get(d, [])}),
            })

        return {
            "date": day.isoformat(),
            "stats": {
                "presentToday": len(present_ids),
                "autoExpiredToday": sum(1 for e in today_entries if e.status is EntryStatus.AUTO_EXPIRED),
                "absentToday": len(active_ids - present_ids),
                "flaggedEntries": sum(1 for e in metric_entries if e.is_flagged),
            },
            "dailyAttendance": daily,
            "employeeMetrics": self._employee_metrics(employees, metric_entries),
        }

    def _employee_metrics(self, employees, entries: list[AttendanceEntry]) -> list[dict]:
        policy = self._policy
        by_employee: dict[int, list[AttendanceEntry]] = defaultdict(list)
        for entry in entries:
            by_employee[entry.employee_id].append(entry)

        metrics = []
        for employee in employees:
            days = group_by_day(by_employee.get(employee.id, []))
            total = sum(worked_minutes(v) for v in days.values())
            late = 0
            early = 0
            for d, day_entries in days.items():
                late_after = datetime.combine(d, policy.expected_start) + timedelta(minutes=policy.late_grace_minutes)
                if min(e.clock_in for e in day_entries) > late_after:
                    late += 1

                # A day still in progress has no departure yet
                if any(e.clock_out is None for e in day_entries):
                    continue
                if max(e.clock_out for e in day_entries) < datetime.combine(d, policy.expected_end):
                    early += 1

            metrics.append({
                "employeeId": employee.id,
                "employeeName": employee.name,
                "department": employee.department_name,
                "daysPresent": len(days),
                "totalWorkMinutes": total,
                "avgMinutesPerDay": total // len(days) if days else 0,
                "lateArrivals": late,
                "earlyDepartures": early,
            })
        return metrics

    def admin_logs(self, filters: LogFilters, *, page: int = 1) -> dict:
        page_size = self._policy.logs_page_size
        count, rows = self._store.query_logs(filters, page=page, page_size=page_size)
        return {
            "count": count,
            "page": page,
            "pageSize": page_size,
            "results": [e.to_dict(include_employee=True) for e in rows],
        }
