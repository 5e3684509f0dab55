# Overview: CSV/JSON rendering of admin attendance logs for download.

from __future__ import annotations

import csv
import io
import json

from ..models import AttendanceEntry
from attendance.time_utils import to_utc_z

# Column order is consumed by downstream spreadsheet tooling; do not reorder.
CSV_HEADERS = [
    "Employee",
    "Department",
    "Date",
    "Clock In",
    "Clock Out",
    "Duration (minutes)",
    "Work Summary",
    "Status",
    "Flagged",
    "Manual Entry",
]


def _yes_with_reason(flag: bool, reason: str | None) -> str:
    return f"Yes: {reason or ''}" if flag else "No"


def entry_to_csv_row(entry: AttendanceEntry) -> list[str]:
    employee = entry.employee
    return [
        employee.name if employee else "",
        (employee.department_name if employee else None) or "",
        entry.work_date.isoformat(),
        to_utc_z(entry.clock_in) or "",
        to_utc_z(entry.clock_out) or "",
        "" if entry.duration_minutes is None else str(entry.duration_minutes),
        entry.work_summary or "",
        entry.status.value,
        _yes_with_reason(entry.is_flagged, entry.flag_reason),
        _yes_with_reason(entry.is_manual_entry, entry.manual_entry_reason),
    ]


def render_csv(entries: list[AttendanceEntry]) -> str:
    """Every cell double-quoted, embedded quotes doubled, rows separated by \\n."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, doublequote=True, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow(entry_to_csv_row(entry))
    return buf.getvalue()


def render_json(entries: list[AttendanceEntry]) -> str:
    return json.dumps([e.to_dict(include_employee=True) for e in entries], indent=2)
