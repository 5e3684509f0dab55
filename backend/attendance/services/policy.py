# Overview: Attendance policy constants resolved from application config.

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Mapping

from ..errors import ValidationError
from attendance.time_utils import parse_clock_time


@dataclass(frozen=True)
class AttendancePolicy:
    """
    Tunable rules for session tracking.

    max_session_seconds caps a single open session; the expiry sweep closes
    anything older. warning_window_seconds is how early status reports
    willAutoExpire. expected_start/expected_end/late_grace_minutes feed the
    late-arrival and early-departure metrics.
    """
    max_session_seconds: int = 4 * 60 * 60
    warning_window_seconds: int = 30 * 60
    sweep_interval_seconds: int = 60
    expected_start: time = time(9, 0)
    expected_end: time = time(17, 0)
    late_grace_minutes: int = 5
    summary_window_days: int = 30
    logs_page_size: int = 10

    def __post_init__(self):
        if self.max_session_seconds <= 0:
            raise ValidationError("max_session_seconds must be > 0")
        if self.warning_window_seconds < 0:
            raise ValidationError("warning_window_seconds must be >= 0")
        if self.sweep_interval_seconds <= 0:
            raise ValidationError("sweep_interval_seconds must be > 0")
        if self.expected_end <= self.expected_start:
            raise ValidationError("expected_end must be after expected_start")
        if self.late_grace_minutes < 0:
            raise ValidationError("late_grace_minutes must be >= 0")
        if self.summary_window_days < 1:
            raise ValidationError("summary_window_days must be >= 1")
        if self.logs_page_size < 1:
            raise ValidationError("logs_page_size must be >= 1")

    @property
    def max_session_minutes(self) -> int:
        return self.max_session_seconds // 60

    @classmethod
    def from_config(cls, config: Mapping) -> "AttendancePolicy":
        try:
            expected_start = parse_clock_time(config.get("ATTENDANCE_EXPECTED_START", "09:00"))
            expected_end = parse_clock_time(config.get("ATTENDANCE_EXPECTED_END", "17:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid expected working hours: {exc}") from exc

        return cls(
            max_session_seconds=int(config.get("ATTENDANCE_MAX_SESSION_SECONDS", 4 * 60 * 60)),
            warning_window_seconds=int(config.get("ATTENDANCE_WARNING_WINDOW_SECONDS", 30 * 60)),
            sweep_interval_seconds=int(config.get("ATTENDANCE_SWEEP_INTERVAL_SECONDS", 60)),
            expected_start=expected_start,
            expected_end=expected_end,
            late_grace_minutes=int(config.get("ATTENDANCE_LATE_GRACE_MINUTES", 5)),
            summary_window_days=int(config.get("ATTENDANCE_SUMMARY_WINDOW_DAYS", 30)),
            logs_page_size=int(config.get("ATTENDANCE_LOGS_PAGE_SIZE", 10)),
        )
