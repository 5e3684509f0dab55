# backend/attendance/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/attendance.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///attendance.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Session expiry policy
    ATTENDANCE_MAX_SESSION_SECONDS = int(os.environ.get("ATTENDANCE_MAX_SESSION_SECONDS", 4 * 60 * 60))
    ATTENDANCE_WARNING_WINDOW_SECONDS = int(os.environ.get("ATTENDANCE_WARNING_WINDOW_SECONDS", 30 * 60))
    ATTENDANCE_SWEEP_INTERVAL_SECONDS = int(os.environ.get("ATTENDANCE_SWEEP_INTERVAL_SECONDS", 60))
    ATTENDANCE_SCHEDULER_ENABLED = os.environ.get("ATTENDANCE_SCHEDULER_ENABLED", "false").lower() == "true"

    # Expected working hours (UTC, HH:MM) used for late/early metrics
    ATTENDANCE_EXPECTED_START = os.environ.get("ATTENDANCE_EXPECTED_START", "09:00")
    ATTENDANCE_EXPECTED_END = os.environ.get("ATTENDANCE_EXPECTED_END", "17:00")
    ATTENDANCE_LATE_GRACE_MINUTES = int(os.environ.get("ATTENDANCE_LATE_GRACE_MINUTES", 5))

    ATTENDANCE_SUMMARY_WINDOW_DAYS = int(os.environ.get("ATTENDANCE_SUMMARY_WINDOW_DAYS", 30))
    ATTENDANCE_LOGS_PAGE_SIZE = int(os.environ.get("ATTENDANCE_LOGS_PAGE_SIZE", 10))
