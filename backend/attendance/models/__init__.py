from .directory import Department, Employee
from .auth import SessionToken
from .attendance import EntryStatus, AttendanceEntry, AttendanceAuditEvent

__all__ = [
    'Department', 'Employee',
    'SessionToken',
    'EntryStatus', 'AttendanceEntry', 'AttendanceAuditEvent',
]
