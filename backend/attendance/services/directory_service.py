# Overview: Read interface over the employee directory used by aggregation and overrides.

from __future__ import annotations

from typing import Protocol

from ..errors import NotFoundError, ValidationError
from ..models import Department, Employee


class EmployeeDirectory(Protocol):
    """What the attendance engine needs from the employee directory."""

    def get(self, employee_id: int) -> Employee | None: ...

    def require(self, employee_id: int) -> Employee: ...

    def list_active(self) -> list[Employee]: ...


class SqlEmployeeDirectory:
    """EmployeeDirectory backed by the local employees table."""

    def __init__(self, session):
        self._session = session

    def get(self, employee_id: int) -> Employee | None:
        return self._session.get(Employee, employee_id)

    def require(self, employee_id: int) -> Employee:
        employee = self.get(employee_id)
        if not employee or not employee.is_active:
            raise NotFoundError("Employee not found")
        return employee

    def list_active(self) -> list[Employee]:
        return self._session.query(Employee).filter_by(
            is_active=True,
        ).order_by(Employee.name.asc(), Employee.id.asc()).all()


def create_department(session, name: str) -> Department:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Department name is required")
    if session.query(Department).filter_by(name=name).first():
        raise ValidationError(f"Department '{name}' already exists")
    department = Department(name=name)
    session.add(department)
    session.commit()
    return department
