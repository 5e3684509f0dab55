from __future__ import annotations

from ..extensions import db
from attendance.time_utils import to_utc_z


class Department(db.Model):
    """
    Organizational unit used to filter admin attendance views.
    """
    __tablename__ = "departments"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_departments_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
        }


class Employee(db.Model):
    """
    Employee directory record.

    WHY: Attendance entries reference employees by id; the live view and
    admin summary need the full active roster to compute "not clocked in"
    and "absent" sets. The directory is owned elsewhere in the product; this
    table is its local projection plus the credentials used for login.

    is_admin marks the trusted role allowed to edit, flag, and backfill entries.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_employees_email"),
        db.Index("ix_employees_department", "department_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    department = db.relationship("Department", backref=db.backref("employees", lazy=True))

    @property
    def department_name(self) -> str | None:
        return self.department.name if self.department else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "departmentId": self.department_id,
            "department": self.department_name,
            "isAdmin": self.is_admin,
            "isActive": self.is_active,
            "lastLoginAt": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
