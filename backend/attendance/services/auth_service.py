# Overview: Service-layer operations for auth; password hashing and employee credentials.

"""
Authentication Service

WHY: Every clock action and override must be attributable to an employee.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12 by default)
- Minimum 8 characters, mixed case, digit, special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import Department, Employee
from attendance.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes rather than raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_employee(
    name: str,
    email: str,
    password: str,
    *,
    department_id: int | None = None,
    is_admin: bool = False,
    rounds: int = 12,
) -> Employee:
    """
    Create a directory employee with login credentials.

    Raises:
        ValueError: If the email is taken or the department doesn't exist
        PasswordValidationError: If password doesn't meet requirements
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email:
        raise ValueError("name and email are required")

    if db.session.query(Employee).filter_by(email=email).first():
        raise ValueError("Email already exists")

    if department_id is not None and not db.session.get(Department, department_id):
        raise ValueError("Department not found")

    employee = Employee(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        department_id=department_id,
        is_admin=is_admin,
    )
    db.session.add(employee)
    db.session.commit()
    return employee


def authenticate(email: str, password: str) -> Employee | None:
    """
    Authenticate employee by email and password.

    Returns Employee if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    employee = db.session.query(Employee).filter(
        Employee.email == (email or "").strip().lower(),
        Employee.is_active.is_(True),
    ).first()

    if not employee:
        return None

    if verify_password(password, employee.password_hash):
        employee.last_login_at = utcnow()
        db.session.commit()
        return employee

    return None
