"""
Pytest fixtures for attendance engine tests.

Provides the test app on in-memory SQLite, a per-test table wipe, a fixed
clock wired into the app runtime, and employee/admin fixtures.
"""

from datetime import datetime, timedelta

import pytest
from attendance import create_app
from attendance.extensions import db
from attendance.models import Department, Employee
from attendance.services.auth_service import hash_password
from attendance.services.runtime import build_engines, get_runtime

PASSWORD = "Password123!"

# Tuesday, mid-day UTC
T0 = datetime(2026, 3, 10, 12, 0, 0)


class FixedClock:
    """Manually advanced clock; callable like utcnow()."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ATTENDANCE_SCHEDULER_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def clock(app):
    """Pin the runtime clock to T0 for the duration of a test."""
    runtime = get_runtime()
    original = runtime.clock
    fixed = FixedClock(T0)
    runtime.clock = fixed
    yield fixed
    runtime.clock = original


@pytest.fixture(scope='function')
def engines(db_session, clock):
    return build_engines()


@pytest.fixture(scope='function')
def department(db_session):
    dept = Department(name="Engineering")
    db_session.add(dept)
    db_session.commit()
    return dept


def _make_employee(db_session, name, email, *, department=None, is_admin=False, is_active=True):
    employee = Employee(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD, rounds=4),
        department_id=department.id if department else None,
        is_admin=is_admin,
        is_active=is_active,
    )
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def employee(db_session, department):
    """Regular employee in Engineering."""
    return _make_employee(db_session, "Alice Worker", "alice@example.com", department=department)


@pytest.fixture(scope='function')
def other_employee(db_session):
    """Regular employee with no department."""
    return _make_employee(db_session, "Bob Builder", "bob@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    """Admin allowed to edit, flag, and backfill entries."""
    return _make_employee(db_session, "Carol Admin", "carol@example.com", is_admin=True)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for an employee."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
