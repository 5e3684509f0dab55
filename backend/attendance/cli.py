# Overview: Flask CLI command groups for bootstrap, directory management, and the expiry sweep.

# backend/attendance/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (prefer `flask db upgrade` once migrations are in use).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Employee directory:
# - python -m flask directory add-department --name "Engineering"
# - python -m flask directory add-employee --name "Jane Smith" --email jane@example.com --department-id 1 [--admin]
#   Create an employee (prompts for password).
# - python -m flask directory list
#
# Attendance expiry sweep:
# - python -m flask attendance sweep
#   Run one sweep: auto-expire sessions open longer than ATTENDANCE_MAX_SESSION_SECONDS.
# - python -m flask attendance run-scheduler [--interval 60]
#   Run the sweep in the foreground every N seconds until Ctrl+C.
# - python -m flask attendance open-sessions
#   List currently open sessions.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Employee
from .services import auth_service, directory_service
from .services.auth_service import PasswordValidationError
from .services.entry_store import EntryStore
from .services.runtime import get_runtime
from .errors import ValidationError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('directory')
def directory_group():
    """Employee directory commands."""


@directory_group.command('add-department')
@click.option('--name', required=True, help='Department name')
@with_appcontext
def add_department_cli(name):
    try:
        department = directory_service.create_department(db.session, name)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created department {department.id}: {department.name}")


@directory_group.command('add-employee')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--department-id', type=int, help='Department ID')
@click.option('--admin', 'is_admin', is_flag=True, help='Grant the attendance admin role')
@with_appcontext
def add_employee_cli(name, email, password, department_id, is_admin):
    try:
        employee = auth_service.create_employee(
            name,
            email,
            password,
            department_id=department_id,
            is_admin=is_admin,
        )
    except (ValueError, PasswordValidationError) as e:
        raise click.ClickException(str(e))
    role = "admin" if employee.is_admin else "employee"
    click.echo(f"PASS Created {role} {employee.id}: {employee.name} <{employee.email}>")


@directory_group.command('list')
@with_appcontext
def list_employees():
    """List all employees."""
    employees = db.session.query(Employee).order_by(Employee.id.asc()).all()

    if not employees:
        click.echo("No employees found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<30} {'Department':<20} {'Admin':<6} {'Active'}")
    click.echo("="*100)

    for e in employees:
        admin_str = "Yes" if e.is_admin else "No"
        active_str = "Yes" if e.is_active else "No"
        click.echo(f"{e.id:<5} {e.name:<25} {e.email:<30} {(e.department_name or '-'):<20} {admin_str:<6} {active_str}")

    click.echo("="*100 + "\n")


@click.group('attendance')
def attendance_group():
    """Attendance session maintenance."""


@attendance_group.command('sweep')
@with_appcontext
def sweep_cli():
    """Auto-expire sessions open longer than the configured maximum."""
    expired = get_runtime().scheduler.tick()
    click.echo(f"Expired {expired} session(s).")


@attendance_group.command('run-scheduler')
@click.option('--interval', type=float, help='Seconds between sweeps (default: ATTENDANCE_SWEEP_INTERVAL_SECONDS)')
@with_appcontext
def run_scheduler_cli(interval):
    """Run the expiry sweep in the foreground until interrupted."""
    runtime = get_runtime()
    interval = interval or runtime.policy.sweep_interval_seconds
    click.echo(f"Expiry sweep running every {interval:g}s (Ctrl+C to stop)")
    app = current_app._get_current_object()
    try:
        runtime.scheduler.run_forever(app, interval=interval)
    except KeyboardInterrupt:
        click.echo("Stopped.")


@attendance_group.command('open-sessions')
@with_appcontext
def open_sessions_cli():
    """List currently open sessions."""
    runtime = get_runtime()
    now = runtime.now()
    entries = EntryStore(db.session).list_open()
    if not entries:
        click.echo("No open sessions.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Entry':<7} {'Employee':<25} {'Clocked In':<22} {'Elapsed (min)':<14}")
    click.echo("="*90)
    for entry in entries:
        name = entry.employee.name if entry.employee else str(entry.employee_id)
        elapsed = int((now - entry.clock_in).total_seconds() // 60)
        click.echo(f"{entry.id:<7} {name:<25} {to_utc_z(entry.clock_in):<22} {elapsed:<14}")
    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(directory_group)
    app.cli.add_command(attendance_group)
