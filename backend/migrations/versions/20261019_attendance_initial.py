"""Attendance engine initial schema

Revision ID: 20261019_attendance_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_attendance_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_departments_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("department_id", sa.Integer(), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_employees_email"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("employees", schema=None) as batch_op:
        batch_op.create_index("ix_employees_department", ["department_id"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_is_revoked", ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_employee_active", ["employee_id", "is_revoked"], unique=False)

    op.create_table(
        "attendance_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("clock_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("clock_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("work_summary", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="IN_PROGRESS"),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("device_info", sa.String(255), nullable=True),
        sa.Column("is_manual_entry", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("manual_entry_reason", sa.Text(), nullable=True),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("flag_reason", sa.Text(), nullable=True),
        sa.Column("flagged_by_id", sa.Integer(), nullable=True),
        sa.Column("flagged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edited_by_id", sa.Integer(), nullable=True),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edit_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["flagged_by_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["edited_by_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("clock_out IS NULL OR clock_out >= clock_in", name="ck_attendance_chronological"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("attendance_entries", schema=None) as batch_op:
        batch_op.create_index("ix_attendance_entries_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_attendance_entries_is_flagged", ["is_flagged"], unique=False)
        batch_op.create_index("ix_attendance_employee_clock_in", ["employee_id", "clock_in"], unique=False)
        batch_op.create_index("ix_attendance_status", ["status"], unique=False)

    # One open session per employee
    op.create_index(
        "uq_attendance_open_per_employee",
        "attendance_entries",
        ["employee_id"],
        unique=True,
        sqlite_where=sa.text("status = 'IN_PROGRESS'"),
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table(
        "attendance_audit_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["entry_id"], ["attendance_entries.id"]),
        sa.ForeignKeyConstraint(["actor_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("attendance_audit_events", schema=None) as batch_op:
        batch_op.create_index("ix_attendance_audit_events_entry_id", ["entry_id"], unique=False)
        batch_op.create_index("ix_attendance_audit_entry", ["entry_id", "occurred_at"], unique=False)


def downgrade():
    with op.batch_alter_table("attendance_audit_events", schema=None) as batch_op:
        batch_op.drop_index("ix_attendance_audit_entry")
        batch_op.drop_index("ix_attendance_audit_events_entry_id")
    op.drop_table("attendance_audit_events")

    op.drop_index("uq_attendance_open_per_employee", table_name="attendance_entries")
    with op.batch_alter_table("attendance_entries", schema=None) as batch_op:
        batch_op.drop_index("ix_attendance_status")
        batch_op.drop_index("ix_attendance_employee_clock_in")
        batch_op.drop_index("ix_attendance_entries_is_flagged")
        batch_op.drop_index("ix_attendance_entries_employee_id")
    op.drop_table("attendance_entries")

    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.drop_index("ix_session_tokens_employee_active")
        batch_op.drop_index("ix_session_tokens_is_revoked")
        batch_op.drop_index("ix_session_tokens_expires_at")
        batch_op.drop_index("ix_session_tokens_token_hash")
        batch_op.drop_index("ix_session_tokens_employee_id")
    op.drop_table("session_tokens")

    with op.batch_alter_table("employees", schema=None) as batch_op:
        batch_op.drop_index("ix_employees_department")
    op.drop_table("employees")

    op.drop_table("departments")
