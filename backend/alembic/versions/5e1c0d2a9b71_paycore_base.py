"""paycore_base: HR inputs, HR policies, payroll runs, payslips

- UUID PKs via sa.Uuid + python default uuid.uuid4
- JSON columns (JSONB on PostgreSQL) for settings, deductions and snapshots
- Enums stored as VARCHAR + CHECK (native_enum=False) so SQLite and PostgreSQL agree
- UNIQUE(year, month, period) on payroll_runs makes run creation idempotent
"""

from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import func

# --- Alembic headers ---------------------------------------------------------
revision: str = "5e1c0d2a9b71"
down_revision: str | None = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True)


def upgrade() -> None:
    # employees ---------------------------------------------------------------
    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("status", _enum("employee_status", "ACTIVE", "SUSPENDED", "INACTIVE"),
                  nullable=False, server_default="ACTIVE"),
        sa.Column("pay_type", _enum("employee_pay_type", "MONTHLY", "DAILY", "MONTHLY_NO_ATTENDANCE", "UNPAID"),
                  nullable=False, server_default="MONTHLY"),
        sa.Column("salary_monthly", sa.Numeric(12, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("meta", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now()),
    )

    # attendance_events -------------------------------------------------------
    op.create_table(
        "attendance_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("direction", _enum("attendance_direction", "IN", "OUT"), nullable=False),
    )
    op.create_index("ix_attendance_events_employee_id", "attendance_events", ["employee_id"])
    op.create_index("ix_attendance_events_timestamp", "attendance_events", ["timestamp"])

    # attendance_adjustments --------------------------------------------------
    op.create_table(
        "attendance_adjustments",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("kind", _enum("attendance_adjustment_kind", "ADD_RECORD", "FORGIVE_LATE"), nullable=False),
        sa.Column("adjusted_in", sa.DateTime(), nullable=True),
        sa.Column("adjusted_out", sa.DateTime(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.UniqueConstraint("employee_id", "day", name="uq_attendance_adjustment_day"),
    )

    # leave_requests ----------------------------------------------------------
    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leave_type", sa.String(length=32), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("status", _enum("leave_status", "PENDING", "APPROVED", "REJECTED", "CANCELLED"),
                  nullable=False, server_default="PENDING"),
        sa.Column("over_limit", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_half_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("half_day_session", _enum("half_day_session", "MORNING", "AFTERNOON"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"])
    op.create_index("ix_leave_requests_year", "leave_requests", ["year"])

    # holidays ----------------------------------------------------------------
    op.create_table(
        "holidays",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("day", sa.Date(), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
    )

    # hr_policies -------------------------------------------------------------
    op.create_table(
        "hr_policies",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, unique=True),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("settings", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now()),
    )

    # payroll_runs ------------------------------------------------------------
    op.create_table(
        "payroll_runs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("status", _enum("payroll_run_status", "DRAFT", "SENT_TO_EMPLOYEE", "FINAL"),
                  nullable=False, server_default="DRAFT"),
        sa.Column("policy_version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=120), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("finalized_at", sa.DateTime(), nullable=True),
        sa.Column("meta", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now()),
        sa.UniqueConstraint("year", "month", "period", name="uq_payroll_run_key"),
    )

    # payslips ----------------------------------------------------------------
    op.create_table(
        "payslips",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("run_id", sa.Uuid(), sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("employee_name", sa.String(length=200), nullable=False),
        sa.Column("reference_no", sa.String(length=64), nullable=False, unique=True),
        sa.Column("base_salary", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_deductions", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("net_salary", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("deductions", JSONType, nullable=False),
        sa.Column("present_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("late_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("absent_units", sa.Numeric(6, 1), nullable=False, server_default="0"),
        sa.Column("leave_days", sa.Numeric(6, 1), nullable=False, server_default="0"),
        sa.Column("snapshot_json", JSONType, nullable=False),
        sa.Column("status", _enum("payslip_status", "PENDING_REVIEW", "ACCEPTED", "REJECTED"),
                  nullable=False, server_default="PENDING_REVIEW"),
        sa.Column("hr_note", sa.Text(), nullable=True),
        sa.Column("employee_note", sa.Text(), nullable=True),
        sa.Column("sent_to_employee_at", sa.DateTime(), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now()),
        sa.UniqueConstraint("run_id", "employee_id", name="uq_payslip_run_employee"),
    )
    op.create_index("ix_payslips_run_id", "payslips", ["run_id"])


def downgrade() -> None:
    op.drop_index("ix_payslips_run_id", table_name="payslips")
    op.drop_table("payslips")
    op.drop_table("payroll_runs")
    op.drop_table("hr_policies")
    op.drop_table("holidays")
    op.drop_index("ix_leave_requests_year", table_name="leave_requests")
    op.drop_index("ix_leave_requests_employee_id", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_table("attendance_adjustments")
    op.drop_index("ix_attendance_events_timestamp", table_name="attendance_events")
    op.drop_index("ix_attendance_events_employee_id", table_name="attendance_events")
    op.drop_table("attendance_events")
    op.drop_table("employees")
