# backend/paycore/models/hr.py
"""
Upstream HR records the payroll engine reads.

Tables:
- employees
- attendance_events
- attendance_adjustments
- leave_requests
- holidays
- hr_policies   (versioned settings snapshots)

These are owned by their upstream modules; payroll only reads them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from paycore.db import Base, JSONType


# ---------- Enums (stored as VARCHAR + CHECK so SQLite and PostgreSQL agree) ----------
EmployeeStatus = sa.Enum(
    "ACTIVE", "SUSPENDED", "INACTIVE", name="employee_status", native_enum=False, create_constraint=True
)
EmployeePayType = sa.Enum(
    "MONTHLY", "DAILY", "MONTHLY_NO_ATTENDANCE", "UNPAID",
    name="employee_pay_type", native_enum=False, create_constraint=True,
)
AttendanceDirection = sa.Enum("IN", "OUT", name="attendance_direction", native_enum=False, create_constraint=True)
AdjustmentKind = sa.Enum(
    "ADD_RECORD", "FORGIVE_LATE", name="attendance_adjustment_kind", native_enum=False, create_constraint=True
)
LeaveStatus = sa.Enum(
    "PENDING", "APPROVED", "REJECTED", "CANCELLED", name="leave_status", native_enum=False, create_constraint=True
)
HalfDaySession = sa.Enum("MORNING", "AFTERNOON", name="half_day_session", native_enum=False, create_constraint=True)


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[str] = mapped_column(EmployeeStatus, nullable=False, server_default="ACTIVE")
    pay_type: Mapped[str] = mapped_column(EmployeePayType, nullable=False, server_default="MONTHLY")
    # NULL or 0 means "not on payroll"
    salary_monthly: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    start_date: Mapped[Optional[date]] = mapped_column(Date(), nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date(), nullable=True)

    meta: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Employee {self.code} {self.display_name}>"


class AttendanceEvent(Base):
    __tablename__ = "attendance_events"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Local wall-clock time of the scan
    timestamp: Mapped[datetime] = mapped_column(DateTime(), nullable=False, index=True)
    direction: Mapped[str] = mapped_column(AttendanceDirection, nullable=False)

    def __repr__(self) -> str:
        return f"<AttendanceEvent {self.employee_id} {self.direction} {self.timestamp}>"


class AttendanceAdjustment(Base):
    __tablename__ = "attendance_adjustments"
    __table_args__ = (UniqueConstraint("employee_id", "day", name="uq_attendance_adjustment_day"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[date] = mapped_column(Date(), nullable=False)
    kind: Mapped[str] = mapped_column(AdjustmentKind, nullable=False)
    adjusted_in: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    adjusted_out: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)

    def __repr__(self) -> str:
        return f"<AttendanceAdjustment {self.employee_id} {self.day} {self.kind}>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    leave_type: Mapped[str] = mapped_column(String(32), nullable=False)  # SICK / BUSINESS / VACATION ...
    start_date: Mapped[date] = mapped_column(Date(), nullable=False)
    end_date: Mapped[date] = mapped_column(Date(), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(LeaveStatus, nullable=False, server_default="PENDING")
    # Set by the approval workflow once the request exceeds the annual entitlement
    over_limit: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa.false())
    is_half_day: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa.false())
    half_day_session: Mapped[Optional[str]] = mapped_column(HalfDaySession, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.leave_type} {self.start_date}..{self.end_date} {self.status}>"


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    day: Mapped[date] = mapped_column(Date(), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Holiday {self.day} {self.name}>"


class HRPolicy(Base):
    """One versioned HR settings snapshot; `settings` holds the raw (partial) record."""

    __tablename__ = "hr_policies"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    version: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date(), nullable=False)
    settings: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<HRPolicy v{self.version} @ {self.effective_from}>"
