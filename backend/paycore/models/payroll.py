# backend/paycore/models/payroll.py
"""
Payroll ORM models.

Tables:
- payroll_runs   (one per {year, month, period}; UNIQUE key makes creation idempotent)
- payslips       (owned by a run; one per employee per run)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from paycore.db import Base, JSONType


# ---------- Enums ----------
PayrollRunStatus = sa.Enum(
    "DRAFT", "SENT_TO_EMPLOYEE", "FINAL", name="payroll_run_status", native_enum=False, create_constraint=True
)
PayslipStatus = sa.Enum(
    "PENDING_REVIEW", "ACCEPTED", "REJECTED", name="payslip_status", native_enum=False, create_constraint=True
)


# --------------------------------- MODELS --------------------------------- #

class PayrollRun(Base):
    __tablename__ = "payroll_runs"
    __table_args__ = (UniqueConstraint("year", "month", "period", name="uq_payroll_run_key"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date(), nullable=False)
    period_end: Mapped[date] = mapped_column(Date(), nullable=False)

    status: Mapped[str] = mapped_column(PayrollRunStatus, nullable=False, server_default="DRAFT")
    policy_version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)

    meta: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    payslips: Mapped[list["Payslip"]] = relationship(
        back_populates="run", cascade="all, delete-orphan", order_by="Payslip.reference_no"
    )

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.period}"

    def __repr__(self) -> str:
        return f"<PayrollRun {self.key} status={self.status}>"


class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (UniqueConstraint("run_id", "employee_id", name="uq_payslip_run_employee"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    run_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False
    )
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    reference_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, server_default="0")
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, server_default="0")
    net_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, server_default="0")
    # [{"name", "amount", "notes"}, ...] in the order they were computed
    deductions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    present_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    late_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    absent_units: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, server_default="0")
    leave_days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, server_default="0")

    # Attendance summary, leave summary, day logs, calc notes
    snapshot_json: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(PayslipStatus, nullable=False, server_default="PENDING_REVIEW")
    hr_note: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    employee_note: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    sent_to_employee_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    run: Mapped["PayrollRun"] = relationship(back_populates="payslips")

    def __repr__(self) -> str:
        return f"<Payslip {self.reference_no} {self.net_salary}>"
