# backend/paycore/schemas/payroll.py
"""
Pydantic schemas for the payroll API.

Covers:
- HR policy versions (write + resolved read)
- Payroll run creation
- Employee decisions and HR notes on payslips

Notes:
- String enums match the CHECK-constrained columns in paycore.models.payroll.
- Monetary values are Decimal; they serialize as strings.
"""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ------------------------- Enum Literals (string) ------------------------- #
RunStatus = Literal["DRAFT", "SENT_TO_EMPLOYEE", "FINAL"]

PayslipStatus = Literal["PENDING_REVIEW", "ACCEPTED", "REJECTED"]

Decision = Literal["ACCEPTED", "REJECTED"]


# ------------------------------- HR policy -------------------------------- #
class PolicyCreate(BaseModel):
    version: int = Field(..., ge=1)
    effective_from: date
    settings: Dict[str, Any] = Field(default_factory=dict, description="Raw HR settings; any field may be omitted")


class LeaveTypePolicyOut(BaseModel):
    over_limit_mode: str
    base_days: Optional[Decimal] = None


class PolicyOut(BaseModel):
    version: int
    work_start: time
    work_end: time
    grace_minutes: int
    absent_cutoff: time
    afternoon_cutoff: time
    weekend_rule: str
    period1_start: int
    period1_end: int
    period2_start: int
    salary_deduction_base_days: Decimal
    leave_types: Dict[str, LeaveTypePolicyOut] = Field(default_factory=dict)
    sso_employee_percent: Decimal
    sso_monthly_cap: Optional[Decimal] = None
    sso_min_base: Decimal
    withholding_enabled: bool
    withholding_percent: Decimal
    late_deduction_enabled: bool
    early_leave_half_day: bool


# ------------------------------ Payroll runs ------------------------------ #
class PayrollRunCreate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    period: int = Field(..., ge=1, le=2)
    created_by: Optional[str] = Field(None, max_length=120)


# -------------------------------- Payslips -------------------------------- #
class DeductionOut(BaseModel):
    name: str
    amount: Decimal
    notes: str = ""


class PayslipDecisionIn(BaseModel):
    decision: Decision
    note: Optional[str] = Field(None, max_length=2000, description="Required when requesting a revision")


class HRNoteIn(BaseModel):
    note: Optional[str] = Field(None, max_length=2000)


class PayslipDraftOut(BaseModel):
    payslip_id: Optional[str] = None
    employee_id: str
    employee_code: str
    employee_name: str
    reference_no: str
    status: PayslipStatus = "PENDING_REVIEW"
    base_salary: Decimal
    deductions: List[DeductionOut] = Field(default_factory=list)
    total_deductions: Decimal
    net_salary: Decimal
    hr_note: Optional[str] = None
    review_needed: bool = False
    attendance: Dict[str, Any] = Field(default_factory=dict)
    attendance_ytd: Optional[Dict[str, Any]] = None
    calc_notes: List[str] = Field(default_factory=list)
