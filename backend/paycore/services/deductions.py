# backend/paycore/services/deductions.py
"""
Deduction rules: period aggregates + over-limit leaves -> ordered deduction lines.

Line order (stable, part of the payslip contract):
    1) one "Deduction: <TYPE> Leave" line per over-limit leave overlapping the period
       (handling DEDUCT_SALARY / UNPAID; DISALLOW only leaves a calc note)
    2) Absence            absent_units * salary / base_days
    3) Lateness           late_minutes * salary / base_days / 8 / 60   (policy flag)
    4) Social Security    monthly figure split across the two periods
    5) Withholding Tax    base pay * percent

Every line is rounded half-up to 2dp where it is computed, never at the end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple

from paycore.services.hr_policy import PayrollPolicy
from paycore.services.payroll_inputs import LeaveRecord
from paycore.services.period_aggregator import AttendanceSummary

HOURS_PER_DAY = Decimal("8")
MINUTES_PER_HOUR = Decimal("60")

SSO_LINE = "Social Security (SSO)"
WITHHOLDING_LINE = "Withholding Tax"
ABSENCE_LINE = "Absence"
LATENESS_LINE = "Lateness"


# ----------------------------- Decimal helpers ----------------------------- #

def D(val: Any) -> Decimal:
    if isinstance(val, Decimal):
        return val
    try:
        return Decimal(str(val))
    except Exception:
        return Decimal("0")

def q2(val: Any) -> Decimal:
    return D(val).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def floor2(val: Any) -> Decimal:
    return D(val).quantize(Decimal("0.01"), rounding=ROUND_FLOOR)


@dataclass(frozen=True)
class DeductionLine:
    name: str
    amount: Decimal
    notes: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "amount": str(self.amount), "notes": self.notes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeductionLine":
        return cls(name=data["name"], amount=q2(data["amount"]), notes=data.get("notes") or "")


# ------------------------------- Rule pieces ------------------------------- #

def overlap_days(period_start: date, period_end: date, leave_start: date, leave_end: date) -> int:
    """Inclusive day count of the intersection, 0 when disjoint."""
    days = (min(period_end, leave_end) - max(period_start, leave_start)).days + 1
    return max(0, days)


def sso_wage_base(monthly_salary: Decimal, policy: PayrollPolicy) -> Decimal:
    base = D(monthly_salary)
    if policy.sso_monthly_cap is not None:
        base = min(base, policy.sso_monthly_cap)
    return max(policy.sso_min_base, base)


def sso_period_amount(
    monthly_salary: Decimal,
    policy: PayrollPolicy,
    period: int,
    first_period_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Period 1 takes floor(full/2); period 2 takes round(full) - period 1,
    so the two always sum to the rounded monthly contribution.

    `first_period_amount` is what period 1 actually deducted, when its
    payslip exists; period 2 then settles the month against that figure
    (never below zero) instead of re-deriving period 1 from today's policy.
    """
    full = Decimal("0")
    if policy.sso_enabled:
        full = sso_wage_base(monthly_salary, policy) * policy.sso_employee_percent / Decimal("100")
    if period == 2 and first_period_amount is not None:
        return max(Decimal("0.00"), q2(full) - q2(first_period_amount))
    first = floor2(full / 2)
    if period == 1:
        return first
    return q2(full) - first


def _leave_lines(
    salary: Decimal,
    leaves: Iterable[LeaveRecord],
    period_start: date,
    period_end: date,
    policy: PayrollPolicy,
    calc_notes: List[str],
) -> List[DeductionLine]:
    lines: List[DeductionLine] = []
    ordered = sorted(leaves, key=lambda l: (l.start_date, l.end_date, l.leave_type))
    for leave in ordered:
        if not leave.over_limit or leave.status != "APPROVED":
            continue
        days = overlap_days(period_start, period_end, leave.start_date, leave.end_date)
        if days <= 0:
            continue
        handling = policy.leave_policy(leave.leave_type)
        if handling.over_limit_mode == "DISALLOW":
            calc_notes.append(
                f"{leave.leave_type} leave {leave.start_date}..{leave.end_date} is over limit "
                f"({days} day(s) in period); policy disallows it, no deduction applied"
            )
            continue
        if not handling.deducts_salary:
            continue
        base_days = policy.leave_base_days(leave.leave_type)
        amount = q2(Decimal(days) * salary / base_days)
        if amount > 0:
            lines.append(
                DeductionLine(
                    name=f"Deduction: {leave.leave_type} Leave",
                    amount=amount,
                    notes=f"{days} day(s) over limit / base {base_days} days",
                )
            )
    return lines


# ------------------------------- Public API ------------------------------- #

def compute_deductions(
    monthly_salary: Decimal,
    base_pay: Decimal,
    summary: AttendanceSummary,
    leaves: Iterable[LeaveRecord],
    period_start: date,
    period_end: date,
    period: int,
    policy: PayrollPolicy,
    calc_notes: Optional[List[str]] = None,
    first_period_sso: Optional[Decimal] = None,
) -> Tuple[List[DeductionLine], List[str]]:
    """Return (lines, calc_notes). Lines with a zero amount are never emitted."""
    salary = D(monthly_salary)
    notes: List[str] = calc_notes if calc_notes is not None else []
    base_days = policy.salary_deduction_base_days

    lines = _leave_lines(salary, leaves, period_start, period_end, policy, notes)

    if summary.absent_units > 0:
        amount = q2(summary.absent_units * salary / base_days)
        if amount > 0:
            lines.append(DeductionLine(ABSENCE_LINE, amount, f"{summary.absent_units} unit(s) / base {base_days} days"))

    if policy.late_deduction_enabled and summary.late_minutes > 0:
        amount = q2(Decimal(summary.late_minutes) * salary / base_days / HOURS_PER_DAY / MINUTES_PER_HOUR)
        if amount > 0:
            lines.append(DeductionLine(LATENESS_LINE, amount, f"{summary.late_minutes} minute(s)"))

    sso = sso_period_amount(salary, policy, period, first_period_sso)
    if first_period_sso is not None and period == 2:
        notes.append(f"SSO period 2 settles the month against {q2(first_period_sso)} deducted in period 1")
    if sso > 0:
        lines.append(DeductionLine(SSO_LINE, sso, f"{policy.sso_employee_percent}% of {q2(sso_wage_base(salary, policy))}, period {period}"))

    if policy.withholding_active:
        amount = q2(D(base_pay) * policy.withholding_percent / Decimal("100"))
        if amount > 0:
            lines.append(DeductionLine(WITHHOLDING_LINE, amount, f"{policy.withholding_percent}% of {q2(base_pay)}"))

    return lines, notes
