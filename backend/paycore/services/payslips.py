# backend/paycore/services/payslips.py
"""
Payslip assembly: PeriodInputs -> ordered PayslipDraft list (pure), and
computeDraft, which prefers an already-persisted run over recomputation.

Eligibility (checked before any classification):
    - roster status ACTIVE or SUSPENDED (loader already filters)
    - pay type != UNPAID
    - monthly salary present and > 0
Excluded employees never reach assembly; they are logged with a reason.

Figures:
    base pay = q2(monthly salary / 2)      (both periods, regardless of days)
    net      = base pay - sum(deduction lines)
reference_no = PAY-{YYYYMM}-P{period}-{empCode}

Earlier runs of the same year feed two things through PayrollHistory: the
SSO period 1 actually deducted (period 2 settles the month against it) and
the year-to-date attendance totals stored on each payslip snapshot.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from paycore.models.payroll import Payslip, PayrollRun
from paycore.services.deductions import SSO_LINE, D, DeductionLine, compute_deductions, q2
from paycore.services.hr_policy import load_policy_for_period
from paycore.services.payroll_inputs import EmployeeRecord, PeriodInputs, load_period_inputs
from paycore.services.period_aggregator import AttendanceSummary, accumulate_ytd, aggregate_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayrollHistory:
    """What earlier runs of the same year recorded, keyed by employee id."""

    first_period_sso: Mapping[uuid.UUID, Decimal] = field(default_factory=dict)
    attendance_ytd: Mapping[uuid.UUID, Mapping[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class PayslipDraft:
    employee_id: uuid.UUID
    employee_code: str
    employee_name: str
    reference_no: str
    base_salary: Decimal
    deductions: Tuple[DeductionLine, ...]
    total_deductions: Decimal
    net_salary: Decimal
    summary: AttendanceSummary
    calc_notes: Tuple[str, ...] = ()
    # Set only when the draft was read back from a persisted payslip
    payslip_id: Optional[uuid.UUID] = None
    status: str = "PENDING_REVIEW"
    hr_note: Optional[str] = None
    policy_version: Optional[int] = None
    attendance_ytd: Optional[Dict[str, Any]] = None

    @property
    def review_needed(self) -> bool:
        return self.summary.review_needed

    def snapshot(self) -> Dict[str, Any]:
        return {
            "employee_code": self.employee_code,
            "policy_version": self.policy_version,
            "attendance": self.summary.to_dict(),
            "attendance_ytd": self.attendance_ytd,
            "calc_notes": list(self.calc_notes),
        }


def reference_no(year: int, month: int, period: int, employee_code: str) -> str:
    return f"PAY-{year:04d}{month:02d}-P{period}-{employee_code}"


def eligibility(employee: EmployeeRecord) -> Tuple[bool, Optional[str]]:
    """(eligible, reason-when-not)."""
    if employee.pay_type == "UNPAID":
        return False, "pay type UNPAID"
    if employee.salary_monthly is None:
        return False, "no monthly salary"
    if D(employee.salary_monthly) <= 0:
        return False, "monthly salary <= 0"
    return True, None


def is_eligible(employee: EmployeeRecord) -> bool:
    return eligibility(employee)[0]


def assemble_payslip(
    employee: EmployeeRecord,
    inputs: PeriodInputs,
    now: datetime,
    history: Optional[PayrollHistory] = None,
) -> PayslipDraft:
    """One employee's draft. Caller guarantees eligibility."""
    history = history or PayrollHistory()
    policy = inputs.policy
    salary = D(employee.salary_monthly)
    base_pay = q2(salary / 2)
    leaves = inputs.leaves_for(employee.id)

    summary = aggregate_period(
        employee,
        inputs.period_start,
        inputs.period_end,
        policy,
        inputs.holidays,
        leaves,
        inputs.attendance_by_day(employee.id),
        inputs.adjustments_by_day(employee.id),
        now,
    )

    lines, notes = compute_deductions(
        salary,
        base_pay,
        summary,
        leaves,
        inputs.period_start,
        inputs.period_end,
        inputs.period,
        policy,
        calc_notes=list(summary.notes),
        first_period_sso=history.first_period_sso.get(employee.id) if inputs.period == 2 else None,
    )
    total = q2(sum((line.amount for line in lines), Decimal("0")))

    return PayslipDraft(
        employee_id=employee.id,
        employee_code=employee.code,
        employee_name=employee.display_name,
        reference_no=reference_no(inputs.year, inputs.month, inputs.period, employee.code),
        base_salary=base_pay,
        deductions=tuple(lines),
        total_deductions=total,
        net_salary=q2(base_pay - total),
        summary=summary,
        calc_notes=tuple(notes),
        policy_version=policy.version,
        attendance_ytd=accumulate_ytd(history.attendance_ytd.get(employee.id), summary),
    )


def compute_draft_payslips(
    inputs: PeriodInputs,
    now: datetime,
    history: Optional[PayrollHistory] = None,
) -> List[PayslipDraft]:
    """Pure: drafts for every eligible employee, ordered by employee code."""
    drafts: List[PayslipDraft] = []
    for employee in sorted(inputs.employees, key=lambda e: e.code):
        ok, reason = eligibility(employee)
        if not ok:
            logger.info("payroll.employee_excluded code=%s reason=%s", employee.code, reason)
            continue
        draft = assemble_payslip(employee, inputs, now, history)
        if draft.review_needed:
            logger.warning(
                "payroll.incomplete_attendance code=%s warnings=%d", employee.code, len(draft.summary.warnings)
            )
        drafts.append(draft)
    return drafts


def draft_from_payslip(slip: Payslip) -> PayslipDraft:
    snap = slip.snapshot_json or {}
    return PayslipDraft(
        employee_id=slip.employee_id,
        employee_code=snap.get("employee_code", ""),
        employee_name=slip.employee_name,
        reference_no=slip.reference_no,
        base_salary=q2(slip.base_salary),
        deductions=tuple(DeductionLine.from_dict(d) for d in (slip.deductions or [])),
        total_deductions=q2(slip.total_deductions),
        net_salary=q2(slip.net_salary),
        summary=AttendanceSummary.from_dict(snap.get("attendance") or {}),
        calc_notes=tuple(snap.get("calc_notes") or ()),
        payslip_id=slip.id,
        status=slip.status,
        hr_note=slip.hr_note,
        policy_version=snap.get("policy_version"),
        attendance_ytd=snap.get("attendance_ytd"),
    )


def find_run(db: Session, year: int, month: int, period: int) -> Optional[PayrollRun]:
    return db.execute(
        select(PayrollRun).where(
            PayrollRun.year == year, PayrollRun.month == month, PayrollRun.period == period
        )
    ).scalar_one_or_none()


def _sso_deducted(slip: Payslip) -> Decimal:
    return sum(
        (q2(line["amount"]) for line in (slip.deductions or []) if line.get("name") == SSO_LINE),
        Decimal("0.00"),
    )


def load_history(db: Session, year: int, month: int, period: int) -> PayrollHistory:
    """
    Payslips of the same year persisted before (month, period). Periods that
    never got a run contribute nothing to the year-to-date totals.
    """
    rows = db.execute(
        select(Payslip, PayrollRun.month, PayrollRun.period)
        .join(PayrollRun, Payslip.run_id == PayrollRun.id)
        .where(
            PayrollRun.year == year,
            or_(PayrollRun.month < month, and_(PayrollRun.month == month, PayrollRun.period < period)),
        )
        .order_by(PayrollRun.month, PayrollRun.period)
    ).all()

    first_period_sso: Dict[uuid.UUID, Decimal] = {}
    ytd: Dict[uuid.UUID, Dict[str, Any]] = {}
    for slip, run_month, run_period in rows:
        attendance = AttendanceSummary.from_dict((slip.snapshot_json or {}).get("attendance") or {})
        ytd[slip.employee_id] = accumulate_ytd(ytd.get(slip.employee_id), attendance)
        if run_month == month and run_period == 1:
            first_period_sso[slip.employee_id] = _sso_deducted(slip)
    return PayrollHistory(first_period_sso=first_period_sso, attendance_ytd=ytd)


def compute_draft(db: Session, year: int, month: int, period: int, now: datetime) -> List[PayslipDraft]:
    """
    Payslip drafts for (year, month, period). When a run already exists for
    the key, its persisted payslips are returned instead of recomputing.
    """
    run = find_run(db, year, month, period)
    if run is not None:
        logger.info("payroll.draft_from_run run=%s payslips=%d", run.key, len(run.payslips))
        return [draft_from_payslip(p) for p in run.payslips]

    policy, _start, _end = load_policy_for_period(db, year, month, period)
    inputs = load_period_inputs(db, policy, year, month, period)
    drafts = compute_draft_payslips(inputs, now, load_history(db, year, month, period))
    logger.info(
        "payroll.draft_computed period=%04d-%02d-%s roster=%d payslips=%d policy_version=%s",
        year, month, period, len(inputs.employees), len(drafts), policy.version,
    )
    return drafts
