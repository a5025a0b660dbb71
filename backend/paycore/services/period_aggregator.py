# backend/paycore/services/period_aggregator.py
"""Run the day classifier over every day of a pay period and fold the results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dateutil.rrule import DAILY, rrule

from paycore.services import day_classifier as dc
from paycore.services.hr_policy import PayrollPolicy
from paycore.services.payroll_inputs import (
    AdjustmentRecord,
    AttendanceRecord,
    EmployeeRecord,
    LeaveRecord,
)

NO_ATTENDANCE_PAY_TYPES = ("MONTHLY_NO_ATTENDANCE",)


@dataclass
class AttendanceSummary:
    scheduled_work_days: int = 0
    present_days: int = 0
    late_days: int = 0
    late_minutes: int = 0
    absent_units: Decimal = Decimal("0")
    leave_days: Decimal = Decimal("0")
    payable_units: Decimal = Decimal("0")
    leave_days_by_type: Dict[str, Decimal] = field(default_factory=dict)
    review_needed: bool = False
    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    day_logs: List[Dict[str, str]] = field(default_factory=list)

    def add(self, result: dc.DayResult) -> None:
        self.day_logs.append(result.log_entry())
        if not result.is_scheduled:
            return
        self.scheduled_work_days += 1

        if result.status == dc.LEAVE:
            self.leave_days += 1
            self.payable_units += 1
            key = result.leave_type or "OTHER"
            self.leave_days_by_type[key] = self.leave_days_by_type.get(key, Decimal("0")) + 1
            return

        if result.review_needed:
            self.review_needed = True
            self.warnings.append(f"{result.day.isoformat()}: clock-in without clock-out; adjust before creating the run")

        self.absent_units += result.absent_units
        self.late_minutes += result.late_minutes
        if result.status == dc.LATE:
            self.late_days += 1
        if result.status in (dc.PRESENT, dc.LATE):
            self.present_days += 1
        if result.status in (dc.PRESENT, dc.LATE, dc.ABSENT):
            self.payable_units += 1 - result.absent_units

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheduled_work_days": self.scheduled_work_days,
            "present_days": self.present_days,
            "late_days": self.late_days,
            "late_minutes": self.late_minutes,
            "absent_units": str(self.absent_units),
            "leave_days": str(self.leave_days),
            "payable_units": str(self.payable_units),
            "leave_days_by_type": {k: str(v) for k, v in sorted(self.leave_days_by_type.items())},
            "review_needed": self.review_needed,
            "warnings": list(self.warnings),
            "notes": list(self.notes),
            "day_logs": list(self.day_logs),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttendanceSummary":
        return cls(
            scheduled_work_days=int(data.get("scheduled_work_days", 0)),
            present_days=int(data.get("present_days", 0)),
            late_days=int(data.get("late_days", 0)),
            late_minutes=int(data.get("late_minutes", 0)),
            absent_units=Decimal(str(data.get("absent_units", "0"))),
            leave_days=Decimal(str(data.get("leave_days", "0"))),
            payable_units=Decimal(str(data.get("payable_units", "0"))),
            leave_days_by_type={k: Decimal(str(v)) for k, v in (data.get("leave_days_by_type") or {}).items()},
            review_needed=bool(data.get("review_needed", False)),
            warnings=list(data.get("warnings") or []),
            notes=list(data.get("notes") or []),
            day_logs=list(data.get("day_logs") or []),
        )


def iter_days(start: date, end: date):
    for dt in rrule(DAILY, dtstart=start, until=end):
        yield dt.date()


def aggregate_period(
    employee: EmployeeRecord,
    period_start: date,
    period_end: date,
    policy: PayrollPolicy,
    holidays: Mapping[date, str],
    leaves: Sequence[LeaveRecord],
    attendance_by_day: Mapping[date, Sequence[AttendanceRecord]],
    adjustments_by_day: Mapping[date, AdjustmentRecord],
    now: datetime,
) -> AttendanceSummary:
    summary = AttendanceSummary()

    if employee.pay_type in NO_ATTENDANCE_PAY_TYPES:
        summary.notes.append(f"Attendance not tracked for pay type {employee.pay_type}")
        return summary

    for day in iter_days(period_start, period_end):
        adjustment: Optional[AdjustmentRecord] = adjustments_by_day.get(day)
        result = dc.classify_day(
            employee,
            day,
            policy,
            holidays,
            leaves,
            attendance_by_day.get(day, ()),
            adjustment,
            now,
        )
        summary.add(result)
    return summary


# ----------------------------- Year to date ----------------------------- #

YTD_COUNTS = ("present_days", "late_days", "late_minutes")
YTD_UNITS = ("absent_units", "leave_days")


def accumulate_ytd(prior: Optional[Mapping[str, Any]], summary: AttendanceSummary) -> Dict[str, Any]:
    """Fold one period's summary into the year-to-date totals of the periods before it."""
    prior = prior or {}
    out: Dict[str, Any] = {"periods": int(prior.get("periods", 0)) + 1}
    for key in YTD_COUNTS:
        out[key] = int(prior.get(key, 0)) + getattr(summary, key)
    for key in YTD_UNITS:
        out[key] = str(Decimal(str(prior.get(key, "0"))) + getattr(summary, key))

    by_type = {k: Decimal(str(v)) for k, v in (prior.get("leave_days_by_type") or {}).items()}
    for k, v in summary.leave_days_by_type.items():
        by_type[k] = by_type.get(k, Decimal("0")) + v
    out["leave_days_by_type"] = {k: str(v) for k, v in sorted(by_type.items())}
    return out
