# backend/paycore/services/day_classifier.py
"""
Day classifier: one employee, one calendar day -> DayResult.

Precedence is the CLASSIFICATION_RULES table below, evaluated top to bottom,
first match wins. A day that matches none of the rules falls through to
attendance evaluation (ABSENT / NO_DATA / LATE / PRESENT).

The evaluation timestamp `now` is always passed in; nothing here reads a clock.

Attendance evaluation:
- firstIn  = earliest IN of the day, replaced by adjustment.adjusted_in if the
             day has an ADD_RECORD adjustment that supplies one
- lastOut  = latest OUT of the day, replaced by adjustment.adjusted_out likewise
             (each field is overridden independently)
- no firstIn: ABSENT (1.0 unit) once the day is past, or for today once `now`
  is past the afternoon cutoff; otherwise NO_DATA
- firstIn but no lastOut on a past day: NO_DATA + review_needed
- firstIn after the absent cutoff: 0.5 unit (morning); after the afternoon
  cutoff: another 0.5 unit. Lateness is only computed when the morning
  unit was not charged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional, Sequence, Tuple

from paycore.services.hr_policy import PayrollPolicy
from paycore.services.payroll_inputs import (
    AdjustmentRecord,
    AttendanceRecord,
    EmployeeRecord,
    LeaveRecord,
)

# ------------------------------- Statuses -------------------------------- #
FUTURE = "FUTURE"
NOT_STARTED = "NOT_STARTED"
ENDED = "ENDED"
SUSPENDED = "SUSPENDED"
HOLIDAY = "HOLIDAY"
WEEKEND = "WEEKEND"
LEAVE = "LEAVE"
ABSENT = "ABSENT"
NO_DATA = "NO_DATA"
LATE = "LATE"
PRESENT = "PRESENT"

# Days the employee was expected to work
SCHEDULED_STATUSES = frozenset({LEAVE, ABSENT, NO_DATA, LATE, PRESENT})

HALF = Decimal("0.5")
ZERO = Decimal("0")


@dataclass(frozen=True)
class DayResult:
    day: date
    status: str
    absent_units: Decimal = ZERO
    late_minutes: int = 0
    worked_minutes: Optional[int] = None
    leave_type: Optional[str] = None
    first_in: Optional[datetime] = None
    last_out: Optional[datetime] = None
    review_needed: bool = False
    detail: str = ""

    @property
    def is_scheduled(self) -> bool:
        return self.status in SCHEDULED_STATUSES

    def log_entry(self) -> dict:
        return {"date": self.day.isoformat(), "status": self.status, "detail": self.detail}


@dataclass(frozen=True)
class DayContext:
    employee: EmployeeRecord
    day: date
    policy: PayrollPolicy
    holidays: Mapping[date, str]
    leave: Optional[LeaveRecord]
    attendance: Sequence[AttendanceRecord]
    adjustment: Optional[AdjustmentRecord]
    now: datetime


# --------------------------- Rule predicates ---------------------------- #

def _is_future(ctx: DayContext) -> bool:
    return ctx.day > ctx.now.date()

def _before_start(ctx: DayContext) -> bool:
    return ctx.employee.start_date is not None and ctx.day < ctx.employee.start_date

def _after_end(ctx: DayContext) -> bool:
    return ctx.employee.end_date is not None and ctx.day > ctx.employee.end_date

def _is_suspended(ctx: DayContext) -> bool:
    return ctx.employee.status == "SUSPENDED"

def _is_holiday(ctx: DayContext) -> bool:
    return ctx.day in ctx.holidays

def is_weekend(day: date, weekend_rule: str) -> bool:
    if weekend_rule == "SUN_ONLY":
        return day.weekday() == 6
    return day.weekday() >= 5

def _is_weekend(ctx: DayContext) -> bool:
    return is_weekend(ctx.day, ctx.policy.weekend_rule)

def _on_leave(ctx: DayContext) -> bool:
    return ctx.leave is not None


def _detail(ctx: DayContext, status: str) -> str:
    if status == HOLIDAY:
        return f"Holiday: {ctx.holidays[ctx.day]}"
    if status == LEAVE:
        return f"Leave ({ctx.leave.leave_type})"
    return {
        FUTURE: "Not yet",
        NOT_STARTED: "Before employment start",
        ENDED: "After employment end",
        SUSPENDED: "Employee suspended",
        WEEKEND: "Weekend",
    }[status]


# First match wins. Order is part of the contract.
CLASSIFICATION_RULES: Tuple[Tuple[str, Callable[[DayContext], bool]], ...] = (
    (FUTURE, _is_future),
    (NOT_STARTED, _before_start),
    (ENDED, _after_end),
    (SUSPENDED, _is_suspended),
    (HOLIDAY, _is_holiday),
    (WEEKEND, _is_weekend),
    (LEAVE, _on_leave),
)


# ------------------------- Attendance evaluation ------------------------- #

def resolve_clock_times(
    attendance: Iterable[AttendanceRecord],
    adjustment: Optional[AdjustmentRecord],
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Earliest IN / latest OUT, each independently overridden by an ADD_RECORD adjustment."""
    ins = [a.timestamp for a in attendance if a.direction == "IN"]
    outs = [a.timestamp for a in attendance if a.direction == "OUT"]
    first_in = min(ins) if ins else None
    last_out = max(outs) if outs else None

    if adjustment is not None and adjustment.kind == "ADD_RECORD":
        if adjustment.adjusted_in is not None:
            first_in = adjustment.adjusted_in
        if adjustment.adjusted_out is not None:
            last_out = adjustment.adjusted_out
    return first_in, last_out


def find_leave(employee: EmployeeRecord, day: date, leaves: Iterable[LeaveRecord]) -> Optional[LeaveRecord]:
    return next(
        (l for l in leaves if l.status == "APPROVED" and l.employee_id == employee.id and l.covers(day)),
        None,
    )


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def _evaluate_attendance(ctx: DayContext) -> DayResult:
    policy = ctx.policy
    day = ctx.day
    first_in, last_out = resolve_clock_times(ctx.attendance, ctx.adjustment)

    day_is_past = day < ctx.now.date()
    afternoon_cutoff = datetime.combine(day, policy.afternoon_cutoff)

    if first_in is None:
        if day_is_past or ctx.now > afternoon_cutoff:
            return DayResult(day=day, status=ABSENT, absent_units=Decimal("1"), last_out=last_out,
                             detail="Absent (no clock-in)")
        return DayResult(day=day, status=NO_DATA, detail="No clock-in yet")

    if last_out is None and day_is_past:
        return DayResult(
            day=day,
            status=NO_DATA,
            first_in=first_in,
            review_needed=True,
            detail=f"Missing clock-out (in {first_in:%H:%M})",
        )

    absent_units = ZERO
    morning_absent = first_in > datetime.combine(day, policy.absent_cutoff)
    if morning_absent:
        absent_units += HALF
    if first_in > afternoon_cutoff:
        absent_units += HALF
    elif policy.early_leave_half_day and last_out is not None and last_out < afternoon_cutoff:
        absent_units += HALF

    worked = max(0, _minutes(last_out - first_in)) if last_out is not None else None

    if morning_absent:
        return DayResult(
            day=day,
            status=ABSENT,
            absent_units=absent_units,
            worked_minutes=worked,
            first_in=first_in,
            last_out=last_out,
            detail=f"Absent {absent_units} day (in {first_in:%H:%M} after cutoff)",
        )

    threshold = datetime.combine(day, policy.work_start) + timedelta(minutes=policy.grace_minutes)
    late = max(0, _minutes(first_in - threshold))
    forgiven = ctx.adjustment is not None and ctx.adjustment.kind == "FORGIVE_LATE"
    if forgiven:
        late = 0

    if late > 0:
        status, detail = LATE, f"Late {late} min (in {first_in:%H:%M})"
    else:
        status = PRESENT
        detail = "Present (late forgiven)" if forgiven and first_in > threshold else "Present"
    if absent_units > 0:
        detail = f"{detail}; left before {policy.afternoon_cutoff:%H:%M}"

    return DayResult(
        day=day,
        status=status,
        absent_units=absent_units,
        late_minutes=late,
        worked_minutes=worked,
        first_in=first_in,
        last_out=last_out,
        detail=detail,
    )


# ------------------------------- Public API ------------------------------ #

def classify_day(
    employee: EmployeeRecord,
    day: date,
    policy: PayrollPolicy,
    holidays: Mapping[date, str],
    leaves: Sequence[LeaveRecord],
    attendance_for_day: Sequence[AttendanceRecord],
    adjustment_for_day: Optional[AdjustmentRecord],
    now: datetime,
) -> DayResult:
    ctx = DayContext(
        employee=employee,
        day=day,
        policy=policy,
        holidays=holidays,
        leave=find_leave(employee, day, leaves),
        attendance=attendance_for_day,
        adjustment=adjustment_for_day,
        now=now,
    )
    for status, matches in CLASSIFICATION_RULES:
        if matches(ctx):
            leave_type = ctx.leave.leave_type if status == LEAVE else None
            return DayResult(day=day, status=status, leave_type=leave_type, detail=_detail(ctx, status))
    return _evaluate_attendance(ctx)
