# backend/paycore/services/payroll_inputs.py
"""
Read-only snapshots the engine runs on, and the loader that builds them.

The engine (day_classifier, period_aggregator, deductions, payslips) only
ever sees these frozen records, never ORM rows or a Session, so a whole
calculation is a pure function of one PeriodInputs value.

Loader scope for one (year, month, period):
- roster     : employees whose status is ACTIVE or SUSPENDED
- holidays   : the period's month
- leaves     : APPROVED requests for the period's year
- attendance : events inside the period's date range
- adjustments: adjustments inside the period's date range
"""

from __future__ import annotations

import calendar
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from paycore.models.hr import (
    AttendanceAdjustment,
    AttendanceEvent,
    Employee,
    Holiday,
    LeaveRequest,
)
from paycore.services.hr_policy import PayrollPolicy, period_bounds

ROSTER_STATUSES = ("ACTIVE", "SUSPENDED")


@dataclass(frozen=True)
class EmployeeRecord:
    id: uuid.UUID
    code: str
    display_name: str
    status: str
    pay_type: str
    salary_monthly: Optional[Decimal]
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class AttendanceRecord:
    employee_id: uuid.UUID
    timestamp: datetime
    direction: str  # IN / OUT


@dataclass(frozen=True)
class AdjustmentRecord:
    employee_id: uuid.UUID
    day: date
    kind: str  # ADD_RECORD / FORGIVE_LATE
    adjusted_in: Optional[datetime] = None
    adjusted_out: Optional[datetime] = None


@dataclass(frozen=True)
class LeaveRecord:
    employee_id: uuid.UUID
    leave_type: str
    start_date: date
    end_date: date
    status: str = "APPROVED"
    over_limit: bool = False

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class PeriodInputs:
    year: int
    month: int
    period: int
    period_start: date
    period_end: date
    policy: PayrollPolicy
    employees: Tuple[EmployeeRecord, ...]
    holidays: Mapping[date, str] = field(default_factory=dict)
    leaves: Tuple[LeaveRecord, ...] = ()
    attendance: Tuple[AttendanceRecord, ...] = ()
    adjustments: Tuple[AdjustmentRecord, ...] = ()

    def leaves_for(self, employee_id: uuid.UUID) -> List[LeaveRecord]:
        return [l for l in self.leaves if l.employee_id == employee_id]

    def attendance_by_day(self, employee_id: uuid.UUID) -> Dict[date, List[AttendanceRecord]]:
        out: Dict[date, List[AttendanceRecord]] = defaultdict(list)
        for ev in self.attendance:
            if ev.employee_id == employee_id:
                out[ev.timestamp.date()].append(ev)
        return out

    def adjustments_by_day(self, employee_id: uuid.UUID) -> Dict[date, AdjustmentRecord]:
        # At most one adjustment per employee per day is honored; first one wins.
        out: Dict[date, AdjustmentRecord] = {}
        for adj in self.adjustments:
            if adj.employee_id == employee_id and adj.day not in out:
                out[adj.day] = adj
        return out


# ---------------------------- Loader ---------------------------- #

def _employee_record(emp: Employee) -> EmployeeRecord:
    return EmployeeRecord(
        id=emp.id,
        code=emp.code,
        display_name=emp.display_name,
        status=emp.status,
        pay_type=emp.pay_type,
        salary_monthly=emp.salary_monthly,
        start_date=emp.start_date,
        end_date=emp.end_date,
    )


def load_period_inputs(db: Session, policy: PayrollPolicy, year: int, month: int, period: int) -> PeriodInputs:
    start, end = period_bounds(policy, year, month, period)
    month_first = date(year, month, 1)
    month_last = date(year, month, calendar.monthrange(year, month)[1])
    range_from = datetime.combine(start, time.min)
    range_to = datetime.combine(end + timedelta(days=1), time.min)

    employees = db.execute(
        select(Employee).where(Employee.status.in_(ROSTER_STATUSES)).order_by(Employee.code)
    ).scalars().all()

    holidays = db.execute(
        select(Holiday).where(Holiday.day >= month_first, Holiday.day <= month_last)
    ).scalars().all()

    leaves = db.execute(
        select(LeaveRequest).where(
            LeaveRequest.status == "APPROVED",
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
    ).scalars().all()

    events = db.execute(
        select(AttendanceEvent)
        .where(AttendanceEvent.timestamp >= range_from, AttendanceEvent.timestamp < range_to)
        .order_by(AttendanceEvent.timestamp)
    ).scalars().all()

    adjustments = db.execute(
        select(AttendanceAdjustment)
        .where(AttendanceAdjustment.day >= start, AttendanceAdjustment.day <= end)
        .order_by(AttendanceAdjustment.day)
    ).scalars().all()

    return PeriodInputs(
        year=year,
        month=month,
        period=period,
        period_start=start,
        period_end=end,
        policy=policy,
        employees=tuple(_employee_record(e) for e in employees),
        holidays={h.day: h.name for h in holidays},
        leaves=tuple(
            LeaveRecord(
                employee_id=l.employee_id,
                leave_type=l.leave_type,
                start_date=l.start_date,
                end_date=l.end_date,
                status=l.status,
                over_limit=bool(l.over_limit),
            )
            for l in leaves
        ),
        attendance=tuple(
            AttendanceRecord(employee_id=ev.employee_id, timestamp=ev.timestamp, direction=ev.direction)
            for ev in events
        ),
        adjustments=tuple(
            AdjustmentRecord(
                employee_id=a.employee_id,
                day=a.day,
                kind=a.kind,
                adjusted_in=a.adjusted_in,
                adjusted_out=a.adjusted_out,
            )
            for a in adjustments
        ),
    )
