# tests/test_period_aggregator.py
import uuid
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

from paycore.services.hr_policy import resolve_policy
from paycore.services.payroll_inputs import AttendanceRecord, EmployeeRecord, LeaveRecord
from paycore.services.period_aggregator import AttendanceSummary, accumulate_ytd, aggregate_period, iter_days

NOW = datetime(2024, 1, 31, 18, 0)
POLICY = resolve_policy({})
START, END = date(2024, 1, 1), date(2024, 1, 15)


def _employee(pay_type="MONTHLY"):
    return EmployeeRecord(
        id=uuid.uuid4(),
        code="E001",
        display_name="Malee",
        status="ACTIVE",
        pay_type=pay_type,
        salary_monthly=Decimal("30000"),
        start_date=date(2020, 1, 1),
    )


def _attendance(emp, rows):
    by_day = defaultdict(list)
    for day, hhmm_in, hhmm_out in rows:
        for hhmm, direction in ((hhmm_in, "IN"), (hhmm_out, "OUT")):
            if hhmm:
                hh, mm = (int(x) for x in hhmm.split(":"))
                by_day[day].append(AttendanceRecord(emp.id, datetime(day.year, day.month, day.day, hh, mm), direction))
    return by_day


def test_iter_days_is_inclusive():
    days = list(iter_days(START, END))
    assert days[0] == START and days[-1] == END and len(days) == 15


def test_period_totals():
    emp = _employee()
    attendance = _attendance(
        emp,
        [
            (date(2024, 1, 2), "07:55", "17:00"),  # present
            (date(2024, 1, 3), "08:30", "17:00"),  # late 30
            (date(2024, 1, 4), "09:30", "17:00"),  # half-day absent
            (date(2024, 1, 8), "08:00", None),     # missing clock-out
        ],
    )
    leaves = [LeaveRecord(emp.id, "SICK", date(2024, 1, 5), date(2024, 1, 5))]
    holidays = {date(2024, 1, 1): "New Year's Day"}

    s = aggregate_period(emp, START, END, POLICY, holidays, leaves, attendance, {}, NOW)

    # 11 weekdays minus the holiday
    assert s.scheduled_work_days == 10
    assert s.present_days == 2
    assert s.late_days == 1
    assert s.late_minutes == 30
    assert s.leave_days == Decimal("1")
    assert s.leave_days_by_type == {"SICK": Decimal("1")}
    # Jan 4 half day + Jan 9, 10, 11, 12, 15 with no clock-in
    assert s.absent_units == Decimal("5.5")
    assert s.payable_units == Decimal("3.5")
    assert s.review_needed is True
    assert len(s.warnings) == 1 and "2024-01-08" in s.warnings[0]
    assert len(s.day_logs) == 15
    assert s.day_logs[0] == {"date": "2024-01-01", "status": "HOLIDAY", "detail": "Holiday: New Year's Day"}


def test_no_attendance_pay_type_skips_classification():
    emp = _employee(pay_type="MONTHLY_NO_ATTENDANCE")
    s = aggregate_period(emp, START, END, POLICY, {}, [], {}, {}, NOW)
    assert s.present_days == 0
    assert s.absent_units == Decimal("0")
    assert s.scheduled_work_days == 0
    assert s.day_logs == []
    assert s.notes == ["Attendance not tracked for pay type MONTHLY_NO_ATTENDANCE"]


def test_summary_survives_snapshot_serialization():
    emp = _employee()
    attendance = _attendance(emp, [(date(2024, 1, 3), "08:30", "17:00")])
    s = aggregate_period(emp, START, END, POLICY, {}, [], attendance, {}, NOW)
    restored = AttendanceSummary.from_dict(s.to_dict())
    assert restored == s


def test_year_to_date_folds_each_period():
    jan1 = AttendanceSummary(present_days=9, late_days=1, late_minutes=12, absent_units=Decimal("1.5"),
                             leave_days=Decimal("1"), leave_days_by_type={"SICK": Decimal("1")})
    jan2 = AttendanceSummary(present_days=10, late_minutes=3, absent_units=Decimal("0.5"),
                             leave_days=Decimal("2"), leave_days_by_type={"SICK": Decimal("1"), "VACATION": Decimal("1")})

    ytd = accumulate_ytd(None, jan1)
    assert ytd["periods"] == 1
    assert (ytd["present_days"], ytd["late_minutes"]) == (9, 12)

    ytd = accumulate_ytd(ytd, jan2)
    assert ytd["periods"] == 2
    assert (ytd["present_days"], ytd["late_days"], ytd["late_minutes"]) == (19, 1, 15)
    assert Decimal(ytd["absent_units"]) == Decimal("2")
    assert Decimal(ytd["leave_days"]) == Decimal("3")
    assert {k: Decimal(v) for k, v in ytd["leave_days_by_type"].items()} == {
        "SICK": Decimal("2"), "VACATION": Decimal("1"),
    }
