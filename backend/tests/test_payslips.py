# tests/test_payslips.py
import uuid
from datetime import date, datetime
from decimal import Decimal

from paycore.services.hr_policy import resolve_policy
from paycore.services.payroll_inputs import AttendanceRecord, EmployeeRecord, PeriodInputs
from paycore.services.payslips import compute_draft_payslips, is_eligible, reference_no

NOW = datetime(2024, 1, 31, 18, 0)
POLICY = resolve_policy({"sso": {"employee_percent": 5, "monthly_cap": 15000}}, version=1)


def _emp(code, salary, pay_type="MONTHLY"):
    return EmployeeRecord(
        id=uuid.uuid4(),
        code=code,
        display_name=f"Employee {code}",
        status="ACTIVE",
        pay_type=pay_type,
        salary_monthly=Decimal(salary) if salary is not None else None,
        start_date=date(2020, 1, 1),
    )


def _full_attendance(emp, skip=()):
    events = []
    for d in range(1, 16):
        day = date(2024, 1, d)
        if day.weekday() >= 5 or day in skip:
            continue
        events.append(AttendanceRecord(emp.id, datetime(2024, 1, d, 7, 50), "IN"))
        events.append(AttendanceRecord(emp.id, datetime(2024, 1, d, 17, 0), "OUT"))
    return events


def _inputs(employees, attendance=()):
    return PeriodInputs(
        year=2024,
        month=1,
        period=1,
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 15),
        policy=POLICY,
        employees=tuple(employees),
        attendance=tuple(attendance),
    )


def test_eligibility():
    assert is_eligible(_emp("A", "30000")) is True
    assert is_eligible(_emp("B", "30000", pay_type="DAILY")) is True
    assert is_eligible(_emp("C", "20000", pay_type="UNPAID")) is False
    assert is_eligible(_emp("D", "0")) is False
    assert is_eligible(_emp("E", "-5")) is False
    assert is_eligible(_emp("F", None)) is False


def test_excluded_employees_get_no_payslip():
    employees = [
        _emp("E003", "0"),
        _emp("E001", "30000"),
        _emp("E002", "20000", pay_type="UNPAID"),
        _emp("E004", None),
    ]
    drafts = compute_draft_payslips(_inputs(employees, _full_attendance(employees[1])), NOW)
    assert [d.employee_code for d in drafts] == ["E001"]


def test_scenario_two_absences_with_sso():
    emp = _emp("E001", "30000")
    attendance = _full_attendance(emp, skip={date(2024, 1, 2), date(2024, 1, 3)})
    (draft,) = compute_draft_payslips(_inputs([emp], attendance), NOW)

    assert draft.reference_no == "PAY-202401-P1-E001"
    assert draft.base_salary == Decimal("15000.00")
    assert [(l.name, l.amount) for l in draft.deductions] == [
        ("Absence", Decimal("2307.69")),
        ("Social Security (SSO)", Decimal("375.00")),
    ]
    assert draft.total_deductions == Decimal("2682.69")
    assert draft.net_salary == Decimal("12317.31")
    assert draft.summary.absent_units == Decimal("2")
    assert draft.summary.present_days == 9
    assert draft.policy_version == 1


def test_no_attendance_employee_gets_statutory_lines_only():
    emp = _emp("E005", "20000", pay_type="MONTHLY_NO_ATTENDANCE")
    (draft,) = compute_draft_payslips(_inputs([emp]), NOW)
    assert [(l.name, l.amount) for l in draft.deductions] == [("Social Security (SSO)", Decimal("375.00"))]
    assert draft.net_salary == Decimal("9625.00")
    assert draft.calc_notes == ("Attendance not tracked for pay type MONTHLY_NO_ATTENDANCE",)


def test_base_pay_is_half_the_monthly_salary_in_either_period():
    emp = _emp("E001", "30001")
    inputs = PeriodInputs(
        year=2024, month=2, period=2,
        period_start=date(2024, 2, 16), period_end=date(2024, 2, 29),
        policy=resolve_policy({}), employees=(emp,),
    )
    # Evaluated before the period starts: every day is FUTURE, nothing is charged
    (draft,) = compute_draft_payslips(inputs, NOW)
    assert draft.base_salary == Decimal("15000.50")
    assert draft.deductions == ()
    assert draft.net_salary == Decimal("15000.50")


def test_reference_number_format():
    assert reference_no(2024, 3, 2, "E042") == "PAY-202403-P2-E042"
