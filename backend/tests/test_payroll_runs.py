# tests/test_payroll_runs.py
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import NOW, add_employee, add_policy, add_workday
from paycore.exceptions import (
    ConfigurationMissingError,
    InvalidTransitionError,
    PayrollRunNotFoundError,
    PayslipImmutableError,
    PayslipNotFoundError,
    TransactionConflictError,
)
from paycore.models.hr import LeaveRequest
from paycore.models.payroll import Payslip, PayrollRun
from paycore.services import payroll as svc
from paycore.services.payslips import compute_draft

LATER = datetime(2024, 2, 1, 9, 0)


def _slip_set(run):
    return [
        (s.reference_no, s.employee_id, s.base_salary, s.net_salary, s.deductions, s.snapshot_json)
        for s in run.payslips
    ]


def _run_count(db):
    return db.execute(select(func.count()).select_from(PayrollRun)).scalar_one()


# ----------------------------- creation ----------------------------- #

def test_create_run_writes_draft_and_payslips(db, seeded):
    run, created = svc.create_run_if_absent(db, 2024, 1, 1, NOW, created_by="hr@example.com")
    assert created is True
    assert (run.status, run.key, run.policy_version) == ("DRAFT", "2024-01-1", 1)
    assert (run.period_start, run.period_end) == (date(2024, 1, 1), date(2024, 1, 15))

    (slip,) = run.payslips
    assert slip.employee_id == seeded.id
    assert slip.status == "PENDING_REVIEW"
    assert slip.hr_note is None
    assert slip.reference_no == "PAY-202401-P1-E001"
    assert slip.base_salary == Decimal("15000.00")
    assert slip.net_salary == Decimal("12317.31")
    assert slip.deductions == [
        {"name": "Absence", "amount": "2307.69", "notes": slip.deductions[0]["notes"]},
        {"name": "Social Security (SSO)", "amount": "375.00", "notes": slip.deductions[1]["notes"]},
    ]
    assert slip.absent_units == Decimal("2")
    assert len(slip.snapshot_json["attendance"]["day_logs"]) == 15


def test_create_run_is_idempotent(db, seeded, caplog):
    caplog.set_level(logging.INFO, logger="paycore")
    first, created1 = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    before = _slip_set(first)

    # Inputs change after creation; the persisted run must not be recomputed
    add_workday(db, seeded.id, date(2024, 1, 2))
    second, created2 = svc.create_run_if_absent(db, 2024, 1, 1, LATER)

    assert (created1, created2) == (True, False)
    assert second.id == first.id
    assert _slip_set(second) == before
    assert _run_count(db) == 1
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("payroll_run.created") for m in messages)
    assert any(m.startswith("payroll_run.exists") for m in messages)


def test_excluded_employees_never_get_payslips(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    codes = {s.reference_no.rsplit("-", 1)[1] for s in run.payslips}
    assert codes == {"E001"}


def test_missing_policy_refuses_to_create(db):
    with pytest.raises(ConfigurationMissingError):
        svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    assert _run_count(db) == 0


def test_lost_creation_race_returns_the_winner(db, seeded, monkeypatch):
    winner, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    real_find = svc.find_run
    calls = {"n": 0}

    def stale_find(session, year, month, period):
        # First read misses the row a concurrent creator just committed
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_find(session, year, month, period)

    monkeypatch.setattr(svc, "find_run", stale_find)
    run, created = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    assert created is False
    assert run.id == winner.id
    assert _run_count(db) == 1


def test_contention_surfaces_after_retries(db, seeded, monkeypatch):
    monkeypatch.setenv("PAYCORE_TX_RETRIES", "2")
    attempts = {"n": 0}

    def locked(*args, **kwargs):
        attempts["n"] += 1
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    monkeypatch.setattr(svc, "load_period_inputs", locked)
    with pytest.raises(TransactionConflictError) as ei:
        svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    assert ei.value.attempts == 2
    assert attempts["n"] == 2
    assert _run_count(db) == 0


def test_compute_draft_prefers_persisted_run(db, seeded):
    fresh = compute_draft(db, 2024, 1, 1, NOW)
    assert [d.payslip_id for d in fresh] == [None]

    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    add_workday(db, seeded.id, date(2024, 1, 2))

    persisted = compute_draft(db, 2024, 1, 1, LATER)
    assert [d.payslip_id for d in persisted] == [run.payslips[0].id]
    assert persisted[0].net_salary == fresh[0].net_salary == Decimal("12317.31")
    assert persisted[0].deductions == fresh[0].deductions
    assert persisted[0].employee_code == "E001"


def _sso_amount(deductions):
    return [d["amount"] for d in deductions if d["name"] == "Social Security (SSO)"]


def test_second_period_sso_settles_the_month_after_a_policy_change(db, seeded):
    first, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    assert _sso_amount(first.payslips[0].deductions) == ["375.00"]

    # Cap lowered mid-month: monthly figure drops from 750.00 to 500.00
    add_policy(db, version=2, effective_from=date(2024, 1, 16),
               settings={"sso": {"employee_percent": 5, "monthly_cap": 10000}})

    second, _ = svc.create_run_if_absent(db, 2024, 1, 2, NOW)
    assert second.policy_version == 2
    (slip,) = second.payslips
    assert _sso_amount(slip.deductions) == ["125.00"]
    assert any("375.00 deducted in period 1" in n for n in slip.snapshot_json["calc_notes"])


def test_payslip_snapshot_carries_year_to_date_attendance(db, seeded):
    first, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    ytd = first.payslips[0].snapshot_json["attendance_ytd"]
    assert (ytd["periods"], ytd["present_days"]) == (1, 9)
    assert Decimal(ytd["absent_units"]) == Decimal("2")

    # No attendance recorded for Jan 16-31: twelve absent weekdays
    second, _ = svc.create_run_if_absent(db, 2024, 1, 2, NOW)
    ytd = second.payslips[0].snapshot_json["attendance_ytd"]
    assert (ytd["periods"], ytd["present_days"]) == (2, 9)
    assert Decimal(ytd["absent_units"]) == Decimal("14")


def test_second_period_without_first_run_uses_the_split(db, seeded):
    (draft,) = compute_draft(db, 2024, 1, 2, NOW)
    sso = [line.amount for line in draft.deductions if line.name == "Social Security (SSO)"]
    assert sso == [Decimal("375.00")]


def test_leave_starting_in_previous_year_covers_january_days(db, seeded):
    db.add(LeaveRequest(
        employee_id=seeded.id, leave_type="VACATION", start_date=date(2023, 12, 28), end_date=date(2024, 1, 3),
        year=2023, status="APPROVED",
    ))
    db.commit()

    (draft,) = compute_draft(db, 2024, 1, 1, NOW)
    assert draft.summary.leave_days == Decimal("3")
    assert draft.summary.leave_days_by_type == {"VACATION": Decimal("3")}
    assert draft.summary.absent_units == Decimal("0")
    assert [line.name for line in draft.deductions] == ["Social Security (SSO)"]
    assert draft.net_salary == Decimal("14625.00")


def test_leave_outside_the_period_is_not_loaded(db, seeded):
    db.add(LeaveRequest(
        employee_id=seeded.id, leave_type="SICK", start_date=date(2024, 1, 16), end_date=date(2024, 1, 17),
        year=2024, status="APPROVED", over_limit=True,
    ))
    db.commit()

    (draft,) = compute_draft(db, 2024, 1, 1, NOW)
    assert draft.summary.leave_days == Decimal("0")
    assert draft.summary.absent_units == Decimal("2")


# ----------------------------- transitions ----------------------------- #

def test_send_stamps_every_payslip(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    sent = svc.send_to_employees(db, run.id, LATER)
    assert sent.status == "SENT_TO_EMPLOYEE"
    assert sent.sent_at == LATER
    assert all(s.sent_to_employee_at == LATER for s in sent.payslips)


def test_send_twice_is_rejected_without_writes(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    svc.send_to_employees(db, run.id, LATER)

    with pytest.raises(InvalidTransitionError) as ei:
        svc.send_to_employees(db, run.id, datetime(2024, 2, 2, 9, 0))
    assert (ei.value.current, ei.value.requested) == ("SENT_TO_EMPLOYEE", "SENT_TO_EMPLOYEE")

    db.expire_all()
    run = db.get(PayrollRun, run.id)
    assert run.sent_at == LATER
    assert all(s.sent_to_employee_at == LATER for s in run.payslips)


def test_failed_send_leaves_run_and_payslips_untouched(db, seeded, monkeypatch):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    run_id = run.id
    monkeypatch.setenv("PAYCORE_TX_RETRIES", "2")
    attempts = {"n": 0}

    def flush_then_fail():
        # Run and payslip rows are written inside the transaction before it breaks
        db.flush()
        attempts["n"] += 1
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", flush_then_fail)
    with pytest.raises(TransactionConflictError):
        svc.send_to_employees(db, run_id, LATER)
    assert attempts["n"] == 2

    monkeypatch.undo()
    db.expire_all()
    run = db.get(PayrollRun, run_id)
    assert (run.status, run.sent_at) == ("DRAFT", None)
    assert run.payslips and all(s.sent_to_employee_at is None for s in run.payslips)


def test_decisions_need_a_sent_run(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    slip_id = run.payslips[0].id
    with pytest.raises(InvalidTransitionError):
        svc.record_employee_decision(db, slip_id, "ACCEPTED", LATER)


def test_employee_decisions(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    svc.send_to_employees(db, run.id, LATER)
    slip_id = run.payslips[0].id

    with pytest.raises(ValueError):
        svc.record_employee_decision(db, slip_id, "REJECTED", LATER, note="   ")
    with pytest.raises(ValueError):
        svc.record_employee_decision(db, slip_id, "MAYBE", LATER)

    slip = svc.record_employee_decision(db, slip_id, "REJECTED", LATER, note="Jan 2 I was on site")
    assert (slip.status, slip.employee_note) == ("REJECTED", "Jan 2 I was on site")

    slip = svc.record_employee_decision(db, slip_id, "ACCEPTED", LATER)
    assert (slip.status, slip.employee_note, slip.decided_at) == ("ACCEPTED", None, LATER)
    # The run itself does not advance
    assert svc.get_run(db, run.id).status == "SENT_TO_EMPLOYEE"


def test_finalize_requires_every_payslip_accepted(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    with pytest.raises(InvalidTransitionError):
        svc.finalize_run(db, run.id, LATER)

    svc.send_to_employees(db, run.id, LATER)
    with pytest.raises(InvalidTransitionError) as ei:
        svc.finalize_run(db, run.id, LATER)
    assert "not ACCEPTED" in str(ei.value)

    slip_id = run.payslips[0].id
    svc.record_employee_decision(db, slip_id, "ACCEPTED", LATER)
    final = svc.finalize_run(db, run.id, LATER)
    assert (final.status, final.finalized_at) == ("FINAL", LATER)

    with pytest.raises(PayslipImmutableError):
        svc.record_employee_decision(db, slip_id, "REJECTED", LATER, note="too late")
    with pytest.raises(PayslipImmutableError):
        svc.set_hr_note(db, slip_id, "edit")
    with pytest.raises(InvalidTransitionError):
        svc.send_to_employees(db, run.id, LATER)


def test_hr_note_only_while_draft(db, seeded):
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    slip_id = run.payslips[0].id

    assert svc.set_hr_note(db, slip_id, "  check Jan 2  ").hr_note == "check Jan 2"
    assert svc.set_hr_note(db, slip_id, "").hr_note is None

    svc.send_to_employees(db, run.id, LATER)
    with pytest.raises(InvalidTransitionError):
        svc.set_hr_note(db, slip_id, "late edit")


def test_unknown_ids(db):
    with pytest.raises(PayrollRunNotFoundError):
        svc.send_to_employees(db, uuid.uuid4(), NOW)
    with pytest.raises(PayslipNotFoundError):
        svc.set_hr_note(db, uuid.uuid4(), "x")


def test_review_needed_is_recorded_on_the_run(db):
    add_policy(db)
    emp = add_employee(db, "E010")
    add_workday(db, emp.id, date(2024, 1, 2), clock_out=None)
    run, _ = svc.create_run_if_absent(db, 2024, 1, 1, NOW)
    assert run.meta["review_needed"] == ["E010"]
    slip = db.execute(select(Payslip).where(Payslip.run_id == run.id)).scalar_one()
    assert slip.snapshot_json["attendance"]["review_needed"] is True
