# backend/paycore/services/payroll.py
"""
Payroll run coordinator: idempotent run creation and the run/payslip lifecycle.

Run states:      DRAFT -> SENT_TO_EMPLOYEE -> FINAL   (forward only, no skipping)
Payslip states:  PENDING_REVIEW -> ACCEPTED | REJECTED (employee side, while SENT)

Atomicity:
- create_run_if_absent reads the run by key and writes the run plus every
  payslip in ONE transaction. On PostgreSQL a transaction-scoped advisory
  lock per {year, month, period} serializes concurrent creators; everywhere
  the UNIQUE(year, month, period) constraint is the backstop, and losing that
  race resolves to the winner's run.
- send_to_employees flips the run and stamps every payslip in one commit.
- Contention (OperationalError) is retried PAYCORE_TX_RETRIES times with a
  fresh read each attempt, then surfaces as TransactionConflictError.
- Validation failures raise before anything is written.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from paycore.exceptions import (
    InvalidTransitionError,
    PayrollRunNotFoundError,
    PayslipImmutableError,
    PayslipNotFoundError,
    TransactionConflictError,
)
from paycore.models.payroll import Payslip, PayrollRun
from paycore.services.hr_policy import load_policy_for_period
from paycore.services.payroll_inputs import load_period_inputs
from paycore.services.payslips import PayslipDraft, compute_draft_payslips, find_run, load_history

logger = logging.getLogger(__name__)

T = TypeVar("T")

DECISIONS = ("ACCEPTED", "REJECTED")


# ----------------------------- Transactions ----------------------------- #

def _tx_retries() -> int:
    try:
        return max(1, int(os.getenv("PAYCORE_TX_RETRIES", "3")))
    except ValueError:
        return 3


def _run_lock_key(year: int, month: int, period: int) -> int:
    """Unique key per YYYY-MM-P for PG advisory locks."""
    return 7_000_000 + (year * 100 + month) * 10 + period


def _lock_run_key(db: Session, year: int, month: int, period: int) -> None:
    # Released automatically at commit/rollback
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": _run_lock_key(year, month, period)})


def _in_transaction(db: Session, operation: str, work: Callable[[], T]) -> T:
    """Run `work` and commit; retry on contention, roll back on anything else."""
    attempts = _tx_retries()
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except OperationalError:
            db.rollback()
            logger.warning("payroll.tx_retry op=%s attempt=%d/%d", operation, attempt, attempts)
        except Exception:
            db.rollback()
            raise
    logger.error("payroll.tx_conflict op=%s attempts=%d", operation, attempts)
    raise TransactionConflictError(operation, attempts)


# ------------------------------- Lookups ------------------------------- #

def get_run(db: Session, run_id: uuid.UUID) -> PayrollRun:
    run = db.get(PayrollRun, run_id)
    if run is None:
        raise PayrollRunNotFoundError(str(run_id))
    return run


def get_payslip(db: Session, payslip_id: uuid.UUID) -> Payslip:
    slip = db.get(Payslip, payslip_id)
    if slip is None:
        raise PayslipNotFoundError(str(payslip_id))
    return slip


def list_payslips(db: Session, run_id: uuid.UUID) -> List[Payslip]:
    return list(get_run(db, run_id).payslips)


# ------------------------------- Creation ------------------------------- #

def _payslip_from_draft(draft: PayslipDraft) -> Payslip:
    summary = draft.summary
    return Payslip(
        employee_id=draft.employee_id,
        employee_name=draft.employee_name,
        reference_no=draft.reference_no,
        base_salary=draft.base_salary,
        total_deductions=draft.total_deductions,
        net_salary=draft.net_salary,
        deductions=[line.to_dict() for line in draft.deductions],
        present_days=summary.present_days,
        late_days=summary.late_days,
        late_minutes=summary.late_minutes,
        absent_units=summary.absent_units,
        leave_days=summary.leave_days,
        snapshot_json=draft.snapshot(),
        status="PENDING_REVIEW",
        hr_note=None,
    )


def create_run_if_absent(
    db: Session,
    year: int,
    month: int,
    period: int,
    now: datetime,
    created_by: Optional[str] = None,
) -> Tuple[PayrollRun, bool]:
    """
    Return (run, created). An existing run for the key is returned untouched;
    otherwise the run (DRAFT) and one PENDING_REVIEW payslip per eligible
    employee are written together.
    """
    attempts = _tx_retries()
    for attempt in range(1, attempts + 1):
        try:
            _lock_run_key(db, year, month, period)
            existing = find_run(db, year, month, period)
            if existing is not None:
                db.commit()
                logger.info("payroll_run.exists run=%s id=%s status=%s", existing.key, existing.id, existing.status)
                return existing, False

            policy, start, end = load_policy_for_period(db, year, month, period)
            inputs = load_period_inputs(db, policy, year, month, period)
            drafts = compute_draft_payslips(inputs, now, load_history(db, year, month, period))

            run = PayrollRun(
                year=year,
                month=month,
                period=period,
                period_start=start,
                period_end=end,
                status="DRAFT",
                policy_version=policy.version,
                created_by=created_by,
                meta={"review_needed": sorted(d.employee_code for d in drafts if d.review_needed)},
            )
            run.payslips = [_payslip_from_draft(d) for d in drafts]
            db.add(run)
            db.commit()
            db.refresh(run)
            logger.info(
                "payroll_run.created run=%s id=%s payslips=%d policy_version=%s",
                run.key, run.id, len(drafts), policy.version,
            )
            return run, True

        except IntegrityError:
            db.rollback()
            existing = find_run(db, year, month, period)
            if existing is None:
                raise
            logger.info("payroll_run.exists run=%s id=%s (lost creation race)", existing.key, existing.id)
            return existing, False
        except OperationalError:
            db.rollback()
            logger.warning("payroll.tx_retry op=create_run attempt=%d/%d", attempt, attempts)
        except Exception:
            db.rollback()
            raise

    logger.error("payroll.tx_conflict op=create_run attempts=%d", attempts)
    raise TransactionConflictError("create_run", attempts)


# ------------------------------ Transitions ------------------------------ #

def send_to_employees(db: Session, run_id: uuid.UUID, now: datetime) -> PayrollRun:
    """DRAFT -> SENT_TO_EMPLOYEE; run and every payslip in one commit."""

    def work() -> PayrollRun:
        run = get_run(db, run_id)
        if run.status != "DRAFT":
            raise InvalidTransitionError("PayrollRun", str(run.id), run.status, "SENT_TO_EMPLOYEE")
        run.status = "SENT_TO_EMPLOYEE"
        run.sent_at = now
        for slip in run.payslips:
            slip.sent_to_employee_at = now
        return run

    run = _in_transaction(db, "send_to_employees", work)
    db.refresh(run)
    logger.info("payroll_run.sent run=%s id=%s payslips=%d", run.key, run.id, len(run.payslips))
    return run


def finalize_run(db: Session, run_id: uuid.UUID, now: datetime) -> PayrollRun:
    """SENT_TO_EMPLOYEE -> FINAL, once every payslip is ACCEPTED."""

    def work() -> PayrollRun:
        run = get_run(db, run_id)
        if run.status != "SENT_TO_EMPLOYEE":
            raise InvalidTransitionError("PayrollRun", str(run.id), run.status, "FINAL")
        pending = [p.reference_no for p in run.payslips if p.status != "ACCEPTED"]
        if pending:
            raise InvalidTransitionError(
                "PayrollRun", str(run.id), run.status, "FINAL",
                reason=f"{len(pending)} payslip(s) not ACCEPTED",
            )
        run.status = "FINAL"
        run.finalized_at = now
        return run

    run = _in_transaction(db, "finalize_run", work)
    db.refresh(run)
    logger.info("payroll_run.finalized run=%s id=%s", run.key, run.id)
    return run


def record_employee_decision(
    db: Session,
    payslip_id: uuid.UUID,
    decision: str,
    now: datetime,
    note: Optional[str] = None,
) -> Payslip:
    """
    Employee accepts a payslip or asks for a revision. Allowed only while the
    run is SENT_TO_EMPLOYEE; the run's own status is not changed.
    """
    if decision not in DECISIONS:
        raise ValueError(f"decision must be one of {', '.join(DECISIONS)}")
    note = (note or "").strip() or None
    if decision == "REJECTED" and note is None:
        raise ValueError("a note is required when requesting a revision")

    def work() -> Payslip:
        slip = get_payslip(db, payslip_id)
        run = slip.run
        if run.status == "FINAL":
            raise PayslipImmutableError(str(slip.id), str(run.id))
        if run.status != "SENT_TO_EMPLOYEE":
            raise InvalidTransitionError(
                "Payslip", str(slip.id), slip.status, decision, reason=f"run {run.key} is {run.status}"
            )
        slip.status = decision
        slip.employee_note = note if decision == "REJECTED" else None
        slip.decided_at = now
        return slip

    slip = _in_transaction(db, "record_employee_decision", work)
    db.refresh(slip)
    logger.info("payslip.decision ref=%s decision=%s", slip.reference_no, decision)
    return slip


def set_hr_note(db: Session, payslip_id: uuid.UUID, note: Optional[str]) -> Payslip:
    """HR annotates a payslip while its run is still DRAFT."""
    note = (note or "").strip() or None

    def work() -> Payslip:
        slip = get_payslip(db, payslip_id)
        run = slip.run
        if run.status == "FINAL":
            raise PayslipImmutableError(str(slip.id), str(run.id))
        if run.status != "DRAFT":
            raise InvalidTransitionError(
                "Payslip", str(slip.id), slip.status, slip.status, reason=f"HR notes are editable only while DRAFT; run is {run.status}"
            )
        slip.hr_note = note
        return slip

    slip = _in_transaction(db, "set_hr_note", work)
    db.refresh(slip)
    logger.info("payslip.hr_note ref=%s cleared=%s", slip.reference_no, note is None)
    return slip
