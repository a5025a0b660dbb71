# backend/paycore/api/payroll.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from paycore.dependencies import get_db, get_evaluation_time
from paycore.models.hr import HRPolicy
from paycore.models.payroll import Payslip, PayrollRun
from paycore.schemas.payroll import (
    HRNoteIn,
    PayrollRunCreate,
    PayslipDecisionIn,
    PayslipDraftOut,
    PolicyCreate,
    PolicyOut,
)
from paycore.services import payroll as svc
from paycore.services.hr_policy import load_active_policy
from paycore.services.payslips import PayslipDraft, compute_draft

router = APIRouter(prefix="/payroll", tags=["payroll"])

# ----------------------------- helpers ----------------------------- #

def _run_out(r: PayrollRun) -> Dict[str, Any]:
    return {
        "id": r.id,
        "key": r.key,
        "year": r.year,
        "month": r.month,
        "period": r.period,
        "period_start": r.period_start,
        "period_end": r.period_end,
        "status": r.status,
        "policy_version": r.policy_version,
        "created_by": r.created_by,
        "sent_at": r.sent_at,
        "finalized_at": r.finalized_at,
        "payslip_count": len(r.payslips),
        "meta": r.meta or {},
        "created_at": r.created_at,
    }

def _payslip_out(s: Payslip) -> Dict[str, Any]:
    return {
        "id": s.id,
        "run_id": s.run_id,
        "employee_id": s.employee_id,
        "employee_name": s.employee_name,
        "reference_no": s.reference_no,
        "base_salary": s.base_salary,
        "deductions": s.deductions or [],
        "total_deductions": s.total_deductions,
        "net_salary": s.net_salary,
        "present_days": s.present_days,
        "late_days": s.late_days,
        "late_minutes": s.late_minutes,
        "absent_units": s.absent_units,
        "leave_days": s.leave_days,
        "snapshot_json": s.snapshot_json or {},
        "status": s.status,
        "hr_note": s.hr_note,
        "employee_note": s.employee_note,
        "sent_to_employee_at": s.sent_to_employee_at,
        "decided_at": s.decided_at,
        "created_at": s.created_at,
    }

def _draft_out(d: PayslipDraft) -> PayslipDraftOut:
    return PayslipDraftOut(
        payslip_id=str(d.payslip_id) if d.payslip_id else None,
        employee_id=str(d.employee_id),
        employee_code=d.employee_code,
        employee_name=d.employee_name,
        reference_no=d.reference_no,
        status=d.status,
        base_salary=d.base_salary,
        deductions=[line.to_dict() for line in d.deductions],
        total_deductions=d.total_deductions,
        net_salary=d.net_salary,
        hr_note=d.hr_note,
        review_needed=d.review_needed,
        attendance=d.summary.to_dict(),
        attendance_ytd=d.attendance_ytd,
        calc_notes=list(d.calc_notes),
    )

# ----------------------------- HR policy ----------------------------- #

@router.post("/policies", status_code=status.HTTP_201_CREATED)
def api_create_policy(payload: PolicyCreate, db: Session = Depends(get_db)):
    exists = db.query(HRPolicy).filter(HRPolicy.version == payload.version).first()
    if exists:
        raise HTTPException(status_code=409, detail=f"HR policy version {payload.version} already exists")
    row = HRPolicy(version=payload.version, effective_from=payload.effective_from, settings=dict(payload.settings))
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"id": row.id, "version": row.version, "effective_from": row.effective_from, "settings": row.settings}

@router.get("/policies/active", response_model=PolicyOut)
def api_active_policy(as_of: Optional[date] = Query(None), db: Session = Depends(get_db),
                      now: datetime = Depends(get_evaluation_time)):
    policy = load_active_policy(db, as_of or now.date())
    return PolicyOut(
        **{k: getattr(policy, k) for k in PolicyOut.model_fields if k != "leave_types"},
        leave_types={
            name: {"over_limit_mode": lt.over_limit_mode, "base_days": lt.base_days}
            for name, lt in policy.leave_types.items()
        },
    )

# ----------------------------- drafts & runs ----------------------------- #

@router.get("/drafts/{year}/{month}/{period}", response_model=List[PayslipDraftOut])
def api_compute_draft(year: int, month: int, period: int, db: Session = Depends(get_db),
                      now: datetime = Depends(get_evaluation_time)):
    return [_draft_out(d) for d in compute_draft(db, year, month, period, now)]

@router.post("/runs")
def api_create_run(payload: PayrollRunCreate, response: Response, db: Session = Depends(get_db),
                   now: datetime = Depends(get_evaluation_time)):
    run, created = svc.create_run_if_absent(
        db, payload.year, payload.month, payload.period, now, created_by=payload.created_by
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {**_run_out(run), "created": created}

@router.get("/runs/{run_id}")
def api_get_run(run_id: UUID, db: Session = Depends(get_db)):
    return _run_out(svc.get_run(db, run_id))

@router.get("/runs/{run_id}/payslips")
def api_list_run_payslips(run_id: UUID, db: Session = Depends(get_db)):
    return [_payslip_out(s) for s in svc.list_payslips(db, run_id)]

@router.post("/runs/{run_id}/send")
def api_send_run(run_id: UUID, db: Session = Depends(get_db), now: datetime = Depends(get_evaluation_time)):
    return _run_out(svc.send_to_employees(db, run_id, now))

@router.post("/runs/{run_id}/finalize")
def api_finalize_run(run_id: UUID, db: Session = Depends(get_db), now: datetime = Depends(get_evaluation_time)):
    return _run_out(svc.finalize_run(db, run_id, now))

# ----------------------------- payslips ----------------------------- #

@router.post("/payslips/{payslip_id}/decision")
def api_payslip_decision(payslip_id: UUID, payload: PayslipDecisionIn, db: Session = Depends(get_db),
                         now: datetime = Depends(get_evaluation_time)):
    try:
        slip = svc.record_employee_decision(db, payslip_id, payload.decision, now, note=payload.note)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _payslip_out(slip)

@router.patch("/payslips/{payslip_id}/hr-note")
def api_payslip_hr_note(payslip_id: UUID, payload: HRNoteIn, db: Session = Depends(get_db)):
    return _payslip_out(svc.set_hr_note(db, payslip_id, payload.note))
