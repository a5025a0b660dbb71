# backend/paycore/api/hr.py
"""
Minimal create endpoints for the upstream HR records payroll reads.

Roster, leave and attendance workflows live in their own modules; these
exist so a fresh database can be seeded for a payroll run.
"""
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from paycore.dependencies import get_db
from paycore.models.hr import (
    AttendanceAdjustment,
    AttendanceEvent,
    Employee,
    Holiday,
    LeaveRequest,
)
from paycore.schemas.hr import (
    AdjustmentCreate,
    AttendanceCreate,
    EmployeeCreate,
    HolidayCreate,
    LeaveCreate,
)

router = APIRouter(prefix="/hr", tags=["hr"])


def _require_employee(db: Session, employee_id: UUID) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


def _save(db: Session, row: Any, conflict: str) -> Any:
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=conflict)
    db.refresh(row)
    return row


@router.post("/employees", status_code=status.HTTP_201_CREATED)
def api_create_employee(payload: EmployeeCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    emp = _save(db, Employee(**payload.model_dump()), f"Employee code {payload.code} already exists")
    return {
        "id": emp.id,
        "code": emp.code,
        "display_name": emp.display_name,
        "status": emp.status,
        "pay_type": emp.pay_type,
        "salary_monthly": emp.salary_monthly,
        "start_date": emp.start_date,
        "end_date": emp.end_date,
    }


@router.post("/holidays", status_code=status.HTTP_201_CREATED)
def api_create_holiday(payload: HolidayCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    h = _save(db, Holiday(day=payload.day, name=payload.name), f"Holiday on {payload.day} already exists")
    return {"id": h.id, "day": h.day, "name": h.name}


@router.post("/leaves", status_code=status.HTTP_201_CREATED)
def api_create_leave(payload: LeaveCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    _require_employee(db, payload.employee_id)
    leave = _save(
        db,
        LeaveRequest(**payload.model_dump(), year=payload.start_date.year),
        "Leave request could not be stored",
    )
    return {
        "id": leave.id,
        "employee_id": leave.employee_id,
        "leave_type": leave.leave_type,
        "start_date": leave.start_date,
        "end_date": leave.end_date,
        "status": leave.status,
        "over_limit": leave.over_limit,
    }


@router.post("/attendance", status_code=status.HTTP_201_CREATED)
def api_create_attendance(payload: AttendanceCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    _require_employee(db, payload.employee_id)
    # Stored as local wall-clock time
    ts = payload.timestamp.replace(tzinfo=None)
    ev = _save(
        db,
        AttendanceEvent(employee_id=payload.employee_id, timestamp=ts, direction=payload.direction),
        "Attendance event could not be stored",
    )
    return {"id": ev.id, "employee_id": ev.employee_id, "timestamp": ev.timestamp, "direction": ev.direction}


@router.post("/adjustments", status_code=status.HTTP_201_CREATED)
def api_create_adjustment(payload: AdjustmentCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    _require_employee(db, payload.employee_id)
    data = payload.model_dump()
    for key in ("adjusted_in", "adjusted_out"):
        if data[key] is not None:
            data[key] = data[key].replace(tzinfo=None)
    adj = _save(
        db,
        AttendanceAdjustment(**data),
        f"An adjustment already exists for {payload.day}",
    )
    return {
        "id": adj.id,
        "employee_id": adj.employee_id,
        "day": adj.day,
        "kind": adj.kind,
        "adjusted_in": adj.adjusted_in,
        "adjusted_out": adj.adjusted_out,
    }
