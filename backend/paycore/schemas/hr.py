# backend/paycore/schemas/hr.py
"""
Pydantic schemas for the upstream HR records payroll reads.

Only create shapes live here; roster, leave and attendance maintenance
belong to their own modules.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


EmployeeStatus = Literal["ACTIVE", "SUSPENDED", "INACTIVE"]

PayType = Literal["MONTHLY", "DAILY", "MONTHLY_NO_ATTENDANCE", "UNPAID"]

LeaveStatus = Literal["PENDING", "APPROVED", "REJECTED", "CANCELLED"]


class EmployeeCreate(BaseModel):
    code: str = Field(..., max_length=32)
    display_name: str = Field(..., max_length=200)
    status: EmployeeStatus = "ACTIVE"
    pay_type: PayType = "MONTHLY"
    salary_monthly: Optional[Decimal] = Field(None, description="Missing or <= 0 excludes the employee from payroll")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class HolidayCreate(BaseModel):
    day: date
    name: str = Field(..., max_length=200)


class LeaveCreate(BaseModel):
    employee_id: UUID
    leave_type: str = Field(..., max_length=32)
    start_date: date
    end_date: date
    status: LeaveStatus = "APPROVED"
    over_limit: bool = False
    is_half_day: bool = False
    half_day_session: Optional[Literal["MORNING", "AFTERNOON"]] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self) -> "LeaveCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class AttendanceCreate(BaseModel):
    employee_id: UUID
    timestamp: datetime
    direction: Literal["IN", "OUT"]


class AdjustmentCreate(BaseModel):
    employee_id: UUID
    day: date
    kind: Literal["ADD_RECORD", "FORGIVE_LATE"]
    adjusted_in: Optional[datetime] = None
    adjusted_out: Optional[datetime] = None
    note: Optional[str] = None
