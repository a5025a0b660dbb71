# backend/paycore/models/__init__.py
"""
Central model registry.

Import this once at startup (e.g., in main.py, alembic env.py, test
fixtures) so SQLAlchemy sees all mapped classes before create_all/autogenerate.
"""
from paycore.db import Base  # re-export Base
from paycore.models.hr import (  # noqa: F401
    AttendanceAdjustment,
    AttendanceEvent,
    Employee,
    HRPolicy,
    Holiday,
    LeaveRequest,
)
from paycore.models.payroll import Payslip, PayrollRun  # noqa: F401
