"""
Typed exceptions for the payroll engine and run lifecycle.

Every class carries a machine-readable ``code`` class attribute plus the
structured values that caused it, so the API layer can map them to status
codes without parsing messages.

    PayrollError
    +-- ConfigurationMissingError
    +-- InvalidPeriodError
    +-- InvalidTransitionError
    +-- PayrollRunNotFoundError
    +-- PayslipNotFoundError
    +-- PayslipImmutableError
    +-- TransactionConflictError

A duplicate run request is not an error (the existing run is returned), and
a missing clock-out is surfaced as a ``review_needed`` flag, not raised.
"""

from __future__ import annotations

from typing import Optional


class PayrollError(Exception):
    """Base exception for payroll errors."""

    code: str = "PAYROLL_ERROR"


class ConfigurationMissingError(PayrollError):
    """No HR policy document is in effect for the requested date."""

    code: str = "CONFIGURATION_MISSING"

    def __init__(self, as_of: str, detail: Optional[str] = None):
        self.as_of = as_of
        msg = f"No HR policy in effect on {as_of}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class InvalidPeriodError(PayrollError):
    """Year/month/period triple does not describe a pay period."""

    code: str = "INVALID_PERIOD"

    def __init__(self, year: int, month: int, period: int, reason: Optional[str] = None):
        self.year = year
        self.month = month
        self.period = period
        self.reason = reason
        msg = f"Invalid pay period: {year}-{month:02d} period {period}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidTransitionError(PayrollError):
    """Requested state change is not allowed from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity: str, entity_id: str, current: str, requested: str, reason: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        self.reason = reason
        msg = f"Cannot move {entity} {entity_id} from {current} to {requested}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class PayrollRunNotFoundError(PayrollError):
    code: str = "PAYROLL_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"PayrollRun not found: {run_id}")


class PayslipNotFoundError(PayrollError):
    code: str = "PAYSLIP_NOT_FOUND"

    def __init__(self, payslip_id: str):
        self.payslip_id = payslip_id
        super().__init__(f"Payslip not found: {payslip_id}")


class PayslipImmutableError(PayrollError):
    """Payslip belongs to a FINAL run and can no longer change."""

    code: str = "PAYSLIP_IMMUTABLE"

    def __init__(self, payslip_id: str, run_id: str):
        self.payslip_id = payslip_id
        self.run_id = run_id
        super().__init__(f"Payslip {payslip_id} is locked: run {run_id} is FINAL")


class TransactionConflictError(PayrollError):
    """The atomic write kept losing races after all retries."""

    code: str = "TRANSACTION_CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} conflicted with a concurrent write after {attempts} attempt(s); retry")
