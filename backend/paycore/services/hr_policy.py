# backend/paycore/services/hr_policy.py
"""
HR policy resolver: raw settings record -> fully-defaulted PayrollPolicy.

The raw record (hr_policies.settings) may omit any field. Defaults:
    work start 08:00, work end 17:00, grace 0 min,
    absent cutoff 09:00, afternoon cutoff 13:00,
    weekend SAT_SUN, period 1 = days 1-15, period 2 starts day 16,
    salary-deduction base days 26 (env PAYCORE_DEFAULT_BASE_DAYS),
    SSO and withholding OFF.

Statutory figures are never guessed: SSO is on only when an explicit
employee_percent > 0 is present, withholding only when enabled=true and a
percent is given. The rest of the engine consumes PayrollPolicy and never
tests for field presence again.

Raw shape (snake_case, every key optional):
{
  "work_start": "08:00", "work_end": "17:00", "grace_minutes": 5,
  "absent_cutoff_time": "09:00", "afternoon_cutoff_time": "13:00",
  "weekend_policy": {"mode": "SAT_SUN" | "SUN_ONLY"},
  "payroll": {"period1_start": 1, "period1_end": 15, "period2_start": 16,
              "salary_deduction_base_days": 26},
  "sso": {"employee_percent": 5, "monthly_cap": 15000, "min_base": 1650},
  "withholding": {"enabled": true, "default_percent": 3},
  "attendance": {"late_deduction_enabled": false, "early_leave_half_day": false},
  "leave_policy": {"leave_types": {
      "SICK": {"over_limit_handling": {"mode": "DEDUCT_SALARY",
                                       "salary_deduction_base_days": 30}}}}
}
"""

from __future__ import annotations

import calendar
import logging
import os
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from paycore.exceptions import ConfigurationMissingError, InvalidPeriodError
from paycore.models.hr import HRPolicy

logger = logging.getLogger(__name__)

WEEKEND_RULES = ("SAT_SUN", "SUN_ONLY")
OVER_LIMIT_MODES = ("DEDUCT_SALARY", "UNPAID", "DISALLOW", "NONE")


# ---------------------------- Utilities ---------------------------- #

def _dec(val: Any, default: Decimal) -> Decimal:
    if val is None or isinstance(val, bool):
        return default
    try:
        return val if isinstance(val, Decimal) else Decimal(str(val))
    except (InvalidOperation, ValueError):
        return default

def _int(val: Any, default: int) -> int:
    if val is None or isinstance(val, bool):
        return default
    try:
        return int(val)
    except (TypeError, ValueError):
        return default

def _time(val: Any, default: time) -> time:
    if isinstance(val, time):
        return val
    if not isinstance(val, str) or ":" not in val:
        return default
    try:
        hh, mm = val.strip().split(":")[:2]
        return time(int(hh), int(mm))
    except ValueError:
        return default

def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    val = raw.get(key)
    return val if isinstance(val, Mapping) else {}

def _default_base_days() -> Decimal:
    return _dec(os.getenv("PAYCORE_DEFAULT_BASE_DAYS"), Decimal("26"))


# ---------------------------- Data holders ---------------------------- #

@dataclass(frozen=True)
class LeaveTypePolicy:
    over_limit_mode: str = "NONE"
    # None -> fall back to the payroll-wide base days
    base_days: Optional[Decimal] = None

    @property
    def deducts_salary(self) -> bool:
        return self.over_limit_mode in ("DEDUCT_SALARY", "UNPAID")


@dataclass(frozen=True)
class PayrollPolicy:
    version: int = 0

    work_start: time = time(8, 0)
    work_end: time = time(17, 0)
    grace_minutes: int = 0
    absent_cutoff: time = time(9, 0)
    afternoon_cutoff: time = time(13, 0)
    weekend_rule: str = "SAT_SUN"

    period1_start: int = 1
    period1_end: int = 15
    period2_start: int = 16
    salary_deduction_base_days: Decimal = Decimal("26")

    leave_types: Mapping[str, LeaveTypePolicy] = field(default_factory=dict)

    sso_employee_percent: Decimal = Decimal("0")
    sso_monthly_cap: Optional[Decimal] = None
    sso_min_base: Decimal = Decimal("0")

    withholding_enabled: bool = False
    withholding_percent: Decimal = Decimal("0")

    late_deduction_enabled: bool = False
    early_leave_half_day: bool = False

    @property
    def sso_enabled(self) -> bool:
        return self.sso_employee_percent > 0

    @property
    def withholding_active(self) -> bool:
        return self.withholding_enabled and self.withholding_percent > 0

    def leave_policy(self, leave_type: str) -> LeaveTypePolicy:
        return self.leave_types.get(leave_type) or LeaveTypePolicy()

    def leave_base_days(self, leave_type: str) -> Decimal:
        return self.leave_policy(leave_type).base_days or self.salary_deduction_base_days


# ---------------------------- Resolver ---------------------------- #

def _resolve_leave_types(raw: Mapping[str, Any]) -> Dict[str, LeaveTypePolicy]:
    types = _section(_section(raw, "leave_policy"), "leave_types")
    out: Dict[str, LeaveTypePolicy] = {}
    for name, cfg in types.items():
        if not isinstance(cfg, Mapping):
            continue
        handling = _section(cfg, "over_limit_handling")
        mode = handling.get("mode") if handling.get("mode") in OVER_LIMIT_MODES else "NONE"
        base_days = _dec(handling.get("salary_deduction_base_days", cfg.get("salary_deduction_base_days")), Decimal("0"))
        out[str(name)] = LeaveTypePolicy(
            over_limit_mode=mode,
            base_days=base_days if base_days > 0 else None,
        )
    return out


def resolve_policy(settings: Optional[Mapping[str, Any]], *, version: int = 0) -> PayrollPolicy:
    """Apply defaults to a raw HR settings record. Never raises."""
    raw: Mapping[str, Any] = settings or {}
    payroll = _section(raw, "payroll")
    sso = _section(raw, "sso")
    wht = _section(raw, "withholding")
    attendance = _section(raw, "attendance")

    weekend = _section(raw, "weekend_policy").get("mode")
    if weekend not in WEEKEND_RULES:
        weekend = "SAT_SUN"

    base_days = _dec(payroll.get("salary_deduction_base_days"), _default_base_days())
    if base_days <= 0:
        base_days = _default_base_days()

    cap = _dec(sso.get("monthly_cap"), Decimal("0"))

    return PayrollPolicy(
        version=version,
        work_start=_time(raw.get("work_start"), time(8, 0)),
        work_end=_time(raw.get("work_end"), time(17, 0)),
        grace_minutes=max(0, _int(raw.get("grace_minutes"), 0)),
        absent_cutoff=_time(raw.get("absent_cutoff_time"), time(9, 0)),
        afternoon_cutoff=_time(raw.get("afternoon_cutoff_time"), time(13, 0)),
        weekend_rule=weekend,
        period1_start=_int(payroll.get("period1_start"), 1),
        period1_end=_int(payroll.get("period1_end"), 15),
        period2_start=_int(payroll.get("period2_start"), 16),
        salary_deduction_base_days=base_days,
        leave_types=_resolve_leave_types(raw),
        sso_employee_percent=max(Decimal("0"), _dec(sso.get("employee_percent"), Decimal("0"))),
        sso_monthly_cap=cap if cap > 0 else None,
        sso_min_base=max(Decimal("0"), _dec(sso.get("min_base"), Decimal("0"))),
        withholding_enabled=wht.get("enabled") is True,
        withholding_percent=max(Decimal("0"), _dec(wht.get("default_percent"), Decimal("0"))),
        late_deduction_enabled=attendance.get("late_deduction_enabled") is True,
        early_leave_half_day=attendance.get("early_leave_half_day") is True,
    )


def load_active_policy(db: Session, as_of: date) -> PayrollPolicy:
    """Newest policy version effective on `as_of`; refuses to run without one."""
    row = db.execute(
        select(HRPolicy)
        .where(HRPolicy.effective_from <= as_of)
        .order_by(HRPolicy.version.desc())
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        raise ConfigurationMissingError(as_of.isoformat())
    logger.info("hr_policy.resolved version=%s as_of=%s", row.version, as_of)
    return resolve_policy(row.settings, version=row.version)


# ---------------------------- Pay periods ---------------------------- #

def period_bounds(policy: PayrollPolicy, year: int, month: int, period: int) -> Tuple[date, date]:
    """Inclusive (start, end) of pay period 1 or 2; period 2 always ends at month end."""
    if not (1 <= month <= 12) or period not in (1, 2) or year < 1:
        raise InvalidPeriodError(year, month, period)
    if policy.period2_start <= policy.period1_end:
        raise InvalidPeriodError(
            year, month, period,
            reason=f"period 2 starts on day {policy.period2_start}, inside period 1 ending on day {policy.period1_end}",
        )
    last_day = calendar.monthrange(year, month)[1]

    def clamp(day: int) -> int:
        return min(max(day, 1), last_day)

    if period == 1:
        start_day, end_day = clamp(policy.period1_start), clamp(policy.period1_end)
    else:
        start_day, end_day = clamp(policy.period2_start), last_day
        # Short months can swallow period 2 entirely
        if start_day <= clamp(policy.period1_end):
            raise InvalidPeriodError(year, month, period, reason=f"no days left after period 1 in {year}-{month:02d}")

    if start_day > end_day:
        raise InvalidPeriodError(year, month, period)
    return date(year, month, start_day), date(year, month, end_day)


def _earliest_policy_in_month(db: Session, year: int, month: int) -> Optional[PayrollPolicy]:
    month_end = date(year, month, calendar.monthrange(year, month)[1])
    row = db.execute(
        select(HRPolicy)
        .where(HRPolicy.effective_from <= month_end)
        .order_by(HRPolicy.effective_from, HRPolicy.version)
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        return None
    return resolve_policy(row.settings, version=row.version)


def load_policy_for_period(db: Session, year: int, month: int, period: int) -> Tuple[PayrollPolicy, date, date]:
    """
    Policy in effect at the start of the pay period, plus the period bounds.

    Period boundaries are themselves policy data, so a provisional policy
    fixes the bounds first: the one in effect on the 1st, or when nothing is
    yet, the earliest version taking effect during the month. The lookup is
    then repeated at the period start to pick up a version that took effect
    in between.
    """
    period_bounds(PayrollPolicy(), year, month, period)
    first = date(year, month, 1)
    try:
        policy = load_active_policy(db, first)
        provisional = False
    except ConfigurationMissingError:
        policy = _earliest_policy_in_month(db, year, month)
        if policy is None:
            raise
        provisional = True

    start, end = period_bounds(policy, year, month, period)
    if provisional or start != first:
        policy = load_active_policy(db, start)
        start, end = period_bounds(policy, year, month, period)
    return policy, start, end
