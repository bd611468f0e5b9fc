# backend/app/services/payroll_policy.py
"""
Payroll policy: the rate/threshold constants used by attendance and payslips.

Config precedence per field:
    1) Environment variables (override specific fields)
    2) Built-in defaults (keeps app working without any configuration)

Fields:
    • pf_rate                  : provident fund rate as a fraction of prorated basic (0.12)
    • prof_tax_threshold       : gross at/above which professional tax applies (15000)
    • prof_tax_fixed           : professional tax amount when it applies (200)
    • min_active_hours_present : worked hours needed for a day to count present (4)
    • work_hours_per_day       : standard day; hours beyond it are "extra" (8)
    • work_week_mon_to_fri     : total working days = business days, else calendar days (true)

The policy is immutable; callers that need a variant use dataclasses.replace().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Any, Optional

# ---------------------------- Decimal helpers ---------------------------- #

def D(val: Any) -> Decimal:
    if isinstance(val, Decimal):
        return val
    try:
        return Decimal(str(val))
    except Exception:
        return Decimal("0")

def q2(val: Any) -> Decimal:
    return D(val).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

# ---------------------------- Env helpers ---------------------------- #

def _env_decimal(key: str, default: Decimal) -> Decimal:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except Exception:
        return default

def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}

# ---------------------------- Data holder ---------------------------- #

@dataclass(frozen=True)
class PayrollPolicy:
    pf_rate: Decimal = Decimal("0.12")
    prof_tax_threshold: Decimal = Decimal("15000")
    prof_tax_fixed: Decimal = Decimal("200")
    min_active_hours_present: Decimal = Decimal("4")
    work_hours_per_day: Decimal = Decimal("8")
    work_week_mon_to_fri: bool = True

    def for_salary(
        self,
        *,
        pf_rate_percent: Optional[Decimal] = None,
        professional_tax: Optional[Decimal] = None,
    ) -> "PayrollPolicy":
        """Apply per-employee overrides stored on a salary configuration."""
        changes = {}
        if pf_rate_percent is not None:
            changes["pf_rate"] = D(pf_rate_percent) / Decimal("100")
        if professional_tax is not None:
            changes["prof_tax_fixed"] = D(professional_tax)
        return replace(self, **changes) if changes else self

# ---------------------------- Loader ---------------------------- #

def policy_from_env() -> PayrollPolicy:
    defaults = PayrollPolicy()
    return PayrollPolicy(
        pf_rate=_env_decimal("PAYROLL_PF_RATE", defaults.pf_rate),
        prof_tax_threshold=_env_decimal("PAYROLL_PROF_TAX_THRESHOLD", defaults.prof_tax_threshold),
        prof_tax_fixed=_env_decimal("PAYROLL_PROF_TAX_FIXED", defaults.prof_tax_fixed),
        min_active_hours_present=_env_decimal("MIN_ACTIVE_HOURS_PRESENT", defaults.min_active_hours_present),
        work_hours_per_day=_env_decimal("WORK_HOURS_PER_DAY", defaults.work_hours_per_day),
        work_week_mon_to_fri=_env_bool("WORK_WEEK_MON_TO_FRI", defaults.work_week_mon_to_fri),
    )

@lru_cache(maxsize=1)
def load_policy() -> PayrollPolicy:
    return policy_from_env()

__all__ = [
    "D",
    "q2",
    "PayrollPolicy",
    "policy_from_env",
    "load_policy",
]
