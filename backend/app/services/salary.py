# backend/app/services/salary.py
"""
Salary resolution.

Two configuration shapes:

  static   basic + {name: amount}. Non-numeric allowance values are ignored and
           keys are mapped to the canonical names (HRA -> hra, "Standard
           Allowance" -> standardAllowance, ...).

  formula  wage + {name: {"type": KIND, "value": n}} evaluated in a fixed pipeline:
             1. basic               (PERCENTAGE_OF_WAGE | FIXED_AMOUNT; default 50% of wage)
             2. named allowances    hra, standardAllowance, performanceBonus, lta, fixedAllowance,
                                    then any other component by name
             3. the REMAINING_AMOUNT component, = max(0, wage − running total)
           Unknown kinds contribute zero.

Either way the monthly wage is basic + Σ allowances. For the formula shape that
equals the configured wage only when the components fill it exactly.

A basic that is missing, non-numeric or ≤ 0 fails with INVALID_SALARY.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.payroll import Employee, SalaryConfig
from app.services.errors import (
    InvalidComponentConfigError,
    InvalidSalaryError,
    NotFoundError,
)
from app.services.payroll_policy import D, PayrollPolicy, q2

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

PERCENTAGE_OF_WAGE = "PERCENTAGE_OF_WAGE"
PERCENTAGE_OF_BASIC = "PERCENTAGE_OF_BASIC"
FIXED_AMOUNT = "FIXED_AMOUNT"
REMAINING_AMOUNT = "REMAINING_AMOUNT"

COMPONENT_KINDS = (PERCENTAGE_OF_WAGE, PERCENTAGE_OF_BASIC, FIXED_AMOUNT, REMAINING_AMOUNT)
BASIC_KINDS = (PERCENTAGE_OF_WAGE, FIXED_AMOUNT)

ALLOWANCE_ORDER = ("hra", "standardAllowance", "performanceBonus", "lta", "fixedAllowance")

DEFAULT_BASIC_PERCENT = Decimal("50")


def _number(val: Any) -> Optional[Decimal]:
    """Decimal for real numbers; None for anything else (bools and strings included)."""
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float, Decimal)):
        d = D(val)
        return d if d.is_finite() else None
    return None


# ------------------------------- Components ------------------------------- #

@dataclass
class ComponentContext:
    wage: Decimal
    basic: Decimal = Decimal("0")
    running_total: Decimal = Decimal("0")


@dataclass(frozen=True)
class SalaryComponent:
    name: str
    value: Decimal = Decimal("0")

    kind = "UNKNOWN"

    def compute(self, ctx: ComponentContext) -> Decimal:
        return Decimal("0")


@dataclass(frozen=True)
class PercentOfWage(SalaryComponent):
    kind = PERCENTAGE_OF_WAGE

    def compute(self, ctx: ComponentContext) -> Decimal:
        return ctx.wage * self.value / HUNDRED


@dataclass(frozen=True)
class PercentOfBasic(SalaryComponent):
    kind = PERCENTAGE_OF_BASIC

    def compute(self, ctx: ComponentContext) -> Decimal:
        return ctx.basic * self.value / HUNDRED


@dataclass(frozen=True)
class FixedAmount(SalaryComponent):
    kind = FIXED_AMOUNT

    def compute(self, ctx: ComponentContext) -> Decimal:
        return self.value


@dataclass(frozen=True)
class RemainingAmount(SalaryComponent):
    kind = REMAINING_AMOUNT

    def compute(self, ctx: ComponentContext) -> Decimal:
        remaining = ctx.wage - ctx.running_total
        if remaining < 0:
            logger.warning(
                "Remaining component %s clamped to 0 (wage=%s, others=%s)",
                self.name, ctx.wage, ctx.running_total,
            )
            return Decimal("0")
        return remaining


_KIND_CLASSES = {
    PERCENTAGE_OF_WAGE: PercentOfWage,
    PERCENTAGE_OF_BASIC: PercentOfBasic,
    FIXED_AMOUNT: FixedAmount,
    REMAINING_AMOUNT: RemainingAmount,
}


def build_component(name: str, entry: Any) -> SalaryComponent:
    """{"type": KIND, "value": n} -> component; unrecognized kinds yield a zero component."""
    entry = entry if isinstance(entry, Mapping) else {}
    value = _number(entry.get("value")) or Decimal("0")
    cls = _KIND_CLASSES.get(str(entry.get("type", "")).upper(), SalaryComponent)
    return cls(name=name, value=value)


# -------------------------------- Resolver -------------------------------- #

@dataclass(frozen=True)
class ResolvedSalary:
    basic: Decimal
    allowances: Dict[str, Decimal] = field(default_factory=dict)
    # configured wage; formula shape only
    wage: Optional[Decimal] = None

    @property
    def allowances_total(self) -> Decimal:
        return sum(self.allowances.values(), Decimal("0"))

    @property
    def monthly_wage(self) -> Decimal:
        return self.basic + self.allowances_total

    @property
    def yearly_wage(self) -> Decimal:
        return self.monthly_wage * 12


@dataclass(frozen=True)
class SalaryPreview:
    """Full-month figures for a resolved salary, before any attendance proration."""
    salary: ResolvedSalary
    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    net_salary: Decimal


def validate_component_config(component_config: Mapping[str, Any]) -> None:
    """Save-time checks: known kinds, basic kind, at most one REMAINING_AMOUNT."""
    remaining: List[str] = []
    for name, entry in component_config.items():
        if not isinstance(entry, Mapping):
            raise InvalidComponentConfigError(
                f"Component {name!r} must be an object with type and value", details={"component": name}
            )
        kind = str(entry.get("type", "")).upper()
        if kind not in COMPONENT_KINDS:
            raise InvalidComponentConfigError(
                f"Unknown component type {entry.get('type')!r} for {name!r}", details={"component": name}
            )
        value = _number(entry.get("value", 0))
        if value is None or value < 0:
            raise InvalidComponentConfigError(
                f"Component {name!r} value must be a non-negative number", details={"component": name}
            )
        if kind == REMAINING_AMOUNT:
            remaining.append(name)

    basic = component_config.get("basic")
    if basic is not None and str(basic.get("type", "")).upper() not in BASIC_KINDS:
        raise InvalidComponentConfigError(
            "basic must be PERCENTAGE_OF_WAGE or FIXED_AMOUNT", details={"component": "basic"}
        )
    if len(remaining) > 1:
        raise InvalidComponentConfigError(
            "At most one component may use REMAINING_AMOUNT", details={"components": remaining}
        )


def _evaluation_order(component_config: Mapping[str, Any]) -> Tuple[List[str], Optional[str]]:
    names = [n for n in component_config if n != "basic"]
    remaining = next(
        (n for n in names if isinstance(component_config[n], Mapping)
         and str(component_config[n].get("type", "")).upper() == REMAINING_AMOUNT),
        None,
    )
    ordered = [n for n in ALLOWANCE_ORDER if n in names and n != remaining]
    ordered += sorted(n for n in names if n not in ALLOWANCE_ORDER and n != remaining)
    return ordered, remaining


def resolve_formula(
    wage: Any,
    component_config: Mapping[str, Any],
    *,
    employee_id: Any = None,
) -> ResolvedSalary:
    wage_d = _number(wage)
    if wage_d is None or wage_d <= 0:
        raise InvalidSalaryError(employee_id, f"Wage must be a positive number (employee {employee_id})")

    ctx = ComponentContext(wage=wage_d)

    basic_entry = component_config.get("basic")
    basic_component = build_component("basic", basic_entry) if basic_entry is not None else None
    if not isinstance(basic_component, (PercentOfWage, FixedAmount)):
        basic_component = PercentOfWage(name="basic", value=DEFAULT_BASIC_PERCENT)
    ctx.basic = basic_component.compute(ctx)
    if ctx.basic <= 0:
        raise InvalidSalaryError(employee_id)
    ctx.running_total = ctx.basic

    ordered, remaining = _evaluation_order(component_config)
    allowances: Dict[str, Decimal] = {}
    for name in ordered:
        amount = build_component(name, component_config[name]).compute(ctx)
        allowances[name] = amount
        ctx.running_total += amount

    if remaining is not None:
        amount = build_component(remaining, component_config[remaining]).compute(ctx)
        allowances[remaining] = amount
        ctx.running_total += amount

    return ResolvedSalary(
        basic=q2(ctx.basic),
        allowances={k: q2(v) for k, v in allowances.items()},
        wage=q2(wage_d),
    )


def canonical_allowance_name(key: Any) -> str:
    """'HRA' -> 'hra', 'Standard Allowance' -> 'standardAllowance'; others just lose a leading capital."""
    key = str(key)
    flat = key.lower().replace(" ", "").replace("_", "")
    if flat in ("hra", "lta"):
        return flat
    if "standard" in flat:
        return "standardAllowance"
    if "performance" in flat:
        return "performanceBonus"
    if "fixed" in flat:
        return "fixedAllowance"
    return key[:1].lower() + key[1:]


def resolve_static(basic: Any, allowances: Optional[Mapping[str, Any]], *, employee_id: Any = None) -> ResolvedSalary:
    basic_d = _number(basic)
    if basic_d is None or basic_d <= 0:
        raise InvalidSalaryError(employee_id)
    clean: Dict[str, Decimal] = {}
    for k, v in (allowances or {}).items():
        amount = _number(v)
        if amount is None:
            continue
        name = canonical_allowance_name(k)
        clean[name] = clean.get(name, Decimal("0")) + q2(amount)
    return ResolvedSalary(basic=q2(basic_d), allowances=clean)


def resolve(cfg: SalaryConfig) -> ResolvedSalary:
    """Resolve a stored configuration; formula shape wins when component_config is set."""
    if cfg.component_config:
        return resolve_formula(cfg.wage, cfg.component_config, employee_id=cfg.employee_id)
    return resolve_static(cfg.basic, cfg.allowances, employee_id=cfg.employee_id)


# ------------------------------ Persistence ------------------------------ #

def list_employees_with_salary_config(db: Session, company_id: uuid.UUID) -> List[Tuple[Employee, SalaryConfig]]:
    rows = db.execute(
        select(Employee, SalaryConfig)
        .join(SalaryConfig, SalaryConfig.employee_id == Employee.id)
        .where(Employee.company_id == company_id, SalaryConfig.company_id == company_id)
        .order_by(Employee.code)
    ).all()
    return [(emp, cfg) for emp, cfg in rows]


def _get_employee(db: Session, company_id: uuid.UUID, employee_id: uuid.UUID) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp or emp.company_id != company_id:
        raise NotFoundError("Employee not found", details={"employee_id": str(employee_id)})
    return emp


def get_salary_config(db: Session, company_id: uuid.UUID, employee_id: uuid.UUID) -> SalaryConfig:
    cfg = db.execute(
        select(SalaryConfig).where(
            SalaryConfig.company_id == company_id,
            SalaryConfig.employee_id == employee_id,
        )
    ).scalar_one_or_none()
    if cfg is None:
        raise NotFoundError(
            "Salary configuration not found for this employee", details={"employee_id": str(employee_id)}
        )
    return cfg


def save_salary_config(
    db: Session,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    *,
    basic: Optional[Decimal] = None,
    allowances: Optional[Mapping[str, Any]] = None,
    wage: Optional[Decimal] = None,
    component_config: Optional[Mapping[str, Any]] = None,
    pf_rate: Optional[Decimal] = None,
    professional_tax: Optional[Decimal] = None,
) -> Tuple[SalaryConfig, ResolvedSalary]:
    """Create or replace the employee's configuration; stores the resolved amounts too."""
    emp = _get_employee(db, company_id, employee_id)

    if component_config:
        validate_component_config(component_config)
        resolved = resolve_formula(wage, component_config, employee_id=emp.id)
    else:
        resolved = resolve_static(basic, allowances, employee_id=emp.id)

    cfg = db.execute(
        select(SalaryConfig).where(SalaryConfig.employee_id == emp.id)
    ).scalar_one_or_none()
    if cfg is None:
        cfg = SalaryConfig(company_id=company_id, employee_id=emp.id)
        db.add(cfg)

    cfg.basic = resolved.basic
    cfg.allowances = {k: float(v) for k, v in resolved.allowances.items()}
    cfg.wage = resolved.wage
    cfg.component_config = {
        k: {"type": str(v["type"]).upper(), "value": float(D(v.get("value", 0)))}
        for k, v in (component_config or {}).items()
    }
    cfg.pf_rate = pf_rate
    cfg.professional_tax = professional_tax

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(cfg)
    logger.info("Salary configuration saved employee=%s wage=%s", emp.id, resolved.monthly_wage)
    return cfg, resolved


def preview_salary(
    *,
    policy: PayrollPolicy,
    basic: Optional[Decimal] = None,
    allowances: Optional[Mapping[str, Any]] = None,
    wage: Optional[Decimal] = None,
    component_config: Optional[Mapping[str, Any]] = None,
    pf_rate: Optional[Decimal] = None,
    professional_tax: Optional[Decimal] = None,
) -> SalaryPreview:
    """Resolve a configuration without persisting it, with full-month PF, tax and net."""
    if component_config:
        validate_component_config(component_config)
        resolved = resolve_formula(wage, component_config)
    else:
        resolved = resolve_static(basic, allowances)

    policy = policy.for_salary(pf_rate_percent=pf_rate, professional_tax=professional_tax)
    monthly = resolved.monthly_wage
    pf = q2(resolved.basic * policy.pf_rate)
    prof_tax = q2(policy.prof_tax_fixed) if monthly >= policy.prof_tax_threshold else q2(0)
    return SalaryPreview(
        salary=resolved,
        pf_employee=pf,
        pf_employer=pf,
        professional_tax=prof_tax,
        net_salary=q2(max(Decimal("0"), monthly - pf - prof_tax)),
    )


def delete_salary_config(db: Session, company_id: uuid.UUID, employee_id: uuid.UUID) -> None:
    cfg = get_salary_config(db, company_id, employee_id)
    db.delete(cfg)
    db.commit()
    logger.info("Salary configuration deleted employee=%s", employee_id)


__all__ = [
    "COMPONENT_KINDS",
    "ALLOWANCE_ORDER",
    "ComponentContext",
    "SalaryComponent",
    "PercentOfWage",
    "PercentOfBasic",
    "FixedAmount",
    "RemainingAmount",
    "build_component",
    "ResolvedSalary",
    "SalaryPreview",
    "canonical_allowance_name",
    "validate_component_config",
    "resolve_formula",
    "resolve_static",
    "resolve",
    "list_employees_with_salary_config",
    "get_salary_config",
    "save_salary_config",
    "preview_salary",
    "delete_salary_config",
]
