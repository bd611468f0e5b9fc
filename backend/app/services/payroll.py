# backend/app/services/payroll.py
"""
Payrun orchestration.

Lifecycle:
    draft ──compute──▶ computed ──validate──▶ done        (terminal)
      │                   │ ▲
      │                   └─┘ compute (re-enterable)
      └──────cancel───────┴──────────────────▶ cancelled  (terminal)

- create_payrun(month): idempotent; returns the live payrun for (company, month) if any
- compute_payslips(run): one transaction; resolves salary, aggregates attendance,
  runs the calculator and upserts one payslip per employee (unique payrun+employee)
  • an invalid basic aborts the whole batch (nothing written)
  • missing attendance / zero allowances / clamped net are warnings, not errors
- validate_payrun / cancel_payrun: guarded UPDATE ... WHERE status IN (expected);
  payslip statuses follow the payrun
- recompute_payslip(slip): one employee; payrun totals are re-rolled from the
  payslip rows in the same transaction, so gross_total/net_total always equal
  the sums over the payrun's payslips
- reference_no pattern for payslips: PAY-{YYYYMM}-{empCode}-{run8}
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.payroll import Employee, Payrun, Payslip, SalaryConfig
from app.services.attendance import (
    MonthPayableSummary,
    get_employee_summary,
    get_payable_summary,
    parse_month,
)
from app.services.errors import (
    InvalidStatusError,
    NoEmployeesError,
    NotFoundError,
    PayrollWarning,
)
from app.services.payroll_policy import PayrollPolicy, q2
from app.services.payslip import PayslipBreakdown, compute_one
from app.services.salary import get_salary_config, list_employees_with_salary_config, resolve

logger = logging.getLogger(__name__)

COMPUTABLE = ("draft", "computed")
VALIDATABLE = ("computed",)
CANCELLABLE = ("draft", "computed")

WARN_NO_ATTENDANCE = "NOT_FOUND"
WARN_ZERO_ALLOWANCES = "ZERO_ALLOWANCES"
WARN_NET_CLAMPED = "NET_CLAMPED"


@dataclass
class ComputeResult:
    payrun: Payrun
    processed_count: int
    warnings: List[PayrollWarning] = field(default_factory=list)


@dataclass
class RecomputeResult:
    payslip: Payslip
    recomputed: bool
    warnings: List[PayrollWarning] = field(default_factory=list)


# ----------------------------- Lookup helpers ----------------------------- #

def _live_payrun(db: Session, company_id: uuid.UUID, period_month) -> Optional[Payrun]:
    return db.execute(
        select(Payrun)
        .where(
            Payrun.company_id == company_id,
            Payrun.period_month == period_month,
            Payrun.status != "cancelled",
        )
        .order_by(Payrun.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_payrun(db: Session, company_id: uuid.UUID, payrun_id: uuid.UUID) -> Payrun:
    run = db.get(Payrun, payrun_id)
    if not run or run.company_id != company_id:
        raise NotFoundError("Payrun not found", details={"payrun_id": str(payrun_id)})
    return run


def get_payslip(db: Session, company_id: uuid.UUID, payslip_id: uuid.UUID) -> Payslip:
    slip = db.get(Payslip, payslip_id)
    if not slip or slip.company_id != company_id:
        raise NotFoundError("Payslip not found", details={"payslip_id": str(payslip_id)})
    return slip


def reference_no(run: Payrun, emp: Employee) -> str:
    # UNIQUE per run: prevents collisions across runs in the same month
    run8 = str(run.id).replace("-", "")[:8]
    return f"PAY-{run.period_month:%Y%m}-{emp.code}-{run8}"


# ------------------------------ Write helpers ----------------------------- #

def _guarded_transition(
    db: Session,
    run: Payrun,
    expected: Sequence[str],
    action: str,
    **values,
) -> None:
    """UPDATE payruns ... WHERE status IN (expected); zero rows means someone else moved it."""
    res = db.execute(
        update(Payrun)
        .where(
            Payrun.id == run.id,
            Payrun.company_id == run.company_id,
            Payrun.status.in_(tuple(expected)),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        current = db.execute(select(Payrun.status).where(Payrun.id == run.id)).scalar_one_or_none()
        raise InvalidStatusError(
            f"Cannot {action} a payrun in status {current!r}",
            details={"payrun_id": str(run.id), "status": current, "expected": list(expected)},
        )


def _payslip_values(run: Payrun, emp: Employee, breakdown: PayslipBreakdown) -> Dict[str, object]:
    return {
        "components": breakdown.to_json(),
        "basic": breakdown.basic,
        "allowances_total": q2(breakdown.allowances_total),
        "monthly_wage": breakdown.monthly_wage,
        "total_working_days": breakdown.total_working_days,
        "payable_days": Decimal(breakdown.payable_days),
        "attendance_days_amount": breakdown.attendance_days_amount,
        "paid_leave_days_amount": breakdown.paid_leave_days_amount,
        "gross": breakdown.gross,
        "pf_employee": breakdown.deductions.pf_employee,
        "pf_employer": breakdown.deductions.pf_employer,
        "professional_tax": breakdown.deductions.professional_tax,
        "net": breakdown.net,
        "status": "computed",
        "reference_no": reference_no(run, emp),
    }


def _upsert_payslip(db: Session, run: Payrun, emp: Employee, breakdown: PayslipBreakdown) -> None:
    """INSERT ... ON CONFLICT (payrun_id, employee_id) DO UPDATE; last writer wins per row."""
    values = _payslip_values(run, emp, breakdown)
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(Payslip).values(
            id=uuid.uuid4(),
            company_id=run.company_id,
            payrun_id=run.id,
            employee_id=emp.id,
            period_month=run.period_month,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["payrun_id", "employee_id"],
            set_={**{k: stmt.excluded[k] for k in values}, "updated_at": func.now()},
        )
        db.execute(stmt)
        return

    # Other backends: read-modify-write under a row lock
    slip = db.execute(
        select(Payslip)
        .where(Payslip.payrun_id == run.id, Payslip.employee_id == emp.id)
        .with_for_update()
    ).scalar_one_or_none()
    if slip is None:
        slip = Payslip(
            company_id=run.company_id,
            payrun_id=run.id,
            employee_id=emp.id,
            period_month=run.period_month,
        )
        db.add(slip)
    for k, v in values.items():
        setattr(slip, k, v)
    db.flush()


def _payslip_totals(db: Session, payrun_id: uuid.UUID) -> Tuple[int, Decimal, Decimal]:
    count, gross, net = db.execute(
        select(
            func.count(Payslip.id),
            func.coalesce(func.sum(Payslip.gross), 0),
            func.coalesce(func.sum(Payslip.net), 0),
        ).where(Payslip.payrun_id == payrun_id)
    ).one()
    return int(count), q2(gross), q2(net)


def _salary_warnings(emp: Employee, breakdown: PayslipBreakdown) -> List[PayrollWarning]:
    out: List[PayrollWarning] = []
    if not breakdown.allowances or breakdown.allowances_total == 0:
        out.append(PayrollWarning(emp.id, WARN_ZERO_ALLOWANCES, f"No allowances configured for {emp.code}"))
    if breakdown.net_clamped:
        out.append(
            PayrollWarning(
                emp.id, WARN_NET_CLAMPED, f"Deductions exceed gross for {emp.code}; net set to 0",
                details={"gross": str(breakdown.gross)},
            )
        )
    return out


def _missing_attendance(emp: Employee, month: str) -> PayrollWarning:
    logger.warning("No attendance data for employee %s in %s; skipped", emp.id, month)
    return PayrollWarning(
        emp.id, WARN_NO_ATTENDANCE, f"No attendance data for {emp.code} in {month}",
        details={"month": month},
    )


def _employee_policy(policy: PayrollPolicy, cfg: SalaryConfig) -> PayrollPolicy:
    return policy.for_salary(pf_rate_percent=cfg.pf_rate, professional_tax=cfg.professional_tax)


# ------------------------------- Operations ------------------------------- #

def create_payrun(
    db: Session,
    company_id: uuid.UUID,
    month: str,
    *,
    created_by: Optional[uuid.UUID] = None,
) -> Tuple[Payrun, bool]:
    """Return (payrun, created). An existing non-cancelled payrun for the month is returned as is."""
    period = parse_month(month)

    existing = _live_payrun(db, company_id, period)
    if existing:
        return existing, False

    run = Payrun(company_id=company_id, period_month=period, status="draft", created_by=created_by)
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent create; the winner is the payrun
        db.rollback()
        existing = _live_payrun(db, company_id, period)
        if existing:
            return existing, False
        raise
    db.refresh(run)
    logger.info("Payrun created id=%s company=%s month=%s", run.id, company_id, run.month)
    return run, True


def compute_payslips(
    db: Session,
    company_id: uuid.UUID,
    payrun_id: uuid.UUID,
    policy: PayrollPolicy,
) -> ComputeResult:
    run = get_payrun(db, company_id, payrun_id)
    if run.status not in COMPUTABLE:
        raise InvalidStatusError(
            f"Cannot compute a payrun in status {run.status!r}",
            details={"payrun_id": str(run.id), "status": run.status},
        )

    rows = list_employees_with_salary_config(db, company_id)
    if not rows:
        raise NoEmployeesError("No employees with a salary configuration")

    month = run.month
    warnings: List[PayrollWarning] = []
    produced: List[uuid.UUID] = []
    gross_total = Decimal("0")
    net_total = Decimal("0")

    try:
        summaries: Dict[uuid.UUID, MonthPayableSummary] = {
            s.employee_id: s
            for s in get_payable_summary(
                db, company_id, run.period_month.year, run.period_month.month, policy,
                employee_ids=[emp.id for emp, _ in rows],
            )
        }

        for emp, cfg in rows:
            salary = resolve(cfg)  # InvalidSalaryError aborts the batch

            summary = summaries.get(emp.id)
            if summary is None or not summary.has_records:
                warnings.append(_missing_attendance(emp, month))
                continue

            breakdown = compute_one(emp.id, salary, summary, _employee_policy(policy, cfg))
            warnings.extend(_salary_warnings(emp, breakdown))

            _upsert_payslip(db, run, emp, breakdown)
            produced.append(emp.id)
            gross_total += breakdown.gross
            net_total += breakdown.net

        # Payslips of employees not produced this time (config deleted, no attendance)
        db.execute(
            delete(Payslip)
            .where(Payslip.payrun_id == run.id, Payslip.employee_id.not_in(produced))
            .execution_options(synchronize_session=False)
        )

        _guarded_transition(
            db, run, COMPUTABLE, "compute",
            status="computed",
            employees_count=len(produced),
            gross_total=q2(gross_total),
            net_total=q2(net_total),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(run)
    logger.info(
        "Payrun computed id=%s month=%s employees=%s gross=%s net=%s warnings=%s",
        run.id, month, run.employees_count, run.gross_total, run.net_total, len(warnings),
    )
    return ComputeResult(payrun=run, processed_count=len(produced), warnings=warnings)


def validate_payrun(
    db: Session,
    company_id: uuid.UUID,
    payrun_id: uuid.UUID,
    *,
    validated_by: Optional[uuid.UUID] = None,
) -> Payrun:
    run = get_payrun(db, company_id, payrun_id)
    try:
        _guarded_transition(
            db, run, VALIDATABLE, "validate",
            status="done",
            validated_by=validated_by,
            validated_at=datetime.now(timezone.utc),
        )
        db.execute(
            update(Payslip)
            .where(Payslip.payrun_id == run.id)
            .values(status="done")
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(run)
    logger.info("Payrun validated id=%s month=%s by=%s", run.id, run.month, validated_by)
    return run


def cancel_payrun(db: Session, company_id: uuid.UUID, payrun_id: uuid.UUID) -> Payrun:
    run = get_payrun(db, company_id, payrun_id)
    try:
        _guarded_transition(db, run, CANCELLABLE, "cancel", status="cancelled")
        db.execute(
            update(Payslip)
            .where(Payslip.payrun_id == run.id)
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(run)
    logger.info("Payrun cancelled id=%s month=%s", run.id, run.month)
    return run


def recompute_payslip(
    db: Session,
    company_id: uuid.UUID,
    payslip_id: uuid.UUID,
    policy: PayrollPolicy,
) -> RecomputeResult:
    """Re-run one employee against current salary/attendance and re-roll the payrun totals."""
    slip = get_payslip(db, company_id, payslip_id)
    run = slip.payrun
    if run.status not in COMPUTABLE:
        raise InvalidStatusError(
            f"Cannot recompute a payslip of a payrun in status {run.status!r}",
            details={"payrun_id": str(run.id), "status": run.status},
        )

    emp = slip.employee
    cfg = get_salary_config(db, company_id, emp.id)
    salary = resolve(cfg)

    summary = get_employee_summary(
        db, company_id, emp.id, run.period_month.year, run.period_month.month, policy
    )
    if not summary.has_records:
        return RecomputeResult(payslip=slip, recomputed=False, warnings=[_missing_attendance(emp, run.month)])

    breakdown = compute_one(emp.id, salary, summary, _employee_policy(policy, cfg))
    warnings = _salary_warnings(emp, breakdown)

    try:
        _upsert_payslip(db, run, emp, breakdown)
        count, gross_total, net_total = _payslip_totals(db, run.id)
        _guarded_transition(
            db, run, COMPUTABLE, "recompute",
            employees_count=count,
            gross_total=gross_total,
            net_total=net_total,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(slip)
    logger.info("Payslip recomputed id=%s payrun=%s", slip.id, run.id)
    return RecomputeResult(payslip=slip, recomputed=True, warnings=warnings)


# ------------------------------- Read models ------------------------------ #

def list_payruns(
    db: Session,
    company_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Tuple[Payrun, int]]:
    """Newest month first, each with its payslip count."""
    stmt = (
        select(Payrun, func.count(Payslip.id))
        .outerjoin(Payslip, Payslip.payrun_id == Payrun.id)
        .where(Payrun.company_id == company_id)
        .group_by(Payrun.id)
        .order_by(Payrun.period_month.desc(), Payrun.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if status:
        stmt = stmt.where(Payrun.status == status)
    return [(run, int(n)) for run, n in db.execute(stmt).all()]


def count_payruns(db: Session, company_id: uuid.UUID, *, status: Optional[str] = None) -> int:
    stmt = select(func.count(Payrun.id)).where(Payrun.company_id == company_id)
    if status:
        stmt = stmt.where(Payrun.status == status)
    return int(db.execute(stmt).scalar_one())


def list_payslips(db: Session, company_id: uuid.UUID, payrun_id: uuid.UUID) -> List[Payslip]:
    run = get_payrun(db, company_id, payrun_id)
    return list(
        db.execute(
            select(Payslip)
            .join(Employee, Employee.id == Payslip.employee_id)
            .where(Payslip.payrun_id == run.id)
            .order_by(Employee.code)
        ).scalars()
    )


def list_employee_payslips(
    db: Session,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    *,
    include_cancelled: bool = False,
) -> List[Payslip]:
    emp = db.get(Employee, employee_id)
    if not emp or emp.company_id != company_id:
        raise NotFoundError("Employee not found", details={"employee_id": str(employee_id)})

    stmt = select(Payslip).where(Payslip.company_id == company_id, Payslip.employee_id == emp.id)
    if not include_cancelled:
        stmt = stmt.where(Payslip.status != "cancelled")
    return list(db.execute(stmt.order_by(Payslip.period_month.desc(), Payslip.created_at.desc())).scalars())


__all__ = [
    "ComputeResult",
    "RecomputeResult",
    "create_payrun",
    "compute_payslips",
    "validate_payrun",
    "cancel_payrun",
    "recompute_payslip",
    "get_payrun",
    "get_payslip",
    "list_payruns",
    "list_payslips",
    "list_employee_payslips",
    "count_payruns",
    "reference_no",
]
