# backend/app/services/attendance.py
"""
Attendance aggregation for payroll.

Per employee per calendar day we derive:
  • work seconds from completed time logs (start and end both set), bucketed by start date
  • the approved leave type covering the day (earliest-created leave wins on overlap)
  • a classification: present / paid_leave / unpaid_leave / absent

A day under any leave is never present, whatever the hours. Month totals:
  payable_days = present_days + paid_leave_days
  total_working_days is a policy constant (business days Mon–Fri, or calendar days)

Nothing here raises for missing data: no logs and no leave means zeros.
"""

from __future__ import annotations

import calendar
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models.attendance import PAID_LEAVE_TYPES, LeaveRequest, TimeLog
from app.models.payroll import Employee
from app.services.errors import InvalidMonthError, NotFoundError
from app.services.payroll_policy import PayrollPolicy, q2

SECONDS_PER_HOUR = Decimal("3600")

PRESENT = "present"
PAID_LEAVE = "paid_leave"
UNPAID_LEAVE = "unpaid_leave"
ABSENT = "absent"


# ----------------------------- Month helpers ----------------------------- #

def parse_month(month: str) -> date:
    """'YYYY-MM' -> first-of-month date."""
    try:
        y, m = str(month).strip().split("-")
        if len(y) != 4 or len(m) != 2:
            raise ValueError(month)
        return date(int(y), int(m), 1)
    except (TypeError, ValueError):
        raise InvalidMonthError("month must be YYYY-MM", details={"month": month})


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """Inclusive [first, last] dates of the month."""
    if not (1 <= month <= 12):
        raise InvalidMonthError("Invalid month (1-12 required).", details={"month": month})
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _days(first: date, last: date) -> Iterable[date]:
    d = first
    while d <= last:
        yield d
        d += timedelta(days=1)


def business_days_in_month(year: int, month: int) -> int:
    first, last = month_bounds(year, month)
    return sum(1 for d in _days(first, last) if d.weekday() < 5)


def total_working_days(year: int, month: int, policy: PayrollPolicy) -> int:
    if policy.work_week_mon_to_fri:
        return business_days_in_month(year, month)
    return calendar.monthrange(year, month)[1]


# ------------------------------- Day facts ------------------------------- #

@dataclass
class DayFact:
    day: date
    work_seconds: int = 0
    in_at: Optional[datetime] = None
    out_at: Optional[datetime] = None
    leave_type: Optional[str] = None

    @property
    def work_hours(self) -> Decimal:
        return Decimal(self.work_seconds) / SECONDS_PER_HOUR

    def has_records(self) -> bool:
        return self.work_seconds > 0 or self.in_at is not None or self.leave_type is not None


def classify_day(work_seconds: int, leave_type: Optional[str], policy: PayrollPolicy) -> str:
    if leave_type:
        return PAID_LEAVE if leave_type in PAID_LEAVE_TYPES else UNPAID_LEAVE
    if Decimal(work_seconds) / SECONDS_PER_HOUR >= policy.min_active_hours_present:
        return PRESENT
    return ABSENT


def is_payable_day(work_seconds: int, leave_type: Optional[str], policy: PayrollPolicy) -> bool:
    return classify_day(work_seconds, leave_type, policy) in (PRESENT, PAID_LEAVE)


# ------------------------------ Month summary ----------------------------- #

@dataclass(frozen=True)
class MonthPayableSummary:
    employee_id: uuid.UUID
    year: int
    month: int
    total_working_days: int
    present_days: int = 0
    paid_leave_days: int = 0
    unpaid_leave_days: int = 0
    has_records: bool = False
    employee_code: Optional[str] = None
    employee_name: Optional[str] = None

    @property
    def payable_days(self) -> int:
        return self.present_days + self.paid_leave_days


def summarize_month(
    employee_id: uuid.UUID,
    year: int,
    month: int,
    facts: Dict[date, DayFact],
    policy: PayrollPolicy,
    *,
    employee_code: Optional[str] = None,
    employee_name: Optional[str] = None,
) -> MonthPayableSummary:
    first, last = month_bounds(year, month)
    present = paid_leave = unpaid_leave = 0
    has_records = False

    for d in _days(first, last):
        fact = facts.get(d)
        if fact is None:
            continue
        has_records = has_records or fact.has_records()
        kind = classify_day(fact.work_seconds, fact.leave_type, policy)
        if kind == PRESENT:
            present += 1
        elif kind == PAID_LEAVE:
            paid_leave += 1
        elif kind == UNPAID_LEAVE:
            unpaid_leave += 1

    return MonthPayableSummary(
        employee_id=employee_id,
        year=year,
        month=month,
        total_working_days=total_working_days(year, month, policy),
        present_days=present,
        paid_leave_days=paid_leave,
        unpaid_leave_days=unpaid_leave,
        has_records=has_records,
        employee_code=employee_code,
        employee_name=employee_name,
    )


# ------------------------------- DB loaders ------------------------------- #

def _load_day_facts(
    db: Session,
    company_id: uuid.UUID,
    employee_ids: Sequence[uuid.UUID],
    first: date,
    last: date,
) -> Dict[uuid.UUID, Dict[date, DayFact]]:
    """One pass over time logs and one over approved leaves for all employees."""
    facts: Dict[uuid.UUID, Dict[date, DayFact]] = defaultdict(dict)
    if not employee_ids:
        return facts

    window_start = datetime.combine(first, datetime.min.time())
    window_end = datetime.combine(last + timedelta(days=1), datetime.min.time())

    logs = db.execute(
        select(TimeLog).where(
            TimeLog.company_id == company_id,
            TimeLog.employee_id.in_(employee_ids),
            TimeLog.end_time.is_not(None),
            TimeLog.start_time >= window_start,
            TimeLog.start_time < window_end,
        )
    ).scalars()

    for log in logs:
        d = log.start_time.date()
        fact = facts[log.employee_id].setdefault(d, DayFact(day=d))
        fact.work_seconds += log.work_seconds
        if fact.in_at is None or log.start_time < fact.in_at:
            fact.in_at = log.start_time
        if fact.out_at is None or log.end_time > fact.out_at:
            fact.out_at = log.end_time

    # Overlapping approved leaves: the earliest-created request owns the day
    leaves = db.execute(
        select(LeaveRequest)
        .where(
            LeaveRequest.company_id == company_id,
            LeaveRequest.employee_id.in_(employee_ids),
            LeaveRequest.status == "APPROVED",
            LeaveRequest.start_date <= last,
            LeaveRequest.end_date >= first,
        )
        .order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
    ).scalars()

    for leave in leaves:
        for d in _days(max(leave.start_date, first), min(leave.end_date, last)):
            fact = facts[leave.employee_id].setdefault(d, DayFact(day=d))
            if fact.leave_type is None:
                fact.leave_type = leave.type

    return facts


def _get_employee(db: Session, company_id: uuid.UUID, employee_id: uuid.UUID) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp or emp.company_id != company_id:
        raise NotFoundError("Employee not found", details={"employee_id": str(employee_id)})
    return emp


# ------------------------------- Public API ------------------------------- #

def get_payable_summary(
    db: Session,
    company_id: uuid.UUID,
    year: int,
    month: int,
    policy: PayrollPolicy,
    *,
    employee_ids: Optional[Sequence[uuid.UUID]] = None,
) -> List[MonthPayableSummary]:
    """Month summary for every employee of the company (or the given subset)."""
    first, last = month_bounds(year, month)

    stmt = select(Employee).where(Employee.company_id == company_id)
    if employee_ids is not None:
        stmt = stmt.where(Employee.id.in_(list(employee_ids)))
    employees = db.execute(stmt.order_by(Employee.first_name, Employee.last_name, Employee.code)).scalars().all()

    facts = _load_day_facts(db, company_id, [e.id for e in employees], first, last)
    return [
        summarize_month(
            e.id, year, month, facts.get(e.id, {}), policy,
            employee_code=e.code, employee_name=e.full_name,
        )
        for e in employees
    ]


def get_employee_summary(
    db: Session,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
    month: int,
    policy: PayrollPolicy,
) -> MonthPayableSummary:
    emp = _get_employee(db, company_id, employee_id)
    first, last = month_bounds(year, month)
    facts = _load_day_facts(db, company_id, [emp.id], first, last)
    return summarize_month(
        emp.id, year, month, facts.get(emp.id, {}), policy,
        employee_code=emp.code, employee_name=emp.full_name,
    )


def _hours2(value: Decimal) -> float:
    return float(q2(value))


def get_attendance_me(
    db: Session,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
    month: int,
    policy: PayrollPolicy,
) -> Dict[str, object]:
    """Self-view: only days with completed logs or approved leave, plus month KPIs."""
    emp = _get_employee(db, company_id, employee_id)
    first, last = month_bounds(year, month)
    facts = _load_day_facts(db, company_id, [emp.id], first, last).get(emp.id, {})
    summary = summarize_month(emp.id, year, month, facts, policy)

    days = []
    for d in sorted(facts):
        fact = facts[d]
        hours = fact.work_hours
        extra = max(Decimal("0"), hours - policy.work_hours_per_day)
        days.append(
            {
                "date": d,
                "in_at": fact.in_at,
                "out_at": fact.out_at,
                "work_hours": _hours2(hours),
                "extra_hours": _hours2(extra),
                "leave_type": fact.leave_type,
                "payable": is_payable_day(fact.work_seconds, fact.leave_type, policy),
            }
        )

    return {
        "days": days,
        "kpi": {
            "present_days": summary.present_days,
            "leave_days": summary.paid_leave_days + summary.unpaid_leave_days,
            "unpaid_leave_days": summary.unpaid_leave_days,
            "total_working_days": summary.total_working_days,
            "payable_days": summary.payable_days,
        },
    }


def get_attendance_day(
    db: Session,
    company_id: uuid.UUID,
    day: date,
    policy: PayrollPolicy,
    *,
    search: Optional[str] = None,
) -> List[Dict[str, object]]:
    """Admin day view: every employee with that day's in/out and hours."""
    stmt = select(Employee).where(Employee.company_id == company_id)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Employee.first_name.ilike(like),
                Employee.last_name.ilike(like),
                Employee.code.ilike(like),
                Employee.email.ilike(like),
            )
        )
    employees = db.execute(stmt.order_by(Employee.first_name, Employee.last_name)).scalars().all()
    facts = _load_day_facts(db, company_id, [e.id for e in employees], day, day)

    rows = []
    for e in employees:
        fact = facts.get(e.id, {}).get(day) or DayFact(day=day)
        hours = fact.work_hours
        rows.append(
            {
                "employee_id": e.id,
                "code": e.code,
                "name": e.full_name,
                "in_at": fact.in_at,
                "out_at": fact.out_at,
                "work_hours": _hours2(hours),
                "extra_hours": _hours2(max(Decimal("0"), hours - policy.work_hours_per_day)),
                "leave_type": fact.leave_type,
            }
        )
    return rows


__all__ = [
    "parse_month",
    "month_bounds",
    "business_days_in_month",
    "total_working_days",
    "DayFact",
    "classify_day",
    "is_payable_day",
    "MonthPayableSummary",
    "summarize_month",
    "get_payable_summary",
    "get_employee_summary",
    "get_attendance_me",
    "get_attendance_day",
]
