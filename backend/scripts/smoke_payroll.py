# backend/scripts/smoke_payroll.py
"""
Smoke test for the payroll engine (service level, no HTTP).

What it does:
1) Creates a unique company + employee so repeats won't collide
2) Saves a formula salary config (wage 30,000; basic 50%; HRA 50% of basic; remainder)
3) Logs 8h on every weekday of last month, with one approved CASUAL leave day
4) Creates the payrun for that month and computes it
5) Prints a compact JSON summary (payrun totals, payslip breakdown, warnings)

Run:
(.venv) > python backend/scripts/smoke_payroll.py
"""

from __future__ import annotations

# --- PATH SHIM: ensure 'app' package is importable when running this script ---
import os, sys
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))          # .../backend/scripts
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))   # .../backend
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import json
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  (registers all tables)
from app.models.attendance import LeaveRequest, TimeLog
from app.models.payroll import Company, Employee
from app.services.payroll import compute_payslips, create_payrun, list_payslips
from app.services.payroll_policy import load_policy
from app.services.salary import save_salary_config


def _last_month() -> date:
    first_this = date.today().replace(day=1)
    return (first_this - timedelta(days=1)).replace(day=1)


def _get_session():
    """
    Build a DB session from DATABASE_URL. We don't import the app's SessionLocal
    to keep this script stand-alone and robust.
    """
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL not set. Activate venv and ensure env is loaded.")
    eng = create_engine(db_url, pool_pre_ping=True)
    return sessionmaker(bind=eng, autoflush=False, autocommit=False)()


def main():
    month_start = _last_month()
    stamp = f"{datetime.now():%H%M%S}"
    db = _get_session()

    # 1) Company + employee
    company = Company(name=f"Smoke Co {stamp}", code=f"SMK{stamp}")
    db.add(company)
    db.flush()
    emp = Employee(company_id=company.id, code=f"E{stamp}", first_name="Smoke", last_name="Tester")
    db.add(emp)
    db.commit()

    # 2) Salary (formula)
    save_salary_config(
        db,
        company.id,
        emp.id,
        wage=30000,
        component_config={
            "basic": {"type": "PERCENTAGE_OF_WAGE", "value": 50},
            "hra": {"type": "PERCENTAGE_OF_BASIC", "value": 50},
            "fixedAllowance": {"type": "REMAINING_AMOUNT", "value": 0},
        },
    )

    # 3) Attendance: 8h per weekday, first weekday taken as approved CASUAL leave
    d = month_start
    leave_day = None
    while d.month == month_start.month:
        if d.weekday() < 5:
            if leave_day is None:
                leave_day = d
            else:
                start = datetime.combine(d, time(9, 0), tzinfo=timezone.utc)
                db.add(TimeLog(
                    company_id=company.id, employee_id=emp.id,
                    start_time=start, end_time=start + timedelta(hours=8), duration=8 * 3600,
                ))
        d += timedelta(days=1)
    db.add(LeaveRequest(
        company_id=company.id, employee_id=emp.id, type="CASUAL", status="APPROVED",
        start_date=leave_day, end_date=leave_day, reason="smoke",
    ))
    db.commit()

    # 4) Payrun + compute
    run, _created = create_payrun(db, company.id, f"{month_start:%Y-%m}")
    res = compute_payslips(db, company.id, run.id, load_policy())

    # 5) Summary
    slips = list_payslips(db, company.id, run.id)
    out = {
        "company": {"id": str(company.id), "code": company.code},
        "payrun": {
            "id": str(res.payrun.id),
            "month": res.payrun.month,
            "status": res.payrun.status,
            "employees_count": res.payrun.employees_count,
            "gross_total": str(res.payrun.gross_total),
            "net_total": str(res.payrun.net_total),
        },
        "processed_count": res.processed_count,
        "warnings": [w.to_dict() for w in res.warnings],
        "payslips": [{"reference_no": s.reference_no, "components": s.components} for s in slips],
    }
    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
