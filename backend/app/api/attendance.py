# backend/app/api/attendance.py
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.dependencies import get_company_id, get_db, get_employee_id, get_policy
from app.schemas.attendance import AttendanceDayRow, AttendanceMeOut, PayableSummaryOut
from app.services import attendance as svc
from app.services.errors import PayrollError
from app.services.payroll_policy import PayrollPolicy

router = APIRouter(prefix="/attendance", tags=["attendance"])


def _http_error(e: PayrollError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/me", response_model=AttendanceMeOut)
def api_attendance_me(
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    employee_id: UUID = Depends(get_employee_id),
    policy: PayrollPolicy = Depends(get_policy),
):
    try:
        first = svc.parse_month(month)
        view = svc.get_attendance_me(db, company_id, employee_id, first.year, first.month, policy)
    except PayrollError as e:
        raise _http_error(e)
    return {"month": f"{first:%Y-%m}", **view}


@router.get("/payable-summary", response_model=List[PayableSummaryOut])
def api_payable_summary(
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    policy: PayrollPolicy = Depends(get_policy),
):
    try:
        first = svc.parse_month(month)
        rows = svc.get_payable_summary(db, company_id, first.year, first.month, policy)
    except PayrollError as e:
        raise _http_error(e)
    return [
        {
            "employee_id": s.employee_id,
            "employee_code": s.employee_code,
            "employee_name": s.employee_name,
            "year": s.year,
            "month": s.month,
            "total_working_days": s.total_working_days,
            "present_days": s.present_days,
            "paid_leave_days": s.paid_leave_days,
            "unpaid_leave_days": s.unpaid_leave_days,
            "payable_days": s.payable_days,
            "has_records": s.has_records,
        }
        for s in rows
    ]


@router.get("/day", response_model=List[AttendanceDayRow])
def api_attendance_day(
    date_: date = Query(..., alias="date"),
    q: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    policy: PayrollPolicy = Depends(get_policy),
):
    return svc.get_attendance_day(db, company_id, date_, policy, search=q)
