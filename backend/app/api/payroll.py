# backend/app/api/payroll.py
from __future__ import annotations

import html as _html
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from app.dependencies import get_actor_id, get_company_id, get_db, get_policy
from app.models.payroll import Payrun, Payslip
from app.schemas.payroll import (
    ComputeResultOut,
    PayrunCreate,
    PayrunDetailOut,
    PayrunList,
    PayrunOut,
    PayslipOut,
    RecomputeResultOut,
    RunStatus,
)
from app.services import payroll as svc
from app.services.errors import PayrollError
from app.services.payroll_policy import PayrollPolicy
from app.services.payslip import PayslipBreakdown

router = APIRouter(prefix="/payroll", tags=["payroll"])

# ----------------------------- helpers ----------------------------- #

def _http_error(e: PayrollError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def _run_out(r: Payrun, payslip_count: Optional[int] = None) -> Dict[str, Any]:
    return {
        "id": r.id,
        "month": r.month,
        "period_month": r.period_month,
        "status": r.status,
        "employees_count": r.employees_count,
        "gross_total": r.gross_total,
        "net_total": r.net_total,
        "payslip_count": payslip_count,
        "created_by": r.created_by,
        "validated_by": r.validated_by,
        "validated_at": r.validated_at,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    }


def _payslip_out(s: Payslip) -> Dict[str, Any]:
    emp = s.employee
    return {
        "id": s.id,
        "payrun_id": s.payrun_id,
        "employee_id": s.employee_id,
        "employee_code": emp.code if emp else None,
        "employee_name": emp.full_name if emp else None,
        "period_month": s.period_month,
        "components": s.components or {},
        "basic": s.basic,
        "allowances_total": s.allowances_total,
        "monthly_wage": s.monthly_wage,
        "total_working_days": s.total_working_days,
        "payable_days": s.payable_days,
        "attendance_days_amount": s.attendance_days_amount,
        "paid_leave_days_amount": s.paid_leave_days_amount,
        "gross": s.gross,
        "pf_employee": s.pf_employee,
        "pf_employer": s.pf_employer,
        "professional_tax": s.professional_tax,
        "net": s.net,
        "status": s.status,
        "reference_no": s.reference_no,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }

# ----------------------------- payruns ----------------------------- #

@router.post("/payruns", response_model=PayrunOut, status_code=status.HTTP_201_CREATED)
def api_create_payrun(
    payload: PayrunCreate,
    response: Response,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    actor_id: Optional[UUID] = Depends(get_actor_id),
):
    try:
        run, created = svc.create_payrun(db, company_id, payload.month, created_by=actor_id)
    except PayrollError as e:
        raise _http_error(e)
    if not created:
        response.status_code = status.HTTP_200_OK
    return _run_out(run)


@router.get("/payruns", response_model=PayrunList)
def api_list_payruns(
    status_: Optional[RunStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    rows = svc.list_payruns(db, company_id, status=status_, limit=limit, offset=offset)
    total = svc.count_payruns(db, company_id, status=status_)
    return {"items": [_run_out(r, n) for r, n in rows], "total": total}


@router.get("/payruns/{payrun_id}", response_model=PayrunDetailOut)
def api_get_payrun(
    payrun_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        run = svc.get_payrun(db, company_id, payrun_id)
        slips = svc.list_payslips(db, company_id, payrun_id)
    except PayrollError as e:
        raise _http_error(e)
    return {**_run_out(run, len(slips)), "payslips": [_payslip_out(s) for s in slips]}


@router.post("/payruns/{payrun_id}/compute", response_model=ComputeResultOut)
def api_compute_payrun(
    payrun_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    policy: PayrollPolicy = Depends(get_policy),
):
    try:
        res = svc.compute_payslips(db, company_id, payrun_id, policy)
    except PayrollError as e:
        raise _http_error(e)
    return {
        "payrun": _run_out(res.payrun),
        "processed_count": res.processed_count,
        "warnings": [w.to_dict() for w in res.warnings],
    }


@router.post("/payruns/{payrun_id}/validate", response_model=PayrunOut)
def api_validate_payrun(
    payrun_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    actor_id: Optional[UUID] = Depends(get_actor_id),
):
    try:
        run = svc.validate_payrun(db, company_id, payrun_id, validated_by=actor_id)
    except PayrollError as e:
        raise _http_error(e)
    return _run_out(run)


@router.post("/payruns/{payrun_id}/cancel", response_model=PayrunOut)
def api_cancel_payrun(
    payrun_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        run = svc.cancel_payrun(db, company_id, payrun_id)
    except PayrollError as e:
        raise _http_error(e)
    return _run_out(run)


@router.get("/payruns/{payrun_id}/payslips", response_model=List[PayslipOut])
def api_list_payrun_payslips(
    payrun_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        slips = svc.list_payslips(db, company_id, payrun_id)
    except PayrollError as e:
        raise _http_error(e)
    return [_payslip_out(s) for s in slips]

# ----------------------------- payslips ----------------------------- #

def _fmt_money(x: Decimal | float | str) -> str:
    try:
        d = Decimal(str(x))
        return f"{d:,.2f}"
    except Exception:
        return str(x)


def _label(key: str) -> str:
    # camelCase component names -> "Camel Case"
    out = "".join(f" {c}" if c.isupper() else c for c in key).strip()
    return _html.escape(out[:1].upper() + out[1:])


def _render_payslip_html(slip: Payslip) -> str:
    emp = slip.employee
    b = PayslipBreakdown.from_json(slip.components or {})
    esc = _html.escape

    earnings = [("Basic", b.basic)] + [(_label(k), v) for k, v in b.allowances.items()]
    rows = "".join(
        f"<tr><td>{name}</td><td style='text-align:right'>{_fmt_money(amount)}</td></tr>"
        for name, amount in earnings
    )
    deductions = [
        ("Provident Fund (employee)", b.deductions.pf_employee),
        ("Professional Tax", b.deductions.professional_tax),
    ]
    ded_rows = "".join(
        f"<tr><td>{name}</td><td style='text-align:right'>{_fmt_money(amount)}</td></tr>"
        for name, amount in deductions
    )
    html = f"""
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8"/>
<title>Payslip {esc(slip.reference_no or str(slip.id))}</title>
<style>
  body {{ font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, "Helvetica Neue", Arial; margin: 24px; }}
  .card {{ max-width: 720px; margin: 0 auto; border: 1px solid #ddd; border-radius: 12px; padding: 20px; box-shadow: 0 2px 8px rgba(0,0,0,0.05); }}
  h1 {{ font-size: 20px; margin: 0 0 12px; }}
  h2 {{ font-size: 16px; margin: 16px 0 8px; }}
  table {{ width: 100%; border-collapse: collapse; }}
  td, th {{ padding: 6px 4px; border-bottom: 1px solid #eee; }}
  .totals td {{ font-weight: 600; }}
  .muted {{ color: #666; font-size: 12px; }}
  .grid {{ display: grid; grid-template-columns: 1fr 1fr; gap: 6px 16px; margin-bottom: 12px; }}
</style>
</head>
<body>
<div class="card">
  <h1>Payslip</h1>
  <div class="grid">
    <div><strong>Employee:</strong> {esc(emp.full_name)} ({esc(emp.code)})</div>
    <div><strong>Period:</strong> {slip.period_month:%B %Y}</div>
    <div><strong>Reference:</strong> {esc(slip.reference_no or str(slip.id))}</div>
    <div><strong>Status:</strong> {esc(slip.status)}</div>
    <div><strong>Working days:</strong> {b.total_working_days}</div>
    <div><strong>Payable days:</strong> {b.payable_days} ({b.present_days} present, {b.paid_leave_days} paid leave)</div>
  </div>

  <h2>Salary Structure (monthly)</h2>
  <table>{rows}</table>

  <h2>Earnings (prorated)</h2>
  <table>
    <tr><td>Daily Rate</td><td style="text-align:right">{_fmt_money(b.daily_rate)}</td></tr>
    <tr><td>Attendance ({b.present_days} days)</td><td style="text-align:right">{_fmt_money(b.attendance_days_amount)}</td></tr>
    <tr><td>Paid Leave ({b.paid_leave_days} days)</td><td style="text-align:right">{_fmt_money(b.paid_leave_days_amount)}</td></tr>
  </table>

  <h2>Deductions</h2>
  <table>{ded_rows}</table>

  <h2>Totals</h2>
  <table class="totals">
    <tr><td>Gross Pay</td><td style="text-align:right">{_fmt_money(b.gross)}</td></tr>
    <tr><td>Total Deductions</td><td style="text-align:right">{_fmt_money(b.deductions.pf_employee + b.deductions.professional_tax)}</td></tr>
    <tr><td>Net Pay</td><td style="text-align:right">{_fmt_money(b.net)}</td></tr>
  </table>

  <p class="muted">Employer provident fund contribution: {_fmt_money(b.deductions.pf_employer)} (not deducted from pay).</p>
</div>
</body>
</html>
    """.strip()
    return html


# Registered before /payslips/{payslip_id} so the ".html" suffix is not parsed as the id
@router.get("/payslips/{payslip_id}.html", response_class=HTMLResponse)
def api_get_payslip_html(
    payslip_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        slip = svc.get_payslip(db, company_id, payslip_id)
    except PayrollError as e:
        raise _http_error(e)
    return _render_payslip_html(slip)


@router.get("/payslips/{payslip_id}", response_model=PayslipOut)
def api_get_payslip(
    payslip_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        slip = svc.get_payslip(db, company_id, payslip_id)
    except PayrollError as e:
        raise _http_error(e)
    return _payslip_out(slip)


@router.post("/payslips/{payslip_id}/recompute", response_model=RecomputeResultOut)
def api_recompute_payslip(
    payslip_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
    policy: PayrollPolicy = Depends(get_policy),
):
    try:
        res = svc.recompute_payslip(db, company_id, payslip_id, policy)
    except PayrollError as e:
        raise _http_error(e)
    return {
        "payslip": _payslip_out(res.payslip),
        "recomputed": res.recomputed,
        "warnings": [w.to_dict() for w in res.warnings],
    }


@router.get("/employees/{employee_id}/payslips", response_model=List[PayslipOut])
def api_list_employee_payslips(
    employee_id: UUID,
    include_cancelled: bool = Query(False),
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        slips = svc.list_employee_payslips(db, company_id, employee_id, include_cancelled=include_cancelled)
    except PayrollError as e:
        raise _http_error(e)
    return [_payslip_out(s) for s in slips]
