# backend/app/api/salary.py
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import get_company_id, get_db, get_policy
from app.models.payroll import SalaryConfig
from app.schemas.salary import SalaryConfigIn, SalaryConfigOut, SalaryPreviewOut
from app.services import salary as svc
from app.services.errors import PayrollError
from app.services.payroll_policy import PayrollPolicy

router = APIRouter(prefix="/salary", tags=["salary"])


def _http_error(e: PayrollError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def _config_out(cfg: SalaryConfig, resolved: svc.ResolvedSalary | None = None) -> Dict[str, Any]:
    return {
        "id": cfg.id,
        "employee_id": cfg.employee_id,
        "basic": cfg.basic,
        "allowances": cfg.allowances or {},
        "wage": cfg.wage,
        "component_config": cfg.component_config or {},
        "pf_rate": cfg.pf_rate,
        "professional_tax": cfg.professional_tax,
        "monthly_wage": resolved.monthly_wage if resolved else None,
        "created_at": cfg.created_at,
        "updated_at": cfg.updated_at,
    }


def _preview_out(p: svc.SalaryPreview) -> Dict[str, Any]:
    r = p.salary
    return {
        "basic": r.basic,
        "allowances": r.allowances,
        "allowances_total": r.allowances_total,
        "wage": r.wage,
        "monthly_wage": r.monthly_wage,
        "yearly_wage": r.yearly_wage,
        "pf_employee": p.pf_employee,
        "pf_employer": p.pf_employer,
        "professional_tax": p.professional_tax,
        "net_salary": p.net_salary,
    }


@router.post("/preview", response_model=SalaryPreviewOut)
def api_preview_salary(payload: SalaryConfigIn, policy: PayrollPolicy = Depends(get_policy)):
    try:
        preview = svc.preview_salary(
            policy=policy,
            basic=payload.basic,
            allowances=payload.allowances,
            wage=payload.wage,
            component_config=payload.component_dict(),
            pf_rate=payload.pf_rate,
            professional_tax=payload.professional_tax,
        )
    except PayrollError as e:
        raise _http_error(e)
    return _preview_out(preview)


@router.get("/{employee_id}", response_model=SalaryConfigOut)
def api_get_salary(
    employee_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        cfg = svc.get_salary_config(db, company_id, employee_id)
        resolved = svc.resolve(cfg)
    except PayrollError as e:
        raise _http_error(e)
    return _config_out(cfg, resolved)


@router.put("/{employee_id}", response_model=SalaryConfigOut)
def api_save_salary(
    employee_id: UUID,
    payload: SalaryConfigIn,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        cfg, resolved = svc.save_salary_config(
            db,
            company_id,
            employee_id,
            basic=payload.basic,
            allowances=payload.allowances,
            wage=payload.wage,
            component_config=payload.component_dict(),
            pf_rate=payload.pf_rate,
            professional_tax=payload.professional_tax,
        )
    except PayrollError as e:
        raise _http_error(e)
    return _config_out(cfg, resolved)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_salary(
    employee_id: UUID,
    db: Session = Depends(get_db),
    company_id: UUID = Depends(get_company_id),
):
    try:
        svc.delete_salary_config(db, company_id, employee_id)
    except PayrollError as e:
        raise _http_error(e)
