# backend/app/schemas/payroll.py
"""
Pydantic schemas for payruns and payslips.

Covers:
- Payrun create / read (with totals)
- Compute result (processed count + warnings)
- Payslips (read-only; full components breakdown)

Notes:
- Keep string enums aligned with the payrun_status DB enum.
- Monetary values use Decimal to avoid float rounding.
- Month is always YYYY-MM on the wire.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ------------------------- Enum Literals (string) ------------------------- #
RunStatus = Literal["draft", "computed", "done", "cancelled"]

WarningCode = Literal["NOT_FOUND", "ZERO_ALLOWANCES", "NET_CLAMPED"]

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


# -------------------------------- Payruns -------------------------------- #
class PayrunCreate(BaseModel):
    month: str = Field(..., description="YYYY-MM", examples=["2025-08"])

    @field_validator("month")
    @classmethod
    def _month_format(cls, v: str) -> str:
        v = v.strip()
        if not _MONTH_RE.match(v):
            raise ValueError("month must be YYYY-MM (e.g., '2025-08').")
        return v


class PayrunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    month: str
    period_month: date
    status: RunStatus
    employees_count: int
    gross_total: Decimal
    net_total: Decimal
    payslip_count: Optional[int] = None

    created_by: Optional[UUID] = None
    validated_by: Optional[UUID] = None
    validated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PayrunList(BaseModel):
    items: List[PayrunOut]
    total: int


# ------------------------------- Warnings -------------------------------- #
class PayrollWarningOut(BaseModel):
    employee_id: UUID
    code: WarningCode
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ComputeResultOut(BaseModel):
    payrun: PayrunOut
    processed_count: int
    warnings: List[PayrollWarningOut] = Field(default_factory=list)


# -------------------------------- Payslips -------------------------------- #
class PayslipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payrun_id: UUID
    employee_id: UUID
    employee_code: Optional[str] = None
    employee_name: Optional[str] = None
    period_month: date

    components: Dict[str, Any]

    basic: Decimal
    allowances_total: Decimal
    monthly_wage: Decimal
    total_working_days: int
    payable_days: Decimal
    attendance_days_amount: Decimal
    paid_leave_days_amount: Decimal

    gross: Decimal
    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    net: Decimal

    status: RunStatus
    reference_no: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PayrunDetailOut(PayrunOut):
    payslips: List[PayslipOut] = Field(default_factory=list)


class RecomputeResultOut(BaseModel):
    payslip: PayslipOut
    recomputed: bool
    warnings: List[PayrollWarningOut] = Field(default_factory=list)
