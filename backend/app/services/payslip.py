# backend/app/services/payslip.py
"""
Payslip calculator: one employee, one month.

    monthlyWage      = basic + Σ allowances
    dailyRate        = monthlyWage / totalWorkingDays        (0 when no working days)
    attendanceAmount = monthlyWage * presentDays   / totalWorkingDays
    paidLeaveAmount  = monthlyWage * paidLeaveDays / totalWorkingDays
    gross            = attendanceAmount + paidLeaveAmount
    proratedBasic    = basic * payableDays / totalWorkingDays
    pfEmployee       = pfEmployer = proratedBasic * pf_rate
    professionalTax  = prof_tax_fixed if gross >= prof_tax_threshold else 0
    net              = max(0, gross - pfEmployee - professionalTax)

Amounts are carried at full precision and rounded half-up to cents once, when
they land in the breakdown. Nothing here touches the database.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping

from app.services.attendance import MonthPayableSummary
from app.services.payroll_policy import D, PayrollPolicy, q2
from app.services.salary import ResolvedSalary

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class Deductions:
    pf_employee: Decimal = ZERO
    pf_employer: Decimal = ZERO
    professional_tax: Decimal = ZERO

    def to_json(self) -> Dict[str, str]:
        return {
            "pfEmployee": str(self.pf_employee),
            "pfEmployer": str(self.pf_employer),
            "professionalTax": str(self.professional_tax),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Deductions":
        return cls(
            pf_employee=D(data.get("pfEmployee", 0)),
            pf_employer=D(data.get("pfEmployer", 0)),
            professional_tax=D(data.get("professionalTax", 0)),
        )


@dataclass(frozen=True)
class PayslipBreakdown:
    """Typed payslip components; serialized to camelCase JSON only at the storage/API edge."""
    basic: Decimal
    allowances: Dict[str, Decimal]
    monthly_wage: Decimal
    total_working_days: int
    payable_days: int
    present_days: int
    paid_leave_days: int
    daily_rate: Decimal
    attendance_days_amount: Decimal
    paid_leave_days_amount: Decimal
    gross: Decimal
    deductions: Deductions = field(default_factory=Deductions)
    net: Decimal = ZERO
    net_clamped: bool = False

    @property
    def allowances_total(self) -> Decimal:
        return sum(self.allowances.values(), ZERO)

    def to_json(self) -> Dict[str, Any]:
        return {
            "basic": str(self.basic),
            "allowances": {k: str(v) for k, v in self.allowances.items()},
            "monthlyWage": str(self.monthly_wage),
            "totalWorkingDays": self.total_working_days,
            "payableDays": self.payable_days,
            "presentDays": self.present_days,
            "paidLeaveDays": self.paid_leave_days,
            "dailyRate": str(self.daily_rate),
            "attendanceDaysAmount": str(self.attendance_days_amount),
            "paidLeaveDaysAmount": str(self.paid_leave_days_amount),
            "gross": str(self.gross),
            "deductions": self.deductions.to_json(),
            "net": str(self.net),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "PayslipBreakdown":
        gross = D(data.get("gross", 0))
        deductions = Deductions.from_json(data.get("deductions") or {})
        net = D(data.get("net", 0))
        return cls(
            basic=D(data.get("basic", 0)),
            allowances={k: D(v) for k, v in (data.get("allowances") or {}).items()},
            monthly_wage=D(data.get("monthlyWage", 0)),
            total_working_days=int(data.get("totalWorkingDays", 0)),
            payable_days=int(data.get("payableDays", 0)),
            present_days=int(data.get("presentDays", 0)),
            paid_leave_days=int(data.get("paidLeaveDays", 0)),
            daily_rate=D(data.get("dailyRate", 0)),
            attendance_days_amount=D(data.get("attendanceDaysAmount", 0)),
            paid_leave_days_amount=D(data.get("paidLeaveDaysAmount", 0)),
            gross=gross,
            deductions=deductions,
            net=net,
            net_clamped=net == 0 and (deductions.pf_employee + deductions.professional_tax) > gross,
        )


def compute_one(
    employee_id: uuid.UUID,
    salary: ResolvedSalary,
    summary: MonthPayableSummary,
    policy: PayrollPolicy,
) -> PayslipBreakdown:
    total_days = summary.total_working_days
    basic = D(salary.basic)
    wage = basic + D(salary.allowances_total)

    if total_days > 0:
        days = Decimal(total_days)
        daily_rate = wage / days
        attendance_amount = wage * summary.present_days / days
        paid_leave_amount = wage * summary.paid_leave_days / days
        prorated_basic = basic * summary.payable_days / days
    else:
        daily_rate = attendance_amount = paid_leave_amount = prorated_basic = ZERO

    attendance_amount = q2(attendance_amount)
    paid_leave_amount = q2(paid_leave_amount)
    gross = attendance_amount + paid_leave_amount

    pf = q2(prorated_basic * policy.pf_rate)
    prof_tax = q2(policy.prof_tax_fixed) if gross >= policy.prof_tax_threshold else q2(ZERO)

    net = gross - pf - prof_tax
    clamped = net < 0
    if clamped:
        logger.warning(
            "Net pay clamped to 0 for employee %s (%s-%02d)", employee_id, summary.year, summary.month
        )
        net = ZERO

    return PayslipBreakdown(
        basic=q2(basic),
        allowances={k: q2(v) for k, v in salary.allowances.items()},
        monthly_wage=q2(wage),
        total_working_days=total_days,
        payable_days=summary.payable_days,
        present_days=summary.present_days,
        paid_leave_days=summary.paid_leave_days,
        daily_rate=q2(daily_rate),
        attendance_days_amount=attendance_amount,
        paid_leave_days_amount=paid_leave_amount,
        gross=q2(gross),
        deductions=Deductions(pf_employee=pf, pf_employer=pf, professional_tax=prof_tax),
        net=q2(net),
        net_clamped=clamped,
    )


__all__ = ["Deductions", "PayslipBreakdown", "compute_one"]
