# tests/test_payslip_calculator.py
import uuid
from decimal import Decimal

from app.services.attendance import MonthPayableSummary
from app.services.payroll_policy import PayrollPolicy
from app.services.payslip import PayslipBreakdown, compute_one
from app.services.salary import ResolvedSalary, resolve_formula, resolve_static

EMP = uuid.uuid4()


def summary(total=22, present=22, paid=0, unpaid=0):
    return MonthPayableSummary(
        employee_id=EMP, year=2025, month=9, total_working_days=total,
        present_days=present, paid_leave_days=paid, unpaid_leave_days=unpaid, has_records=True,
    )


def test_scenario_full_month_with_paid_leave():
    b = compute_one(EMP, resolve_static(20000, {}), summary(present=20, paid=2), PayrollPolicy())
    assert b.daily_rate == Decimal("909.09")
    assert b.attendance_days_amount == Decimal("18181.82")
    assert b.paid_leave_days_amount == Decimal("1818.18")
    assert b.gross == Decimal("20000.00")
    assert b.deductions.pf_employee == Decimal("2400.00")
    assert b.deductions.pf_employer == Decimal("2400.00")
    assert b.deductions.professional_tax == Decimal("200.00")
    assert b.net == Decimal("17400.00")
    assert b.payable_days == 22
    assert not b.net_clamped


def test_scenario_below_prof_tax_threshold():
    b = compute_one(EMP, resolve_static(10000, {}), summary(), PayrollPolicy())
    assert b.gross == Decimal("10000.00")
    assert b.deductions.professional_tax == Decimal("0.00")
    assert b.deductions.pf_employee == Decimal("1200.00")
    assert b.net == Decimal("8800.00")


def test_full_attendance_gross_equals_monthly_wage():
    salary = resolve_static(23456.78, {"hra": 3210.55, "lta": 999.99})
    b = compute_one(EMP, salary, summary(total=21, present=21), PayrollPolicy())
    assert abs(b.gross - salary.monthly_wage) <= Decimal("0.01")


def test_unpaid_leave_excluded_from_gross_and_pf_base():
    b = compute_one(EMP, resolve_static(22000, {}), summary(present=20, paid=0, unpaid=2), PayrollPolicy())
    assert b.gross == Decimal("20000.00")
    assert b.deductions.pf_employee == Decimal("2400.00")  # 12% of 22000 * 20/22


def test_pf_is_on_prorated_basic_only():
    b = compute_one(EMP, resolve_static(10000, {"hra": 10000}), summary(), PayrollPolicy())
    assert b.gross == Decimal("20000.00")
    assert b.deductions.pf_employee == Decimal("1200.00")
    assert b.deductions.professional_tax == Decimal("200.00")
    assert b.net == Decimal("18600.00")


def test_prof_tax_applies_at_threshold_exactly():
    b = compute_one(EMP, resolve_static(15000, {}), summary(), PayrollPolicy())
    assert b.deductions.professional_tax == Decimal("200.00")


def test_net_is_clamped_at_zero():
    policy = PayrollPolicy().for_salary(pf_rate_percent=Decimal("100"), professional_tax=Decimal("500"))
    b = compute_one(EMP, resolve_static(20000, {}), summary(), policy)
    assert b.gross == Decimal("20000.00")
    assert b.deductions.pf_employee == Decimal("20000.00")
    assert b.net == Decimal("0")
    assert b.net_clamped


def test_zero_working_days_yields_zero_pay():
    b = compute_one(EMP, resolve_static(20000, {}), summary(total=0, present=0), PayrollPolicy())
    assert b.daily_rate == Decimal("0.00")
    assert b.gross == Decimal("0.00")
    assert b.net == Decimal("0.00")


def test_breakdown_json_is_camel_case_and_reloads():
    b = compute_one(
        EMP, ResolvedSalary(basic=Decimal("20000.00"), allowances={"hra": Decimal("5000.00")}),
        summary(present=20, paid=2), PayrollPolicy(),
    )
    data = b.to_json()
    assert set(data) == {
        "basic", "allowances", "monthlyWage", "totalWorkingDays", "payableDays", "presentDays",
        "paidLeaveDays", "dailyRate", "attendanceDaysAmount", "paidLeaveDaysAmount", "gross",
        "deductions", "net",
    }
    assert data["deductions"] == {"pfEmployee": "2400.00", "pfEmployer": "2400.00", "professionalTax": "200.00"}
    assert data["gross"] == "25000.00"
    assert PayslipBreakdown.from_json(data) == b


# ---------- formula-driven salaries ----------

def pct_wage(v):
    return {"type": "PERCENTAGE_OF_WAGE", "value": v}


def fixed(v):
    return {"type": "FIXED_AMOUNT", "value": v}


REMAINING = {"type": "REMAINING_AMOUNT", "value": 0}


def test_formula_short_of_wage_prorates_components_not_wage():
    salary = resolve_formula(30000, {"basic": pct_wage(50), "hra": pct_wage(20)})
    b = compute_one(EMP, salary, summary(), PayrollPolicy())
    assert b.monthly_wage == Decimal("21000.00")
    assert b.gross == Decimal("21000.00")
    assert b.daily_rate == Decimal("954.55")
    assert b.basic + b.allowances_total == b.monthly_wage


def test_formula_over_wage_uses_component_sum():
    salary = resolve_formula(30000, {"basic": fixed(20000), "hra": fixed(15000), "fixedAllowance": REMAINING})
    b = compute_one(EMP, salary, summary(), PayrollPolicy())
    assert b.allowances["fixedAllowance"] == Decimal("0.00")
    assert b.monthly_wage == Decimal("35000.00")
    assert b.gross == Decimal("35000.00")
    assert b.deductions.pf_employee == Decimal("2400.00")


def test_formula_filled_by_remaining_matches_wage():
    salary = resolve_formula(30000, {"basic": pct_wage(50), "hra": pct_wage(20), "fixedAllowance": REMAINING})
    b = compute_one(EMP, salary, summary(present=11), PayrollPolicy())
    assert b.monthly_wage == Decimal("30000.00")
    assert b.gross == Decimal("15000.00")
