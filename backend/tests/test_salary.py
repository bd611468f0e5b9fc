# tests/test_salary.py
import uuid
from decimal import Decimal

import pytest

from app.models.payroll import SalaryConfig
from app.services.errors import InvalidComponentConfigError, InvalidSalaryError, NotFoundError
from app.services.salary import (
    FixedAmount,
    PercentOfBasic,
    RemainingAmount,
    SalaryComponent,
    build_component,
    canonical_allowance_name,
    delete_salary_config,
    get_salary_config,
    list_employees_with_salary_config,
    preview_salary,
    resolve,
    resolve_formula,
    resolve_static,
    save_salary_config,
    validate_component_config,
)


def pct_wage(v):
    return {"type": "PERCENTAGE_OF_WAGE", "value": v}


def pct_basic(v):
    return {"type": "PERCENTAGE_OF_BASIC", "value": v}


def fixed(v):
    return {"type": "FIXED_AMOUNT", "value": v}


REMAINING = {"type": "REMAINING_AMOUNT", "value": 0}


# ---------- static shape ----------

def test_static_is_identity():
    r = resolve_static(20000, {"hra": 5000, "bonus": 1000.5})
    assert r.basic == Decimal("20000.00")
    assert r.allowances == {"hra": Decimal("5000.00"), "bonus": Decimal("1000.50")}
    assert r.monthly_wage == Decimal("26000.50")
    assert r.allowances_total == Decimal("6000.50")


def test_static_ignores_non_numeric_allowances():
    r = resolve_static(10000, {"hra": "abc", "flag": True, "note": None, "ok": 100})
    assert r.allowances == {"ok": Decimal("100.00")}
    assert r.monthly_wage == Decimal("10100.00")


@pytest.mark.parametrize("basic", [0, -1, None, "20000", True])
def test_static_invalid_basic(basic):
    emp_id = uuid.uuid4()
    with pytest.raises(InvalidSalaryError) as ei:
        resolve_static(basic, {}, employee_id=emp_id)
    assert ei.value.code == "INVALID_SALARY"
    assert ei.value.details["employee_id"] == str(emp_id)


# ---------- formula shape ----------

def test_components_are_tagged_variants():
    assert isinstance(build_component("hra", pct_basic(50)), PercentOfBasic)
    assert isinstance(build_component("x", fixed(10)), FixedAmount)
    assert isinstance(build_component("r", REMAINING), RemainingAmount)
    unknown = build_component("odd", {"type": "PER_HOUR", "value": 99})
    assert type(unknown) is SalaryComponent


def test_formula_pipeline_order():
    cfg = {
        "fixedAllowance": REMAINING,
        "hra": pct_basic(50),
        "basic": pct_wage(50),
        "lta": fixed(1000),
        "standardAllowance": pct_wage(5),
    }
    r = resolve_formula(50000, cfg)
    assert r.basic == Decimal("25000.00")
    assert r.allowances["hra"] == Decimal("12500.00")        # sees the final basic
    assert r.allowances["standardAllowance"] == Decimal("2500.00")
    assert r.allowances["lta"] == Decimal("1000.00")
    # remaining absorbs wage - everything else
    assert r.allowances["fixedAllowance"] == Decimal("9000.00")
    assert list(r.allowances) == ["hra", "standardAllowance", "lta", "fixedAllowance"]
    assert r.monthly_wage == Decimal("50000.00")
    assert r.basic + r.allowances_total == r.monthly_wage


def test_remaining_never_negative():
    cfg = {"basic": pct_wage(60), "hra": pct_wage(50), "rest": REMAINING}
    r = resolve_formula(10000, cfg)
    assert r.allowances["rest"] == Decimal("0.00")
    assert r.allowances["hra"] == Decimal("5000.00")


def test_unknown_kind_contributes_zero():
    r = resolve_formula(10000, {"basic": fixed(4000), "odd": {"type": "NOPE", "value": 50}, "rest": REMAINING})
    assert r.allowances["odd"] == Decimal("0.00")
    assert r.allowances["rest"] == Decimal("6000.00")


def test_basic_defaults_to_half_of_wage():
    assert resolve_formula(30000, {"hra": fixed(100)}).basic == Decimal("15000.00")
    # basic of a kind other than wage/fixed falls back too
    assert resolve_formula(30000, {"basic": pct_basic(10)}).basic == Decimal("15000.00")


def test_other_components_sorted_by_name_after_known_ones():
    cfg = {"zeta": fixed(1), "alpha": fixed(1), "hra": fixed(1), "basic": fixed(100)}
    assert list(resolve_formula(1000, cfg).allowances) == ["hra", "alpha", "zeta"]


def test_formula_zero_basic_is_invalid():
    with pytest.raises(InvalidSalaryError):
        resolve_formula(10000, {"basic": fixed(0)})
    with pytest.raises(InvalidSalaryError):
        resolve_formula(0, {"basic": fixed(100)})


def test_resolve_picks_shape_from_row():
    emp_id = uuid.uuid4()
    static = SalaryConfig(employee_id=emp_id, basic=Decimal("1000"), allowances={"a": 1}, component_config={})
    formula = SalaryConfig(
        employee_id=emp_id, basic=Decimal("0"), allowances={}, wage=Decimal("2000"),
        component_config={"basic": pct_wage(50)},
    )
    assert resolve(static).monthly_wage == Decimal("1001.00")
    assert resolve(formula).basic == Decimal("1000.00")


# ---------- save-time validation ----------

def test_validate_rejects_two_remaining_components():
    with pytest.raises(InvalidComponentConfigError) as ei:
        validate_component_config({"basic": pct_wage(50), "a": REMAINING, "b": REMAINING})
    assert ei.value.code == "INVALID_COMPONENT_CONFIG"


@pytest.mark.parametrize(
    "cfg",
    [
        {"basic": pct_basic(50)},
        {"basic": REMAINING},
        {"hra": {"type": "WHATEVER", "value": 1}},
        {"hra": {"type": "FIXED_AMOUNT", "value": -5}},
        {"hra": 100},
    ],
)
def test_validate_rejects_bad_configs(cfg):
    with pytest.raises(InvalidComponentConfigError):
        validate_component_config(cfg)


def test_validate_accepts_good_config():
    validate_component_config({"basic": pct_wage(50), "hra": pct_basic(50), "rest": REMAINING})


# ---------- persistence ----------

def test_save_get_replace_delete(db, make):
    co = make.company()
    emp = make.employee(co)

    cfg, resolved = save_salary_config(db, co.id, emp.id, basic=Decimal("20000"), allowances={"hra": 5000})
    assert resolved.monthly_wage == Decimal("25000.00")
    assert get_salary_config(db, co.id, emp.id).id == cfg.id

    # latest save replaces the prior config (same row, formula shape now)
    cfg2, resolved2 = save_salary_config(
        db, co.id, emp.id,
        wage=Decimal("40000"),
        component_config={"basic": pct_wage(50), "hra": pct_basic(40), "rest": REMAINING},
        pf_rate=Decimal("10"),
    )
    assert cfg2.id == cfg.id
    assert cfg2.basic == Decimal("20000.00")
    assert cfg2.allowances == {"hra": 8000.0, "rest": 12000.0}
    assert cfg2.pf_rate == Decimal("10.00")
    assert resolved2.monthly_wage == Decimal("40000.00")
    assert db.query(SalaryConfig).count() == 1

    delete_salary_config(db, co.id, emp.id)
    with pytest.raises(NotFoundError):
        get_salary_config(db, co.id, emp.id)


def test_save_rejects_invalid_basic_without_writing(db, make):
    co = make.company()
    emp = make.employee(co)
    with pytest.raises(InvalidSalaryError):
        save_salary_config(db, co.id, emp.id, basic=Decimal("0"))
    assert db.query(SalaryConfig).count() == 0


def test_save_for_foreign_employee_not_found(db, make):
    co = make.company()
    emp = make.employee(make.company("Other"))
    with pytest.raises(NotFoundError):
        save_salary_config(db, co.id, emp.id, basic=Decimal("1000"))


def test_list_employees_with_salary_config(db, make):
    co = make.company()
    a = make.employee(co, code="A1")
    make.employee(co, code="B1")  # no config
    c = make.employee(co, code="C1")
    make.salary(a)
    make.salary(c)
    make.salary(make.employee(make.company("Other")))

    rows = list_employees_with_salary_config(db, co.id)
    assert [emp.code for emp, _ in rows] == ["A1", "C1"]


def test_preview_does_not_persist(db, policy):
    p = preview_salary(policy=policy, wage=Decimal("10000"), component_config={"basic": pct_wage(40), "rest": REMAINING})
    assert p.salary.basic == Decimal("4000.00")
    assert p.salary.allowances == {"rest": Decimal("6000.00")}
    assert db.query(SalaryConfig).count() == 0


def test_preview_full_month_figures(policy):
    p = preview_salary(policy=policy, basic=Decimal("20000"), allowances={"HRA": 5000})
    assert p.salary.allowances == {"hra": Decimal("5000.00")}
    assert p.salary.monthly_wage == Decimal("25000.00")
    assert p.salary.yearly_wage == Decimal("300000.00")
    assert p.pf_employee == p.pf_employer == Decimal("2400.00")
    assert p.professional_tax == Decimal("200.00")
    assert p.net_salary == Decimal("22400.00")


def test_preview_applies_salary_overrides_and_threshold(policy):
    p = preview_salary(policy=policy, basic=Decimal("10000"), pf_rate=Decimal("10"), professional_tax=Decimal("300"))
    assert p.pf_employee == Decimal("1000.00")
    assert p.professional_tax == Decimal("0.00")  # 10000 is under the threshold
    assert p.net_salary == Decimal("9000.00")


def test_formula_short_of_wage_keeps_component_sum():
    r = resolve_formula(30000, {"basic": pct_wage(50), "hra": pct_wage(20)})
    assert r.wage == Decimal("30000.00")
    assert r.monthly_wage == Decimal("21000.00")


def test_formula_over_wage_keeps_component_sum():
    r = resolve_formula(30000, {"basic": fixed(20000), "hra": fixed(15000), "fixedAllowance": REMAINING})
    assert r.allowances["fixedAllowance"] == Decimal("0.00")
    assert r.monthly_wage == Decimal("35000.00")


@pytest.mark.parametrize(
    "key, expected",
    [
        ("HRA", "hra"),
        ("Lta", "lta"),
        ("Standard Allowance", "standardAllowance"),
        ("PerformanceBonus", "performanceBonus"),
        ("fixed_allowance", "fixedAllowance"),
        ("Bonus", "bonus"),
        ("bonus", "bonus"),
    ],
)
def test_canonical_allowance_names(key, expected):
    assert canonical_allowance_name(key) == expected


def test_static_merges_keys_with_the_same_canonical_name():
    r = resolve_static(10000, {"HRA": 1000, "hra": 500})
    assert r.allowances == {"hra": Decimal("1500.00")}


def test_save_keeps_configured_wage_when_components_fall_short(db, make):
    co = make.company()
    emp = make.employee(co)
    cfg, resolved = save_salary_config(
        db, co.id, emp.id, wage=Decimal("30000"),
        component_config={"basic": pct_wage(50), "hra": pct_wage(20)},
    )
    assert cfg.wage == Decimal("30000.00")
    assert resolved.monthly_wage == Decimal("21000.00")
