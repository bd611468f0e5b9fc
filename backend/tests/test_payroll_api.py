# tests/test_payroll_api.py
import uuid
from decimal import Decimal

from conftest import headers as H, weekdays

from app.dependencies import get_policy
from app.main import app as fastapi_app
from app.services.payroll_policy import PayrollPolicy

MONTH = "2025-09"


def _seed(make, basic=20000, leave_days=2):
    co = make.company()
    emp = make.employee(co, code="A001", first_name="Ana", last_name="Reyes")
    make.salary(emp, basic=basic)
    make.full_month(emp, 2025, 9, leave_days=leave_days)
    return co, emp


def test_health_and_version(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    r = client.get("/version")
    assert r.status_code == 200
    assert r.json()["policy"]["pf_rate"] == "0.12"


def test_version_reports_injected_policy(client):
    fastapi_app.dependency_overrides[get_policy] = lambda: PayrollPolicy(pf_rate=Decimal("0.10"))
    r = client.get("/version")
    assert r.json()["policy"]["pf_rate"] == "0.10"


def test_tenant_header_required(client):
    r = client.get("/payroll/payruns")
    assert r.status_code == 400


def test_create_payrun_201_then_200(client, make):
    co = make.company()
    r1 = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co))
    assert r1.status_code == 201, r1.text
    r2 = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co))
    assert r2.status_code == 200
    assert r1.json()["id"] == r2.json()["id"]
    assert r1.json()["status"] == "draft"
    assert r1.json()["month"] == MONTH


def test_create_payrun_rejects_bad_month(client, make):
    co = make.company()
    r = client.post("/payroll/payruns", json={"month": "2025-13"}, headers=H(co))
    assert r.status_code == 422


def test_full_lifecycle(client, make):
    co, emp = _seed(make)
    actor = uuid.uuid4()
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co, **{"X-User-Id": actor})).json()
    assert run["created_by"] == str(actor)

    r = client.post(f"/payroll/payruns/{run['id']}/compute", headers=H(co))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["processed_count"] == 1
    assert body["payrun"]["status"] == "computed"
    assert Decimal(body["payrun"]["gross_total"]) == Decimal("20000.00")
    assert Decimal(body["payrun"]["net_total"]) == Decimal("17400.00")
    assert [w["code"] for w in body["warnings"]] == ["ZERO_ALLOWANCES"]

    r = client.get(f"/payroll/payruns/{run['id']}", headers=H(co))
    detail = r.json()
    assert detail["payslip_count"] == 1
    slip = detail["payslips"][0]
    assert slip["employee_code"] == "A001"
    assert slip["employee_name"] == "Ana Reyes"
    assert slip["components"]["dailyRate"] == "909.09"
    assert slip["components"]["deductions"]["pfEmployee"] == "2400.00"
    assert Decimal(slip["net"]) == Decimal("17400.00")

    r = client.post(f"/payroll/payruns/{run['id']}/validate", headers=H(co, **{"X-User-Id": actor}))
    assert r.status_code == 200
    assert r.json()["status"] == "done"
    assert r.json()["validated_by"] == str(actor)

    r = client.post(f"/payroll/payruns/{run['id']}/cancel", headers=H(co))
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_STATUS"

    r = client.get(f"/payroll/payslips/{slip['id']}", headers=H(co))
    assert r.json()["status"] == "done"


def test_validate_draft_is_409(client, make):
    co = make.company()
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    r = client.post(f"/payroll/payruns/{run['id']}/validate", headers=H(co))
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_STATUS"


def test_compute_invalid_salary_is_422_and_writes_nothing(client, make):
    co, _ = _seed(make, basic=0)
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    r = client.post(f"/payroll/payruns/{run['id']}/compute", headers=H(co))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "INVALID_SALARY"

    r = client.get(f"/payroll/payruns/{run['id']}/payslips", headers=H(co))
    assert r.json() == []
    assert client.get(f"/payroll/payruns/{run['id']}", headers=H(co)).json()["status"] == "draft"


def test_compute_without_configs_is_400(client, make):
    co = make.company()
    make.employee(co)
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    r = client.post(f"/payroll/payruns/{run['id']}/compute", headers=H(co))
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "NO_EMPLOYEES"


def test_other_tenant_gets_404(client, make):
    co, _ = _seed(make)
    other = make.company("Other")
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    r = client.get(f"/payroll/payruns/{run['id']}", headers=H(other))
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "NOT_FOUND"


def test_list_payruns(client, make):
    co = make.company()
    client.post("/payroll/payruns", json={"month": "2025-08"}, headers=H(co))
    client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co))
    body = client.get("/payroll/payruns", headers=H(co)).json()
    assert body["total"] == 2
    assert [r["month"] for r in body["items"]] == [MONTH, "2025-08"]

    page = client.get("/payroll/payruns", params={"limit": 1}, headers=H(co)).json()
    assert len(page["items"]) == 1
    assert page["total"] == 2


def test_recompute_and_employee_history(client, make):
    co, emp = _seed(make)
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    client.post(f"/payroll/payruns/{run['id']}/compute", headers=H(co))
    slip_id = client.get(f"/payroll/payruns/{run['id']}/payslips", headers=H(co)).json()[0]["id"]

    r = client.put(f"/salary/{emp.id}", json={"basic": 22000, "allowances": {"hra": 2000}}, headers=H(co))
    assert r.status_code == 200, r.text

    r = client.post(f"/payroll/payslips/{slip_id}/recompute", headers=H(co))
    assert r.status_code == 200, r.text
    assert r.json()["recomputed"] is True
    assert Decimal(r.json()["payslip"]["gross"]) == Decimal("24000.00")

    run_after = client.get(f"/payroll/payruns/{run['id']}", headers=H(co)).json()
    assert Decimal(run_after["gross_total"]) == Decimal("24000.00")

    hist = client.get(f"/payroll/employees/{emp.id}/payslips", headers=H(co)).json()
    assert [s["id"] for s in hist] == [slip_id]


def test_payslip_html(client, make):
    co, _ = _seed(make)
    run = client.post("/payroll/payruns", json={"month": MONTH}, headers=H(co)).json()
    client.post(f"/payroll/payruns/{run['id']}/compute", headers=H(co))
    slip = client.get(f"/payroll/payruns/{run['id']}/payslips", headers=H(co)).json()[0]

    r = client.get(f"/payroll/payslips/{slip['id']}.html", headers=H(co))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert slip["reference_no"] in r.text
    assert "Ana Reyes" in r.text
    assert "17,400.00" in r.text
    assert "September 2025" in r.text


# ---------- salary ----------

def test_salary_crud_and_preview(client, make):
    co = make.company()
    emp = make.employee(co)
    payload = {
        "wage": 50000,
        "component_config": {
            "basic": {"type": "PERCENTAGE_OF_WAGE", "value": 50},
            "hra": {"type": "PERCENTAGE_OF_BASIC", "value": 50},
            "fixedAllowance": {"type": "REMAINING_AMOUNT", "value": 0},
        },
    }
    r = client.post("/salary/preview", json=payload)
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["allowances"]["fixedAllowance"]) == Decimal("12500.00")
    assert Decimal(r.json()["yearly_wage"]) == Decimal("600000.00")
    assert Decimal(r.json()["pf_employee"]) == Decimal("3000.00")
    assert Decimal(r.json()["net_salary"]) == Decimal("46800.00")

    assert client.get(f"/salary/{emp.id}", headers=H(co)).status_code == 404

    r = client.put(f"/salary/{emp.id}", json=payload, headers=H(co))
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["basic"]) == Decimal("25000.00")
    assert Decimal(r.json()["monthly_wage"]) == Decimal("50000.00")

    r = client.get(f"/salary/{emp.id}", headers=H(co))
    assert r.json()["component_config"]["hra"]["type"] == "PERCENTAGE_OF_BASIC"

    assert client.delete(f"/salary/{emp.id}", headers=H(co)).status_code == 204
    assert client.get(f"/salary/{emp.id}", headers=H(co)).status_code == 404


def test_salary_rejects_two_remaining_components(client, make):
    co = make.company()
    emp = make.employee(co)
    payload = {
        "wage": 1000,
        "component_config": {
            "a": {"type": "REMAINING_AMOUNT", "value": 0},
            "b": {"type": "REMAINING_AMOUNT", "value": 0},
        },
    }
    assert client.put(f"/salary/{emp.id}", json=payload, headers=H(co)).status_code == 422


def test_salary_zero_basic_is_invalid_salary(client, make):
    co = make.company()
    emp = make.employee(co)
    r = client.put(f"/salary/{emp.id}", json={"basic": 0}, headers=H(co))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "INVALID_SALARY"


# ---------- attendance ----------

def test_attendance_me(client, make):
    co, emp = _seed(make)
    r = client.get("/attendance/me", params={"month": MONTH}, headers=H(co, **{"X-Employee-Id": emp.id}))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["month"] == MONTH
    assert len(body["days"]) == len(weekdays(2025, 9))
    assert body["kpi"]["payable_days"] == 22
    assert body["kpi"]["leave_days"] == 2


def test_attendance_me_bad_month(client, make):
    co, emp = _seed(make)
    r = client.get("/attendance/me", params={"month": "Sept"}, headers=H(co, **{"X-Employee-Id": emp.id}))
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_MONTH"


def test_payable_summary_and_day_view(client, make):
    co, emp = _seed(make)
    rows = client.get("/attendance/payable-summary", params={"month": MONTH}, headers=H(co)).json()
    assert rows[0]["employee_id"] == str(emp.id)
    assert rows[0]["present_days"] == 20
    assert rows[0]["paid_leave_days"] == 2

    day = weekdays(2025, 9)[5].isoformat()
    rows = client.get("/attendance/day", params={"date": day, "q": "ana"}, headers=H(co)).json()
    assert len(rows) == 1
    assert rows[0]["work_hours"] == 8.0
