# backend/scripts/smoke_payroll_api.py
"""
Smoke test for the payroll HTTP lifecycle against a running server:
1) POST /payroll/payruns twice -> same id (idempotent create; 201 then 200)
2) POST /payroll/payruns/{id}/compute -> status computed, totals == Σ payslips
3) POST /payroll/payruns/{id}/validate -> status done
4) POST /payroll/payruns/{id}/cancel -> 409 INVALID_STATUS (done is terminal)

Needs a company that already has employees with salary configs and attendance
(e.g. seeded by smoke_payroll.py).

Run:
(.venv) > python backend/scripts/smoke_payroll_api.py <company-uuid> <YYYY-MM>
"""

import sys
from decimal import Decimal

import requests

BASE = "http://127.0.0.1:8000"


def main():
    if len(sys.argv) != 3:
        raise SystemExit("usage: smoke_payroll_api.py <company-uuid> <YYYY-MM>")
    company_id, month = sys.argv[1], sys.argv[2]
    headers = {"X-Company-Id": company_id}

    r1 = requests.post(f"{BASE}/payroll/payruns", json={"month": month}, headers=headers)
    r2 = requests.post(f"{BASE}/payroll/payruns", json={"month": month}, headers=headers)
    if r1.status_code not in (200, 201) or r2.status_code != 200:
        raise SystemExit(f"create -> {r1.status_code}/{r2.status_code}: {r1.text} {r2.text}")
    run_id = r1.json()["id"]
    if r2.json()["id"] != run_id:
        raise SystemExit("create is not idempotent")

    r = requests.post(f"{BASE}/payroll/payruns/{run_id}/compute", headers=headers)
    if r.status_code != 200:
        raise SystemExit(f"compute -> {r.status_code}: {r.text}")
    res = r.json()
    print(f"computed: processed={res['processed_count']} warnings={len(res['warnings'])}")

    slips = requests.get(f"{BASE}/payroll/payruns/{run_id}/payslips", headers=headers).json()
    gross = sum(Decimal(str(s["gross"])) for s in slips)
    net = sum(Decimal(str(s["net"])) for s in slips)
    if gross != Decimal(str(res["payrun"]["gross_total"])) or net != Decimal(str(res["payrun"]["net_total"])):
        raise SystemExit(f"totals mismatch: Σgross={gross} Σnet={net} payrun={res['payrun']}")

    r = requests.post(f"{BASE}/payroll/payruns/{run_id}/validate", headers=headers)
    if r.status_code != 200 or r.json()["status"] != "done":
        raise SystemExit(f"validate -> {r.status_code}: {r.text}")

    r = requests.post(f"{BASE}/payroll/payruns/{run_id}/cancel", headers=headers)
    if r.status_code != 409:
        raise SystemExit(f"cancel after done should be 409, got {r.status_code}: {r.text}")

    print(f"OK payrun {run_id} ({month}) gross={gross} net={net}")


if __name__ == "__main__":
    main()
