# backend/scripts/smoke_payroll_run.py
"""
Smoke test for the payroll run lifecycle against a running server.

What it does:
1) POST /payroll/policies            -> policy version (SSO 5% capped at 15,000), skip if taken
2) POST /hr/employees                -> unique MONTHLY employee, salary 30,000
3) POST /hr/attendance               -> one on-time day, one late day
4) GET  /payroll/drafts/Y/M/P        -> draft contains the employee
5) POST /payroll/runs                -> 201 (created) then 200 (same run again)
6) POST /payroll/runs/{id}/send      -> 200, then 409 when sent twice
7) POST /payroll/payslips/{id}/decision (ACCEPTED) for every payslip
8) POST /payroll/runs/{id}/finalize  -> FINAL
9) Print PASS summary

The run key is taken from SMOKE_YEAR/SMOKE_MONTH/SMOKE_PERIOD (default: a
past month so every day is evaluable). A key that was already finalized by a
previous smoke run stops at step 5 with its existing status.

Run:
(.venv) > python backend/scripts/smoke_payroll_run.py
"""

import json
import os
from datetime import datetime

import requests

BASE = os.getenv("PAYCORE_API", "http://127.0.0.1:8000")
YEAR = int(os.getenv("SMOKE_YEAR", "2024"))
MONTH = int(os.getenv("SMOKE_MONTH", "1"))
PERIOD = int(os.getenv("SMOKE_PERIOD", "1"))


def req(method, path, ok=(200,), **kwargs):
    url = f"{BASE}{path}"
    r = requests.request(method, url, timeout=15, **kwargs)
    if r.status_code not in ok:
        try:
            detail = r.json()
        except Exception:
            detail = r.text
        raise SystemExit(f"{method} {path} -> {r.status_code}: {detail}")
    return r.status_code, r.json()


def main():
    # 1) Policy (version 1 may already exist from an earlier smoke run)
    policy = {
        "version": 1,
        "effective_from": "2000-01-01",
        "settings": {
            "work_start": "08:00",
            "grace_minutes": 5,
            "sso": {"employee_percent": 5, "monthly_cap": 15000},
        },
    }
    req("POST", "/payroll/policies", ok=(201, 409), json=policy)

    # 2) Employee (unique code per smoke run)
    code = f"SMK{datetime.now():%H%M%S}"
    _, emp = req("POST", "/hr/employees", ok=(201,), json={
        "code": code,
        "display_name": "Smoke Tester",
        "pay_type": "MONTHLY",
        "salary_monthly": "30000",
        "start_date": "2000-01-01",
    })

    # 3) Attendance: 2nd on time, 3rd twenty minutes late
    day1 = f"{YEAR:04d}-{MONTH:02d}-02"
    day2 = f"{YEAR:04d}-{MONTH:02d}-03"
    for ts, direction in ((f"{day1}T07:55:00", "IN"), (f"{day1}T17:05:00", "OUT"),
                          (f"{day2}T08:25:00", "IN"), (f"{day2}T17:00:00", "OUT")):
        req("POST", "/hr/attendance", ok=(201,), json={"employee_id": emp["id"], "timestamp": ts, "direction": direction})

    # 4) Draft
    _, drafts = req("GET", f"/payroll/drafts/{YEAR}/{MONTH}/{PERIOD}")
    mine = next((d for d in drafts if d["employee_code"] == code), None)

    # 5) Create run twice -> same id
    status1, run = req("POST", "/payroll/runs", ok=(200, 201), json={"year": YEAR, "month": MONTH, "period": PERIOD})
    status2, again = req("POST", "/payroll/runs", ok=(200,), json={"year": YEAR, "month": MONTH, "period": PERIOD})
    assert again["id"] == run["id"], (run, again)
    if run["status"] != "DRAFT":
        print(json.dumps({"result": "SKIP", "reason": f"run {run['key']} already {run['status']}"}, indent=2))
        return

    # 6) Send, then send again -> 409
    _, sent = req("POST", f"/payroll/runs/{run['id']}/send")
    assert sent["status"] == "SENT_TO_EMPLOYEE", sent
    _, err = req("POST", f"/payroll/runs/{run['id']}/send", ok=(409,))
    assert err["code"] == "INVALID_TRANSITION", err

    # 7) Accept every payslip
    _, slips = req("GET", f"/payroll/runs/{run['id']}/payslips")
    for s in slips:
        req("POST", f"/payroll/payslips/{s['id']}/decision", json={"decision": "ACCEPTED"})

    # 8) Finalize
    _, final = req("POST", f"/payroll/runs/{run['id']}/finalize")
    assert final["status"] == "FINAL", final

    # 9) Summary
    print(json.dumps({
        "result": "PASS",
        "run": run["key"],
        "created_status": status1,
        "repeat_status": status2,
        "payslips": len(slips),
        "smoke_employee_in_draft": mine is not None,
        "smoke_net": mine and mine["net_salary"],
    }, indent=2))


if __name__ == "__main__":
    main()
