# app/api/system.py
from __future__ import annotations

import os
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from sqlalchemy import text

from app.db import DATABASE_URL, engine
from app.dependencies import get_policy
from app.services.payroll_policy import PayrollPolicy

router = APIRouter(tags=["ops"])


def _db_driver_from_url(url: str | None) -> str | None:
    if not url or "://" not in url:
        return None
    scheme = url.split("://", 1)[0]  # e.g., "postgresql+psycopg2"
    if "+" in scheme:
        return scheme.split("+", 1)[1]  # "psycopg2"
    return scheme  # fallback


@router.get("/health")
def health():
    """Liveness check with a lightweight DB probe and local time."""
    tz = os.getenv("TZ", "UTC")
    now_local = datetime.now(ZoneInfo(tz)).isoformat()

    db = {"status": "ok", "driver": _db_driver_from_url(DATABASE_URL)}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        db["status"] = f"error: {type(e).__name__}"

    return {
        "status": "ok",
        "time": {"tz": tz, "now": now_local},
        "db": db,
    }


@router.get("/version")
def version(policy: PayrollPolicy = Depends(get_policy)):
    """Minimal runtime info plus the active payroll policy."""
    return {
        "app": "Payroll Engine",
        "db_driver": _db_driver_from_url(DATABASE_URL),
        "tz": os.getenv("TZ", "UTC"),
        "policy": {
            "pf_rate": str(policy.pf_rate),
            "prof_tax_threshold": str(policy.prof_tax_threshold),
            "prof_tax_fixed": str(policy.prof_tax_fixed),
            "min_active_hours_present": str(policy.min_active_hours_present),
            "work_hours_per_day": str(policy.work_hours_per_day),
            "work_week_mon_to_fri": policy.work_week_mon_to_fri,
        },
    }
