# backend/paycore/api/system.py
from __future__ import annotations

import os
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from paycore import __version__
from paycore.db import DATABASE_URL
from paycore.dependencies import get_db

router = APIRouter(tags=["ops"])


def _db_driver_from_url(url: str | None) -> str | None:
    if not url or "://" not in url:
        return None
    scheme = url.split("://", 1)[0]  # e.g., "postgresql+psycopg2"
    if "+" in scheme:
        return scheme.split("+", 1)[1]  # "psycopg2"
    return scheme


@router.get("/health")
def health(db: Session = Depends(get_db)):
    """Liveness check with a lightweight DB round trip and payroll-local time."""
    tz = os.getenv("PAYCORE_TZ", "Asia/Bangkok")
    now_local = datetime.now(ZoneInfo(tz)).isoformat()

    db_status = {"status": "ok", "driver": _db_driver_from_url(DATABASE_URL)}
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        db_status["status"] = f"error: {type(e).__name__}"

    return {
        "status": "ok",
        "time": {"tz": tz, "now": now_local},
        "db": db_status,
    }


@router.get("/version")
def version():
    """Minimal runtime info."""
    return {
        "app": "paycore",
        "version": __version__,
        "db_driver": _db_driver_from_url(DATABASE_URL),
        "tz": os.getenv("PAYCORE_TZ", "Asia/Bangkok"),
    }
