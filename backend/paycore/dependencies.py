"""
Shared FastAPI dependency helpers.

`get_db` provides a SQLAlchemy session per request; `get_evaluation_time`
provides the timestamp the payroll engine treats as "now". The engine never
reads a clock itself, so tests override this dependency with a fixed value.
"""

import os
from datetime import datetime
from typing import Generator
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from paycore.db import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and close it after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_evaluation_time() -> datetime:
    """Local wall-clock time (naive) in the payroll timezone."""
    tz = os.getenv("PAYCORE_TZ", "Asia/Bangkok")
    return datetime.now(ZoneInfo(tz)).replace(tzinfo=None)
