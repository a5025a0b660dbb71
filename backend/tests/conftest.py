# tests/conftest.py
# Shared fixtures: in-memory SQLite database and a TestClient wired to it.

from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import paycore.models  # noqa: F401
from paycore.db import Base
from paycore.dependencies import get_db, get_evaluation_time
from paycore.main import app
from paycore.models.hr import AttendanceEvent, Employee, HRPolicy

# Evening of the last day of January 2024: every January day is evaluable
NOW = datetime(2024, 1, 31, 18, 0)

SSO_SETTINGS = {"sso": {"employee_percent": 5, "monthly_cap": 15000}}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_evaluation_time] = lambda: NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ----------------------------- seed helpers ----------------------------- #

def add_policy(db, version=1, effective_from=date(2020, 1, 1), settings=None):
    row = HRPolicy(version=version, effective_from=effective_from, settings=settings or {})
    db.add(row)
    db.commit()
    return row


def add_employee(db, code, salary="30000", pay_type="MONTHLY", status="ACTIVE", start=date(2020, 1, 1)):
    emp = Employee(
        code=code,
        display_name=f"Employee {code}",
        status=status,
        pay_type=pay_type,
        salary_monthly=Decimal(salary) if salary is not None else None,
        start_date=start,
        meta={},
    )
    db.add(emp)
    db.commit()
    return emp


def add_workday(db, employee_id, day, clock_in="07:50", clock_out="17:00"):
    for hhmm, direction in ((clock_in, "IN"), (clock_out, "OUT")):
        if hhmm is None:
            continue
        hh, mm = (int(x) for x in hhmm.split(":"))
        db.add(AttendanceEvent(employee_id=employee_id, timestamp=datetime(day.year, day.month, day.day, hh, mm),
                               direction=direction))
    db.commit()


@pytest.fixture
def seeded(db):
    """
    Policy v1 (SSO 5% capped at 15,000) and, for Jan 2024 period 1:
      E001  30,000  present every weekday except Jan 2 and Jan 3
      E002  UNPAID
      E003  salary 0
    """
    add_policy(db, settings=SSO_SETTINGS)
    e1 = add_employee(db, "E001")
    add_employee(db, "E002", salary="20000", pay_type="UNPAID")
    add_employee(db, "E003", salary="0")
    for d in range(4, 16):
        day = date(2024, 1, d)
        if day.weekday() < 5:
            add_workday(db, e1.id, day)
    add_workday(db, e1.id, date(2024, 1, 1))
    return e1
