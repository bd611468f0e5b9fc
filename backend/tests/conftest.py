# tests/conftest.py
import os

# app.db builds its engine at import time; keep it off any real database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db import Base
from app.dependencies import get_db, get_policy
from app.main import app as fastapi_app
from app.models.attendance import LeaveRequest, TimeLog
from app.models.payroll import Company, Employee, SalaryConfig
from app.services.payroll_policy import PayrollPolicy


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
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def policy():
    return PayrollPolicy()


@pytest.fixture
def client(engine, policy):
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def _get_db():
        s = factory()
        try:
            yield s
        finally:
            s.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_policy] = lambda: policy
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def weekdays(year: int, month: int):
    d = date(year, month, 1)
    out = []
    while d.month == month:
        if d.weekday() < 5:
            out.append(d)
        d += timedelta(days=1)
    return out


class Factory:
    """Small builders for tenant data; every call commits."""

    def __init__(self, db):
        self.db = db
        self._n = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def company(self, name="Acme"):
        self._n += 1
        return self._save(Company(name=name, code=f"C{self._n:03d}"))

    def employee(self, company, code=None, first_name="Ana", last_name="Reyes", email=None):
        self._n += 1
        return self._save(
            Employee(
                company_id=company.id,
                code=code or f"E{self._n:03d}",
                first_name=first_name,
                last_name=last_name,
                email=email,
            )
        )

    def salary(self, emp, basic=20000, allowances=None, wage=None, component_config=None,
               pf_rate=None, professional_tax=None):
        return self._save(
            SalaryConfig(
                company_id=emp.company_id,
                employee_id=emp.id,
                basic=Decimal(str(basic)),
                allowances=allowances or {},
                wage=Decimal(str(wage)) if wage is not None else None,
                component_config=component_config or {},
                pf_rate=Decimal(str(pf_rate)) if pf_rate is not None else None,
                professional_tax=Decimal(str(professional_tax)) if professional_tax is not None else None,
            )
        )

    def log(self, emp, day, hours=8, start_hour=9, duration=None, open_=False):
        start = datetime.combine(day, time(start_hour, 0))
        return self._save(
            TimeLog(
                company_id=emp.company_id,
                employee_id=emp.id,
                start_time=start,
                end_time=None if open_ else start + timedelta(hours=hours),
                duration=duration,
            )
        )

    def leave(self, emp, type_, start, end=None, status="APPROVED", created_at=None):
        kw = {"created_at": created_at} if created_at else {}
        return self._save(
            LeaveRequest(
                company_id=emp.company_id,
                employee_id=emp.id,
                type=type_,
                status=status,
                start_date=start,
                end_date=end or start,
                **kw,
            )
        )

    def full_month(self, emp, year, month, hours=8, leave_days=0, leave_type="CASUAL"):
        """Log every weekday; the first `leave_days` weekdays become approved leave instead."""
        days = weekdays(year, month)
        for d in days[:leave_days]:
            self.leave(emp, leave_type, d)
        for d in days[leave_days:]:
            self.log(emp, d, hours=hours)
        return days


@pytest.fixture
def make(db):
    return Factory(db)


def headers(company, **extra):
    h = {"X-Company-Id": str(company.id)}
    for k, v in extra.items():
        h[k] = str(v)
    return h


def new_uuid() -> str:
    return str(uuid.uuid4())
