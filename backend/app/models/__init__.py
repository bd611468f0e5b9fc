# backend/app/models/__init__.py
"""
Central model registry.

Import this once at startup (e.g., in main.py) and from alembic/env.py so
SQLAlchemy sees all mapped classes before relationships are configured.
"""
from app.db import Base  # re-export Base

from .payroll import Company, Employee, SalaryConfig, Payrun, Payslip  # noqa: F401
from .attendance import TimeLog, LeaveRequest  # noqa: F401
