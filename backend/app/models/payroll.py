# backend/app/models/payroll.py
"""
Payroll ORM models.

Tables:
- companies
- employees
- salary_configs   (1:1 with employees; latest save replaces prior)
- payruns          (one per company/month unless cancelled)
- payslips         (unique per payrun/employee; upserted on compute)

Every table carries company_id; all queries are tenant-scoped.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


# ---------- Enums ----------
PAYRUN_STATUSES = ("draft", "computed", "done", "cancelled")

PayrunStatus = Enum(*PAYRUN_STATUSES, name="payrun_status")


# --------------------------------- MODELS --------------------------------- #

class Company(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Company {self.code}>"


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_employees_company_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    join_date: Mapped[Optional[date]] = mapped_column(Date(), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    salary_config: Mapped[Optional["SalaryConfig"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", uselist=False
    )
    payslips: Mapped[list["Payslip"]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.code} {self.last_name}>"


class SalaryConfig(Base):
    """
    Salary configuration for one employee.

    Two shapes share this row:
      - static:  `basic` + `allowances` are already-resolved monthly amounts
      - formula: `wage` + `component_config` ({name: {type, value}}); the resolved
                 basic/allowances are stored alongside on save
    `pf_rate` (percent) and `professional_tax` optionally override the policy.
    """
    __tablename__ = "salary_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    basic: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    allowances: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    wage: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    component_config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    pf_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    professional_tax: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    employee: Mapped["Employee"] = relationship(back_populates="salary_config")

    def __repr__(self) -> str:
        return f"<SalaryConfig emp={self.employee_id} basic={self.basic}>"


class Payrun(Base):
    __tablename__ = "payruns"
    __table_args__ = (
        # At most one live payrun per company/month
        Index(
            "uq_payruns_company_period_live",
            "company_id",
            "period_month",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period_month: Mapped[date] = mapped_column(Date(), nullable=False)

    status: Mapped[str] = mapped_column(PayrunStatus, nullable=False, default="draft", server_default="draft")
    employees_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    gross_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"), server_default="0")
    net_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"), server_default="0")

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    validated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    payslips: Mapped[list["Payslip"]] = relationship(
        back_populates="payrun", cascade="all, delete-orphan", order_by="Payslip.reference_no"
    )

    @property
    def month(self) -> str:
        return self.period_month.strftime("%Y-%m")

    def __repr__(self) -> str:
        return f"<Payrun {self.period_month:%Y-%m} status={self.status}>"


class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (
        UniqueConstraint("payrun_id", "employee_id", name="uq_payslips_payrun_employee"),
        Index("ix_payslips_employee_period", "employee_id", "period_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payrun_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("payruns.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    period_month: Mapped[date] = mapped_column(Date(), nullable=False)

    # Full breakdown, serialized from PayslipBreakdown
    components: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    basic: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    allowances_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    monthly_wage: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    payable_days: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, server_default="0")
    attendance_days_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    paid_leave_days_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")

    gross: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    pf_employee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    pf_employer: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    professional_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")
    net: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default="0")

    status: Mapped[str] = mapped_column(PayrunStatus, nullable=False, default="computed", server_default="computed")
    reference_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    payrun: Mapped["Payrun"] = relationship(back_populates="payslips")
    employee: Mapped["Employee"] = relationship(back_populates="payslips")

    def __repr__(self) -> str:
        return f"<Payslip {self.reference_no or self.id} {self.net}>"
