"""payroll_engine_base: companies, employees, salary configs, attendance, payruns, payslips

- Mirrors project anchors:
  - UUID PKs via postgresql.UUID(as_uuid=True) + python default uuid.uuid4
  - JSONB columns for allowances, component configs and payslip breakdowns
  - created_at/updated_at with server_default=func.now()
- Every table carries company_id (tenant scope)
- payruns: partial unique index, one live (non-cancelled) payrun per company/month
- payslips: unique (payrun_id, employee_id) backs the compute upsert
"""

from __future__ import annotations
import uuid
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import func

# --- Alembic headers ---------------------------------------------------------
revision: str = "3c1d5e7f9a20"
down_revision: str | None = None
branch_labels = None
depends_on = None

# --- Enumerations ------------------------------------------------------------
payrun_status = sa.Enum(
    "draft", "computed", "done", "cancelled",
    name="payrun_status",
)
leave_type = sa.Enum(
    "CASUAL", "SICK", "UNPAID",
    name="leave_type",
)
leave_status = sa.Enum(
    "PENDING", "APPROVED", "REJECTED",
    name="leave_status",
)


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, default=uuid.uuid4)


def _company_fk() -> sa.Column:
    return sa.Column(
        "company_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )


def _employee_fk(**kw) -> sa.Column:
    return sa.Column(
        "employee_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        **kw,
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=func.now())


def _money(name: str, precision: int = 12) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision, 2), nullable=False, server_default="0")


def upgrade() -> None:
    # Do NOT pre-create enums; SQLAlchemy will create them on first table use.

    # companies ---------------------------------------------------------------
    op.create_table(
        "companies",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False, unique=True),
        _created_at(),
    )

    # employees ---------------------------------------------------------------
    op.create_table(
        "employees",
        _id(),
        _company_fk(),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("join_date", sa.Date(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.UniqueConstraint("company_id", "code", name="uq_employees_company_code"),
    )
    op.create_index("ix_employees_company_id", "employees", ["company_id"])

    # salary_configs ----------------------------------------------------------
    op.create_table(
        "salary_configs",
        _id(),
        _company_fk(),
        _employee_fk(unique=True),
        _money("basic"),
        sa.Column("allowances", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("wage", sa.Numeric(12, 2), nullable=True),
        sa.Column("component_config", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("pf_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("professional_tax", sa.Numeric(10, 2), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_salary_configs_company_id", "salary_configs", ["company_id"])

    # time_logs ---------------------------------------------------------------
    op.create_table(
        "time_logs",
        _id(),
        _company_fk(),
        _employee_fk(),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_time_logs_company_id", "time_logs", ["company_id"])
    op.create_index("ix_time_logs_employee_start", "time_logs", ["employee_id", "start_time"])

    # leave_requests ----------------------------------------------------------
    op.create_table(
        "leave_requests",
        _id(),
        _company_fk(),
        _employee_fk(),
        sa.Column("type", leave_type, nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default="PENDING"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_leave_requests_company_id", "leave_requests", ["company_id"])
    op.create_index("ix_leave_requests_employee_status", "leave_requests", ["employee_id", "status"])

    # payruns -----------------------------------------------------------------
    op.create_table(
        "payruns",
        _id(),
        _company_fk(),
        sa.Column("period_month", sa.Date(), nullable=False),
        sa.Column("status", payrun_status, nullable=False, server_default="draft"),
        sa.Column("employees_count", sa.Integer(), nullable=False, server_default="0"),
        _money("gross_total", 14),
        _money("net_total", 14),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("validated_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_payruns_company_id", "payruns", ["company_id"])
    op.create_index(
        "uq_payruns_company_period_live",
        "payruns",
        ["company_id", "period_month"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    # payslips ----------------------------------------------------------------
    op.create_table(
        "payslips",
        _id(),
        _company_fk(),
        sa.Column(
            "payrun_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("payruns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _employee_fk(),
        sa.Column("period_month", sa.Date(), nullable=False),
        sa.Column("components", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        _money("basic"),
        _money("allowances_total"),
        _money("monthly_wage"),
        sa.Column("total_working_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payable_days", sa.Numeric(5, 2), nullable=False, server_default="0"),
        _money("attendance_days_amount"),
        _money("paid_leave_days_amount"),
        _money("gross"),
        _money("pf_employee"),
        _money("pf_employer"),
        _money("professional_tax"),
        _money("net"),
        # payrun_status already exists (created with payruns)
        sa.Column(
            "status",
            postgresql.ENUM("draft", "computed", "done", "cancelled", name="payrun_status", create_type=False),
            nullable=False,
            server_default="computed",
        ),
        sa.Column("reference_no", sa.String(length=64), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("payrun_id", "employee_id", name="uq_payslips_payrun_employee"),
    )
    op.create_index("ix_payslips_company_id", "payslips", ["company_id"])
    op.create_index("ix_payslips_employee_period", "payslips", ["employee_id", "period_month"])


def downgrade() -> None:
    op.drop_index("ix_payslips_employee_period", table_name="payslips")
    op.drop_index("ix_payslips_company_id", table_name="payslips")
    op.drop_table("payslips")

    op.drop_index("uq_payruns_company_period_live", table_name="payruns")
    op.drop_index("ix_payruns_company_id", table_name="payruns")
    op.drop_table("payruns")

    op.drop_index("ix_leave_requests_employee_status", table_name="leave_requests")
    op.drop_index("ix_leave_requests_company_id", table_name="leave_requests")
    op.drop_table("leave_requests")

    op.drop_index("ix_time_logs_employee_start", table_name="time_logs")
    op.drop_index("ix_time_logs_company_id", table_name="time_logs")
    op.drop_table("time_logs")

    op.drop_index("ix_salary_configs_company_id", table_name="salary_configs")
    op.drop_table("salary_configs")

    op.drop_index("ix_employees_company_id", table_name="employees")
    op.drop_table("employees")

    op.drop_table("companies")

    bind = op.get_bind()
    payrun_status.drop(bind, checkfirst=True)
    leave_status.drop(bind, checkfirst=True)
    leave_type.drop(bind, checkfirst=True)
