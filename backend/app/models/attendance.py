# backend/app/models/attendance.py
"""
Attendance facts consumed by payroll.

- time_logs:       raw work intervals (only completed ones count toward a day)
- leave_requests:  leave spans; only APPROVED ones affect attendance
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db import Base

LEAVE_TYPES = ("CASUAL", "SICK", "UNPAID")
PAID_LEAVE_TYPES = frozenset({"CASUAL", "SICK"})
LEAVE_STATUSES = ("PENDING", "APPROVED", "REJECTED")

LeaveType = Enum(*LEAVE_TYPES, name="leave_type")
LeaveStatus = Enum(*LEAVE_STATUSES, name="leave_status")


class TimeLog(Base):
    __tablename__ = "time_logs"
    __table_args__ = (
        Index("ix_time_logs_employee_start", "employee_id", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)  # null = timer running
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    description: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    @property
    def work_seconds(self) -> int:
        if self.end_time is None:
            return 0
        if self.duration is not None:
            return max(0, int(self.duration))
        return max(0, int((self.end_time - self.start_time).total_seconds()))

    def __repr__(self) -> str:
        return f"<TimeLog emp={self.employee_id} {self.start_time}..{self.end_time}>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )

    type: Mapped[str] = mapped_column(LeaveType, nullable=False)
    status: Mapped[str] = mapped_column(LeaveStatus, nullable=False, default="PENDING", server_default="PENDING")
    start_date: Mapped[date] = mapped_column(Date(), nullable=False)
    end_date: Mapped[date] = mapped_column(Date(), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<LeaveRequest emp={self.employee_id} {self.type} {self.start_date}..{self.end_date}>"
