# backend/app/schemas/attendance.py
from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel

LeaveType = Literal["CASUAL", "SICK", "UNPAID"]


# ---------- Self view ----------

class AttendanceDayOut(BaseModel):
    date: dt.date
    in_at: Optional[dt.datetime] = None
    out_at: Optional[dt.datetime] = None
    work_hours: float
    extra_hours: float
    leave_type: Optional[LeaveType] = None
    payable: bool


class AttendanceKpi(BaseModel):
    present_days: int
    leave_days: int
    unpaid_leave_days: int
    total_working_days: int
    payable_days: int


class AttendanceMeOut(BaseModel):
    month: str
    days: List[AttendanceDayOut]
    kpi: AttendanceKpi


# ---------- Admin views ----------

class PayableSummaryOut(BaseModel):
    employee_id: UUID
    employee_code: Optional[str] = None
    employee_name: Optional[str] = None
    year: int
    month: int
    total_working_days: int
    present_days: int
    paid_leave_days: int
    unpaid_leave_days: int
    payable_days: int
    has_records: bool


class AttendanceDayRow(BaseModel):
    employee_id: UUID
    code: str
    name: str
    in_at: Optional[dt.datetime] = None
    out_at: Optional[dt.datetime] = None
    work_hours: float
    extra_hours: float
    leave_type: Optional[LeaveType] = None
