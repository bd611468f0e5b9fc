# backend/app/services/errors.py
"""
Typed payroll errors.

Every error carries a stable `code` and an HTTP-style `status_code`; routers
turn them into HTTPException responses. They subclass ValueError so callers
that only care about "bad input" can keep catching ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class PayrollError(ValueError):
    code = "PAYROLL_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class NotFoundError(PayrollError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidStatusError(PayrollError):
    code = "INVALID_STATUS"
    status_code = 409


class InvalidSalaryError(PayrollError):
    code = "INVALID_SALARY"
    status_code = 422

    def __init__(self, employee_id: Any, message: Optional[str] = None):
        super().__init__(
            message or f"Basic salary must be a positive number (employee {employee_id})",
            details={"employee_id": str(employee_id)},
        )
        self.employee_id = employee_id


class NoEmployeesError(PayrollError):
    code = "NO_EMPLOYEES"
    status_code = 400


class InvalidMonthError(PayrollError):
    code = "INVALID_MONTH"
    status_code = 400


class InvalidComponentConfigError(PayrollError):
    code = "INVALID_COMPONENT_CONFIG"
    status_code = 422


@dataclass(frozen=True)
class PayrollWarning:
    """Per-employee data-quality issue; reported, never aborts a run."""
    employee_id: Any
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_id": str(self.employee_id),
            "code": self.code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }
