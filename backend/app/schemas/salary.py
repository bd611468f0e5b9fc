# backend/app/schemas/salary.py
"""
Salary configuration DTOs.

Either send the static shape (basic + allowances) or the formula shape
(wage + component_config). component_config entries look like
{"type": "PERCENTAGE_OF_WAGE", "value": 50}.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

ComponentKind = Literal["PERCENTAGE_OF_WAGE", "PERCENTAGE_OF_BASIC", "FIXED_AMOUNT", "REMAINING_AMOUNT"]


class ComponentIn(BaseModel):
    type: ComponentKind
    value: Decimal = Field(default=Decimal("0"), ge=0)


class SalaryConfigIn(BaseModel):
    basic: Optional[Decimal] = None
    allowances: Dict[str, Any] = Field(default_factory=dict)

    wage: Optional[Decimal] = Field(None, gt=0)
    component_config: Dict[str, ComponentIn] = Field(default_factory=dict)

    pf_rate: Optional[Decimal] = Field(None, ge=0, le=100, description="Percent, e.g. 12.00")
    professional_tax: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def _one_shape(self) -> "SalaryConfigIn":
        if self.component_config:
            if self.wage is None:
                raise ValueError("wage is required when component_config is given.")
            remaining = [k for k, c in self.component_config.items() if c.type == "REMAINING_AMOUNT"]
            if len(remaining) > 1:
                raise ValueError("At most one component may use REMAINING_AMOUNT.")
        elif self.basic is None:
            raise ValueError("Either basic or wage + component_config is required.")
        return self

    def component_dict(self) -> Dict[str, Dict[str, Any]]:
        return {k: {"type": c.type, "value": c.value} for k, c in self.component_config.items()}


class SalaryConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    basic: Decimal
    allowances: Dict[str, Any]
    wage: Optional[Decimal] = None
    component_config: Dict[str, Any]
    pf_rate: Optional[Decimal] = None
    professional_tax: Optional[Decimal] = None
    monthly_wage: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime


class SalaryPreviewOut(BaseModel):
    basic: Decimal
    allowances: Dict[str, Decimal]
    allowances_total: Decimal
    wage: Optional[Decimal] = None
    monthly_wage: Decimal
    yearly_wage: Decimal
    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    net_salary: Decimal
