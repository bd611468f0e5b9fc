"""
Shared FastAPI dependency helpers.

- `get_db`        SQLAlchemy session per request, closed afterwards
- `get_policy`    the payroll policy (env-driven, cached); tests override it
- `get_company_id` tenant from the `X-Company-Id` header (validated upstream)
- `get_actor_id`  acting user from `X-User-Id`, if any
- `get_employee_id` self-view employee from `X-Employee-Id`
"""

from typing import Generator, Optional
from uuid import UUID

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.services.payroll_policy import PayrollPolicy, load_policy


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and close it after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_policy() -> PayrollPolicy:
    return load_policy()


def get_company_id(x_company_id: Optional[UUID] = Header(None)) -> UUID:
    if x_company_id is None:
        raise HTTPException(status_code=400, detail="X-Company-Id header is required")
    return x_company_id


def get_actor_id(x_user_id: Optional[UUID] = Header(None)) -> Optional[UUID]:
    return x_user_id


def get_employee_id(x_employee_id: Optional[UUID] = Header(None)) -> UUID:
    if x_employee_id is None:
        raise HTTPException(status_code=400, detail="X-Employee-Id header is required")
    return x_employee_id
