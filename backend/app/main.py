import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure all SQLAlchemy models are imported so relationships resolve
import app.models  # noqa: F401

from app.api import attendance, payroll, salary

# Ops/system endpoints (/health, /version)
from app.api.system import router as system_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Payroll Engine")

# --- CORS for local frontend dev ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000", "http://127.0.0.1:3000",
        "http://localhost:5173", "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(system_router)  # /health, /version

app.include_router(payroll.router)     # /payroll (payruns, payslips)
app.include_router(attendance.router)  # /attendance (self view, payable summary, day view)
app.include_router(salary.router)      # /salary (configuration + preview)
