import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure all SQLAlchemy models are imported so relationships resolve
import paycore.models  # noqa: F401

from paycore import __version__
from paycore.api import hr, payroll
from paycore.api.errors import install_error_handlers
from paycore.api.system import router as system_router
from paycore.logging_config import configure_logging

configure_logging(level=getattr(logging, os.getenv("PAYCORE_LOG_LEVEL", "INFO").upper(), logging.INFO))

app = FastAPI(title="paycore", version=__version__)

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

install_error_handlers(app)

# Routers
app.include_router(system_router)   # /health, /version
app.include_router(hr.router)       # /hr
app.include_router(payroll.router)  # /payroll
