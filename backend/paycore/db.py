# backend/paycore/db.py
from __future__ import annotations

import os

from dotenv import load_dotenv
from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import declarative_base, sessionmaker

# Load .env file to get DB connection string
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./paycore.db")
SQL_ECHO = os.getenv("PAYCORE_SQL_ECHO", "0") == "1"

# SQLite needs this so TestClient/worker threads can share a connection
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")
