"""
Declarative base shared by every table in the ``risk_workflow`` schema.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase

SCHEMA = "risk_workflow"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    metadata = MetaData(schema=SCHEMA)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class AuthorMixin:
    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)


def fk(table_column: str) -> str:
    return f"{SCHEMA}.{table_column}"


def format_code(prefix: str, sequence: int) -> str:
    """Fixed-width document code: ``format_code("R", 7) == "R007"``."""
    return f"{prefix}{sequence:03d}"
