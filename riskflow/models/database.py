"""
Async engine + per-request session.

Each request gets its own AsyncSession; services commit once at the end of
an operation, so a request is one transaction.
"""
from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from riskflow.core.config import get_settings

engine = create_async_engine(
    get_settings().database_url,
    echo=get_settings().db_echo,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
