"""Database access for task bodies.

Each task run owns a short-lived engine without a connection pool: worker
processes call ``asyncio.run`` per task, and pooled async connections cannot
outlive the event loop that opened them.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from core.config import settings
from infrastructure.database import _build_async_url


@asynccontextmanager
async def task_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(_build_async_url(settings.database.url), poolclass=NullPool)
    try:
        yield async_sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        await engine.dispose()
