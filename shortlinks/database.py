"""Database engine construction for the SQL-backed mapping store.

This module builds SQLAlchemy async engines and owns the declarative base.
Nothing here is a module-level connection: engines are created explicitly by
whoever owns the store handle and disposed by them on shutdown.

Flow Diagram — Store Lifecycle
=============================
::
    ┌─────────────┐
    │ Application │
    │ startup     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ build_engine│
    │ (settings)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ store.open()│
    │ create_all  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Sessions per│
    │ operation   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ store.close │
    │ dispose()   │
    └─────────────┘

How to Use
===========
**Step 1 — Build an engine**::
    engine = build_engine(settings.DATABASE_URL)

**Step 2 — Create tables**::
    await init_db(engine)

**Step 3 — Cleanup on shutdown**::
    await engine.dispose()

Key Behaviours
===============
- Connection pooling is configured for server databases only; SQLite uses
  SQLAlchemy's defaults.
- Statements are echoed in the development environment.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    build_engine():  Creates an async engine for a database URL.
    init_db():  Creates all tables.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

__all__ = ["Base", "build_engine", "init_db"]


class Base(DeclarativeBase):
    pass


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> AsyncEngine:
    options: dict[str, Any] = {"echo": echo}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow, pool_pre_ping=True)
    return create_async_engine(database_url, **options)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
