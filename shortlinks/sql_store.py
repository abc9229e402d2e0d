"""SQLAlchemy implementation of the mapping store.

Flow Diagram — insert()
=======================
::
    ┌─────────────┐
    │ insert(rec) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT row  │
    │ short_links │
    └──────┬──────┘
    UNIQUE OK?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Rollback│  │ Commit  │
│ raise   │  │         │
│Duplicate│  │         │
│ Code    │  │         │
└─────────┘  └─────────┘

Flow Diagram — persist()
========================
::
    ┌─────────────┐
    │ persist(rec)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolve id, │
    │ read stored │
    │ event_ids   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT only │
    │ new clicks  │
    └──────┬──────┘
    UNIQUE OK?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Re-read │  │ Commit  │
│ & retry │  │         │
└─────────┘  └─────────┘

Key Behaviours
===============
- Every operation runs in its own session under ``asyncio.timeout``.
- Driver errors and timeouts surface as ``StoreUnavailable``.
- Timestamps are normalized to UTC on the way out, since SQLite drops tzinfo.
"""

import asyncio
import datetime
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from shortlinks.config import Settings
from shortlinks.database import build_engine, init_db
from shortlinks.errors import DuplicateCode, NotFoundError, StoreUnavailable
from shortlinks.models import Click, ShortLink
from shortlinks.schemas import ClickEvent, ShortLinkRecord

__all__ = ["SQLAlchemyLinkStore"]

logger = logging.getLogger(__name__)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _to_record(link: ShortLink) -> ShortLinkRecord:
    return ShortLinkRecord(
        code=link.short_code,
        original_url=link.original_url,
        created_at=_as_utc(link.created_at),
        expiry=_as_utc(link.expiry),
        clicks=tuple(
            ClickEvent(
                event_id=click.event_id,
                timestamp=_as_utc(click.timestamp),
                referrer=click.referrer,
                location=click.location,
            )
            for click in link.clicks
        ),
    )


def _to_click_row(short_link_id: int, event: ClickEvent) -> Click:
    return Click(
        event_id=event.event_id,
        short_link_id=short_link_id,
        timestamp=event.timestamp,
        referrer=event.referrer,
        location=event.location,
    )


class SQLAlchemyLinkStore:
    """Mapping store backed by any SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine, *, timeout: float = 5.0, persist_retries: int = 3) -> None:
        assert timeout > 0, f"timeout must be positive, got {timeout!r}"
        assert persist_retries > 0, f"persist_retries must be positive, got {persist_retries!r}"
        self._engine = engine
        self._timeout = timeout
        self._persist_retries = persist_retries
        self._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SQLAlchemyLinkStore":
        engine = build_engine(
            settings.DATABASE_URL,
            echo=(settings.APP_ENV == "development"),
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
        return cls(
            engine,
            timeout=settings.STORE_TIMEOUT_SECONDS,
            persist_retries=settings.STORE_PERSIST_RETRIES,
        )

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def open(self) -> None:
        async with self._guard("open"):
            await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    async def ping(self) -> None:
        async with self._guard("ping"):
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))

    # ========================================================================
    # STORE CONTRACT
    # ========================================================================

    async def insert(self, record: ShortLinkRecord) -> None:
        async with self._guard("insert"):
            async with self._session_factory() as session:
                link = ShortLink(
                    short_code=record.code,
                    original_url=record.original_url,
                    created_at=record.created_at,
                    expiry=record.expiry,
                )
                session.add(link)
                try:
                    await session.flush()
                    session.add_all(_to_click_row(link.id, click) for click in record.clicks)
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise DuplicateCode(record.code) from exc

    async def find_by_code(self, code: str) -> ShortLinkRecord | None:
        async with self._guard("find_by_code"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ShortLink).options(selectinload(ShortLink.clicks)).where(ShortLink.short_code == code)
                )
                link = result.scalar_one_or_none()
                return _to_record(link) if link is not None else None

    async def exists_by_code(self, code: str) -> bool:
        async with self._guard("exists_by_code"):
            async with self._session_factory() as session:
                result = await session.execute(select(ShortLink.id).where(ShortLink.short_code == code))
                return result.scalar_one_or_none() is not None

    async def persist(self, record: ShortLinkRecord) -> None:
        for attempt in range(1, self._persist_retries + 1):
            try:
                async with self._guard("persist"):
                    await self._write_new_clicks(record)
                return
            except IntegrityError:
                logger.warning(f"Concurrent click write for {record.code}, retrying (attempt {attempt})")
        raise StoreUnavailable(f"Could not persist clicks for {record.code} after {self._persist_retries} attempts")

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _write_new_clicks(self, record: ShortLinkRecord) -> None:
        async with self._session_factory() as session:
            result = await session.execute(select(ShortLink.id).where(ShortLink.short_code == record.code))
            link_id = result.scalar_one_or_none()
            if link_id is None:
                raise NotFoundError(f"Cannot persist unknown short code: {record.code}")

            stored = await session.execute(select(Click.event_id).where(Click.short_link_id == link_id))
            seen = set(stored.scalars())
            new_clicks = [click for click in record.clicks if click.event_id not in seen]
            if not new_clicks:
                return

            session.add_all(_to_click_row(link_id, click) for click in new_clicks)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            async with asyncio.timeout(self._timeout):
                yield
        except IntegrityError:
            raise
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            logger.error(f"Store operation {operation} failed: {exc!r}")
            raise StoreUnavailable(f"Store operation {operation} failed") from exc
