"""Mapping store contract and the process-local implementation.

The mapping store is the single shared mutable resource of the service. Every
component reaches records through the narrow ``LinkStore`` contract below and
never keeps its own copy across requests.

Contract
========
::
    insert(record)          insert-if-absent, DuplicateCode on collision
    find_by_code(code)      full record with clicks, or None
    exists_by_code(code)    cheap existence probe
    persist(record)         merge grown clicks by event_id, never overwrite
    ping() / open() / close()

Key Behaviours
===============
- ``insert`` is the authoritative uniqueness guard; pre-checks may race.
- ``persist`` appends the record's clicks that the store has not seen yet and
  leaves stored clicks untouched, so two writers that appended to stale
  snapshots both keep their events.
- ``InMemoryLinkStore`` serializes mutations with an ``asyncio.Lock``; it backs
  local runs (STORE_BACKEND=memory) and tests.
"""

import asyncio
from typing import Protocol, runtime_checkable

from shortlinks.errors import DuplicateCode, NotFoundError
from shortlinks.schemas import ClickEvent, ShortLinkRecord

__all__ = ["LinkStore", "InMemoryLinkStore"]


@runtime_checkable
class LinkStore(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def ping(self) -> None: ...

    async def insert(self, record: ShortLinkRecord) -> None: ...

    async def find_by_code(self, code: str) -> ShortLinkRecord | None: ...

    async def exists_by_code(self, code: str) -> bool: ...

    async def persist(self, record: ShortLinkRecord) -> None: ...


class InMemoryLinkStore:
    """Dictionary-backed store guarded by a single asyncio lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[str, ShortLinkRecord] = {}
        self._clicks: dict[str, list[ClickEvent]] = {}

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def ping(self) -> None:
        return None

    async def insert(self, record: ShortLinkRecord) -> None:
        async with self._lock:
            if record.code in self._records:
                raise DuplicateCode(record.code)
            self._records[record.code] = record.model_copy(update={"clicks": ()})
            self._clicks[record.code] = list(record.clicks)

    async def find_by_code(self, code: str) -> ShortLinkRecord | None:
        async with self._lock:
            record = self._records.get(code)
            if record is None:
                return None
            return record.model_copy(update={"clicks": tuple(self._clicks[code])})

    async def exists_by_code(self, code: str) -> bool:
        return code in self._records

    async def persist(self, record: ShortLinkRecord) -> None:
        async with self._lock:
            if record.code not in self._records:
                raise NotFoundError(f"Cannot persist unknown short code: {record.code}")
            stored = self._clicks[record.code]
            seen = {click.event_id for click in stored}
            stored.extend(click for click in record.clicks if click.event_id not in seen)
