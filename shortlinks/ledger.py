"""Append-only click ledger."""

import datetime
import logging

from shortlinks.errors import NotFoundError
from shortlinks.schemas import DIRECT_REFERRER, UNKNOWN_LOCATION, ClickEvent, ShortLinkRecord
from shortlinks.store import LinkStore

__all__ = ["ClickLedger"]

logger = logging.getLogger(__name__)


class ClickLedger:
    """Record visits against a link's click history.

    The ledger never checks expiry; gating redirects is the redirect
    resolver's job. Appends go through ``LinkStore.persist``, which merges by
    event id, so concurrent visits to one code are all kept.
    """

    def __init__(self, store: LinkStore) -> None:
        self._store = store

    async def record_visit(
        self,
        code: str,
        referrer: str | None,
        location: str | None,
        now: datetime.datetime,
    ) -> ClickEvent:
        """Look up ``code`` and append a visit. Redirects that already hold the record use ``append``."""
        record = await self._store.find_by_code(code)
        if record is None:
            raise NotFoundError(f"Cannot record visit for unknown short code: {code}")
        return await self.append(record, referrer, location, now)

    async def append(
        self,
        record: ShortLinkRecord,
        referrer: str | None,
        location: str | None,
        now: datetime.datetime,
    ) -> ClickEvent:
        event = ClickEvent(
            timestamp=now,
            referrer=referrer or DIRECT_REFERRER,
            location=location or UNKNOWN_LOCATION,
        )
        await self._store.persist(record.with_click(event))
        logger.debug(f"Recorded click {event.event_id} for {record.code}")
        return event
