"""Redirect resolution for short codes.

State Machine — resolve()
=========================
::
    ┌─────────────┐
    │   LOOKUP    │──── missing ────▶ NotFoundError (404)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │EXPIRY_CHECK │──── now > expiry ▶ ExpiredError (410), no click
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │RECORD_VISIT │──── store error ─▶ StoreUnavailable (500), no redirect
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │   RESPOND   │──── original_url
    └─────────────┘

Key Behaviours
===============
- Fail-closed: a redirect is only returned after its click was persisted.
- Geolocation failures never fail a redirect; the location becomes "unknown".
- The referrer falls back to "direct".
"""

import datetime
import logging
from typing import Protocol

from shortlinks.enums import RedirectStage
from shortlinks.errors import ExpiredError, NotFoundError
from shortlinks.ledger import ClickLedger
from shortlinks.schemas import ClickEvent, ShortLinkRecord
from shortlinks.store import LinkStore

__all__ = ["Geolocator", "RedirectResolver", "RedirectResult"]

logger = logging.getLogger(__name__)


class Geolocator(Protocol):
    async def lookup_country(self, ip_address: str | None) -> str | None: ...


class RedirectResult:
    __slots__ = ("record", "click")

    def __init__(self, record: ShortLinkRecord, click: ClickEvent) -> None:
        self.record = record
        self.click = click

    @property
    def target_url(self) -> str:
        return self.record.original_url


class RedirectResolver:
    def __init__(self, store: LinkStore, ledger: ClickLedger, geolocator: Geolocator) -> None:
        self._store = store
        self._ledger = ledger
        self._geolocator = geolocator

    async def resolve(
        self,
        code: str,
        *,
        referrer: str | None,
        client_ip: str | None,
        now: datetime.datetime,
    ) -> RedirectResult:
        logger.debug(f"[{RedirectStage.LOOKUP}] {code}")
        record = await self._store.find_by_code(code)
        if record is None:
            raise NotFoundError(f"Unknown short code: {code}")

        logger.debug(f"[{RedirectStage.EXPIRY_CHECK}] {code} expires {record.expiry.isoformat()}")
        if record.is_expired(now):
            raise ExpiredError(f"Short code {code} expired at {record.expiry.isoformat()}")

        location = await self._locate(client_ip)
        logger.debug(f"[{RedirectStage.RECORD_VISIT}] {code} referrer={referrer!r} location={location!r}")
        click = await self._ledger.append(record, referrer, location, now)

        logger.debug(f"[{RedirectStage.RESPOND}] {code} -> {record.original_url}")
        return RedirectResult(record, click)

    async def _locate(self, client_ip: str | None) -> str | None:
        try:
            return await self._geolocator.lookup_country(client_ip)
        except Exception as exc:
            logger.warning(f"Geolocation failed for {client_ip}: {exc}")
            return None
