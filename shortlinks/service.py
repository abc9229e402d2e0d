"""Short Link Service Layer - Core Business Logic

This module composes the code generator, uniqueness resolver, mapping store,
click ledger and redirect resolver into the three operations the API exposes:
create a mapping, follow a redirect, and query analytics.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    ShortLinkService                         │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ Uniqueness      │  │ Redirect        │  │ Click Ledger │ │
    │  │ Resolver        │  │ Resolver        │  │              │ │
    │  │ • reserve()     │  │ • resolve()     │  │ • append()   │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │   LinkStore     │  │   GeoLocator    │  │    AuditLog     │
    │ (SQL / memory)  │  │  (httpx, ip-api)│  │ (Redis stream)  │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Creation Flow
-------------
::
    ┌─────────────┐
    │ POST        │
    │ /shorturls  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ reserve()   │◀──────────────┐
    │ code        │               │
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐   Duplicate   │
    │ store.insert│── (generated)─┘
    └──────┬──────┘
           │  Duplicate (caller code) ──▶ CodeTaken (409)
           ▼
    ┌─────────────┐
    │ audit line  │
    │ (async)     │
    └─────────────┘

Usage Examples
=============
```python
service = ShortLinkService.from_context(ctx)
record = await service.create_short_url(ShortURLCreate(url="https://example.com"))
result = await service.follow(record.code, referrer=None, client_ip="8.8.8.8")
analytics = await service.get_analytics(record.code)
```
"""

import datetime
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

from shortlinks.audit import AuditLog
from shortlinks.config import Settings
from shortlinks.enums import RequestStatus
from shortlinks.errors import (
    CodeTaken,
    ConflictError,
    DuplicateCode,
    ExhaustedNamespace,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    ShortLinkError,
)
from shortlinks.ledger import ClickLedger
from shortlinks.redirect import Geolocator, RedirectResolver, RedirectResult
from shortlinks.resolver import UniquenessResolver
from shortlinks.schemas import ShortLinkRecord, ShortURLCreate
from shortlinks.store import LinkStore

if TYPE_CHECKING:
    from shortlinks.dependencies import RequestContext

__all__ = ["ShortLinkService", "utcnow"]

# Insert attempts for generated codes that lose an insert race.
INSERT_ATTEMPTS = 3


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlinks_creation_requests_total",
    "Total short link creation requests",
    ["status"],
)
REDIRECT_REQUESTS_TOTAL = Counter(
    "shortlinks_redirect_requests_total",
    "Total redirect requests",
    ["status"],
)
CLICK_EVENTS_RECORDED_TOTAL = Counter(
    "shortlinks_click_events_recorded_total",
    "Click events durably recorded",
)
CODE_COLLISIONS_TOTAL = Counter(
    "shortlinks_code_collisions_total",
    "Inserts rejected by the store because the code already existed",
)
LINK_CREATION_DURATION = Histogram(
    "shortlinks_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
REDIRECT_DURATION = Histogram(
    "shortlinks_redirect_duration_seconds",
    "Time taken to resolve redirects",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)


def _status_for(exc: Exception) -> RequestStatus:
    if isinstance(exc, InvalidInputError):
        return RequestStatus.VALIDATION_ERROR
    if isinstance(exc, ConflictError):
        return RequestStatus.CONFLICT
    if isinstance(exc, NotFoundError):
        return RequestStatus.NOT_FOUND
    if isinstance(exc, ExpiredError):
        return RequestStatus.GONE
    return RequestStatus.ERROR


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class ShortLinkService:
    """Create short links, follow them, and report their analytics.

    Example:
        >>> service = ShortLinkService.from_context(ctx)
        >>> record = await service.create_short_url(ShortURLCreate(url="https://example.com"))
        >>> print(record.code, record.expiry)
    """

    def __init__(
        self,
        store: LinkStore,
        *,
        settings: Settings,
        audit: AuditLog,
        geolocator: Geolocator,
        clock: Callable[[], datetime.datetime] = utcnow,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._audit = audit
        self._clock = clock
        self._logger = logger or logging.getLogger("shortlinks")
        self._resolver = UniquenessResolver(
            store,
            max_attempts=settings.CODE_MAX_ATTEMPTS,
            code_length=settings.SHORT_CODE_LENGTH,
        )
        self._ledger = ClickLedger(store)
        self._redirects = RedirectResolver(store, self._ledger, geolocator)

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "ShortLinkService":
        """Build a service from the request context's shared resources."""
        return cls(
            ctx.store,
            settings=ctx.settings,
            audit=ctx.audit,
            geolocator=ctx.geolocator,
            clock=ctx.clock,
            logger=ctx.logger,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    def short_link_for(self, code: str) -> str:
        return f"{self._settings.BASE_URL.rstrip('/')}/{code}"

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_url(self, request: ShortURLCreate) -> ShortLinkRecord:
        """Issue a code for ``request.url`` and store the mapping.

        Raises:
            InvalidFormat: If the caller-supplied code breaks the format rule.
            CodeTaken: If the caller-supplied code is reserved or already issued,
                including when a concurrent request wins the insert.
            ExhaustedNamespace: If no free code was found within the attempt budget.
            StoreUnavailable: If the store failed or timed out.
        """
        start_time = time.perf_counter()
        validity = request.validity if request.validity is not None else self._settings.DEFAULT_VALIDITY_MINUTES

        try:
            record = await self._insert_new_record(request, validity)
        except ShortLinkError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=_status_for(exc)).inc()
            self._logger.warning(f"Short link creation failed: {exc}")
            raise
        except Exception as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Short link creation error: {exc}")
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Short link created: {record.code} -> {record.original_url}")
        self._audit.log(
            f"Short URL created: {record.code} -> {record.original_url}, expires at {record.expiry.isoformat()}"
        )
        return record

    async def follow(self, code: str, *, referrer: str | None, client_ip: str | None) -> RedirectResult:
        """Resolve ``code`` to its target, recording the visit first.

        Raises:
            NotFoundError: Unknown code.
            ExpiredError: Known code past its expiry; no click is recorded.
            StoreUnavailable: The click could not be recorded; no redirect is issued.
        """
        start_time = time.perf_counter()
        try:
            result = await self._redirects.resolve(
                code,
                referrer=referrer,
                client_ip=client_ip,
                now=self._clock(),
            )
        except ShortLinkError as exc:
            REDIRECT_REQUESTS_TOTAL.labels(status=_status_for(exc)).inc()
            self._logger.warning(f"Redirect failed for {code}: {exc}")
            raise
        except Exception as exc:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Redirect error for {code}: {exc}")
            raise
        finally:
            REDIRECT_DURATION.observe(time.perf_counter() - start_time)

        REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        CLICK_EVENTS_RECORDED_TOTAL.inc()
        self._audit.log(
            f"Redirecting shortcode {code} to {result.target_url} "
            f"(click from {result.click.location}, referrer: {result.click.referrer})"
        )
        return result

    async def get_analytics(self, code: str) -> ShortLinkRecord:
        record = await self._store.find_by_code(code)
        if record is None:
            raise NotFoundError(f"Unknown short code: {code}")
        return record

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _insert_new_record(self, request: ShortURLCreate, validity: int) -> ShortLinkRecord:
        for attempt in range(1, INSERT_ATTEMPTS + 1):
            code = await self._resolver.reserve(request.shortcode)
            created_at = self._clock()
            record = ShortLinkRecord(
                code=code,
                original_url=request.url,
                created_at=created_at,
                expiry=created_at + datetime.timedelta(minutes=validity),
            )
            try:
                await self._store.insert(record)
            except DuplicateCode as exc:
                CODE_COLLISIONS_TOTAL.inc()
                if request.shortcode is not None:
                    raise CodeTaken(f"Shortcode {code!r} is already taken") from exc
                self._logger.info(f"Generated code {code} lost an insert race (attempt {attempt})")
                continue
            return record
        raise ExhaustedNamespace(f"Generated codes kept colliding after {INSERT_ATTEMPTS} inserts")
