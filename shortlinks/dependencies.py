"""Dependency injection with a singleton service manager.

This module owns the explicit lifecycle of every shared resource (mapping
store, Redis client, audit log, geolocation client) and hands each request a
lightweight context with consistent naming across all API endpoints.
"""

import datetime
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request

from shortlinks.audit import AuditLog
from shortlinks.config import Settings, get_settings
from shortlinks.enums import StoreBackend
from shortlinks.geo import GeoLocator
from shortlinks.redirect import Geolocator
from shortlinks.service import ShortLinkService, utcnow
from shortlinks.sql_store import SQLAlchemyLinkStore
from shortlinks.store import InMemoryLinkStore, LinkStore


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Resources are opened once in ``initialize()`` and released in ``cleanup()``.
    Any of them can be supplied explicitly, which is how tests swap in an
    in-memory store, a mocked Redis client, a fixed geolocator or a fake clock.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(
        self,
        *,
        settings: Settings | None = None,
        store: LinkStore | None = None,
        cache_writer: redis.Redis | None = None,
        geolocator: Geolocator | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        self.settings = settings or get_settings()
        self.logger = self._setup_logger()
        self.store = store or self._build_store()
        await self.store.open()
        self.cache_writer = cache_writer or self._setup_redis_writer()
        self.audit = AuditLog(
            self.cache_writer if self.settings.AUDIT_STREAM_ENABLED else None,
            stream_key=self.settings.AUDIT_STREAM_KEY,
            maxlen=self.settings.AUDIT_STREAM_MAXLEN,
        )
        self.geolocator = geolocator or GeoLocator.from_settings(self.settings)
        self.clock = clock or utcnow
        self._initialized = True
        self.logger.info(f"Service manager initialized with {self.settings.STORE_BACKEND} store")

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlinks")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    def _build_store(self) -> LinkStore:
        if self.settings.STORE_BACKEND is StoreBackend.MEMORY:
            return InMemoryLinkStore()
        return SQLAlchemyLinkStore.from_settings(self.settings)

    def _setup_redis_writer(self) -> redis.Redis:
        """Setup Redis writer once."""
        return redis.from_url(self.settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if not self._initialized:
            return
        await self.audit.flush()
        if isinstance(self.geolocator, GeoLocator):
            await self.geolocator.aclose()
        await self.cache_writer.aclose()
        await self.store.close()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking plus access to the shared resources.

    Attributes:
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        client_ip: Client IP address used for geolocation
        user_agent: Client user agent string
        referrer: Referer/Referrer header, if any
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def store(self) -> LinkStore:
        return self.service_manager.store

    @property
    def cache_writer(self) -> redis.Redis:
        return self.service_manager.cache_writer

    @property
    def audit(self) -> AuditLog:
        return self.service_manager.audit

    @property
    def geolocator(self) -> Geolocator:
        return self.service_manager.geolocator

    @property
    def clock(self) -> Callable[[], datetime.datetime]:
        return self.service_manager.clock

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        """Add a tag to the request context."""
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


def _client_ip(request: Request, settings: Settings) -> Optional[str]:
    if settings.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    """Build the request context from the incoming request.

    Args:
        request: FastAPI Request object for extracting client info
        manager: Singleton service manager with shared resources

    Returns:
        RequestContext: Context for the request
    """
    return RequestContext(
        service_manager=manager,
        client_ip=_client_ip(request, manager.settings),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer") or request.headers.get("referrer"),
    )


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> ShortLinkService:
    """Create the link service from the request context."""
    return ShortLinkService.from_context(ctx)
