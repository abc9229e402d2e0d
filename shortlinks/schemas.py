"""Pydantic schemas for the short link domain and its HTTP surface.

This module defines the immutable domain records shared by every store
implementation, plus the request/response models used by the API layer.

Schema Hierarchy
=================
::
    ShortLinkRecord (Domain, frozen)
    ├─ code: str (4-10 alphanumeric)
    ├─ original_url: str
    ├─ created_at: datetime (UTC)
    ├─ expiry: datetime (UTC, > created_at)
    └─ clicks: tuple[ClickEvent, ...] (append-only)

    ClickEvent (Domain, frozen)
    ├─ event_id: str (uuid4 hex)
    ├─ timestamp: datetime
    ├─ referrer: str ("direct" when absent)
    └─ location: str ("unknown" when lookup fails)

    ShortURLCreate (Input)
    ├─ url: str (absolute http/https URL)
    ├─ validity: int | None (minutes, alias validityMinutes)
    └─ shortcode: str | None

    ShortURLCreated (Output)   -> {shortLink, expiry}
    LinkAnalytics (Output)     -> {shortcode, originalUrl, createdAt, expiry,
                                   totalClicks, clicks}
    HealthResponse (Output)    -> {status, database, cache}

How to Use
===========
**Step 1 — Build a record**::
    record = ShortLinkRecord(
        code="abc123",
        original_url="https://example.com",
        created_at=now,
        expiry=now + timedelta(minutes=30),
    )

**Step 2 — Append a click (returns a new record)**::
    grown = record.with_click(ClickEvent(timestamp=now, referrer="direct", location="IN"))

**Step 3 — Serialize analytics**::
    LinkAnalytics.from_record(grown).model_dump(by_alias=True)

Key Behaviours
===============
- Domain records are frozen; appending a click yields a new record.
- Output models serialize with camelCase aliases.
- URL validation uses the validators library and only accepts http(s).
"""

import datetime
import uuid
from typing import Annotated
from urllib.parse import urlsplit

import validators
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shortlinks.codegen import validate_format
from shortlinks.enums import HealthStatus

__all__ = [
    "DIRECT_REFERRER",
    "UNKNOWN_LOCATION",
    "MAX_VALIDITY_MINUTES",
    "ClickEvent",
    "ShortLinkRecord",
    "ShortURLCreate",
    "ShortURLCreated",
    "ClickView",
    "LinkAnalytics",
    "HealthResponse",
    "is_web_url",
]

DIRECT_REFERRER = "direct"
UNKNOWN_LOCATION = "unknown"
MAX_VALIDITY_MINUTES = 10 * 365 * 24 * 60


def is_web_url(value: object) -> bool:
    if not isinstance(value, str) or not value:
        return False
    if urlsplit(value).scheme.lower() not in ("http", "https"):
        return False
    return bool(validators.url(value, simple_host=True))


# ============================================================================
# DOMAIN RECORDS
# ============================================================================


class ClickEvent(BaseModel):
    """One recorded redirect visit."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime.datetime
    referrer: str = DIRECT_REFERRER
    location: str = UNKNOWN_LOCATION


class ShortLinkRecord(BaseModel):
    """A code bound to its target URL, lifetime and click history."""

    model_config = ConfigDict(frozen=True)

    code: str
    original_url: str
    created_at: datetime.datetime
    expiry: datetime.datetime
    clicks: tuple[ClickEvent, ...] = ()

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not validate_format(v):
            raise ValueError("Short code must be 4-10 alphanumeric characters")
        return v

    @model_validator(mode="after")
    def validate_lifetime(self) -> "ShortLinkRecord":
        if self.expiry <= self.created_at:
            raise ValueError("expiry must be after created_at")
        return self

    def is_expired(self, now: datetime.datetime) -> bool:
        return now > self.expiry

    def with_click(self, event: ClickEvent) -> "ShortLinkRecord":
        return self.model_copy(update={"clicks": self.clicks + (event,)})


# ============================================================================
# API SCHEMAS
# ============================================================================


class ShortURLCreate(BaseModel):
    url: str
    validity: Annotated[StrictInt, Field(gt=0, le=MAX_VALIDITY_MINUTES)] | None = Field(
        default=None,
        validation_alias=AliasChoices("validity", "validityMinutes"),
    )
    shortcode: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not is_web_url(v):
            raise ValueError("Invalid or missing URL")
        return v

    @field_validator("shortcode")
    @classmethod
    def validate_shortcode(cls, v: str | None) -> str | None:
        if v is not None and not validate_format(v):
            raise ValueError("Invalid shortcode format. Must be alphanumeric 4-10 chars.")
        return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortURLCreated(_CamelModel):
    short_link: str
    expiry: datetime.datetime


class ClickView(_CamelModel):
    timestamp: datetime.datetime
    referrer: str
    location: str


class LinkAnalytics(_CamelModel):
    shortcode: str
    original_url: str
    created_at: datetime.datetime
    expiry: datetime.datetime
    total_clicks: int
    clicks: list[ClickView]

    @classmethod
    def from_record(cls, record: ShortLinkRecord) -> "LinkAnalytics":
        return cls(
            shortcode=record.code,
            original_url=record.original_url,
            created_at=record.created_at,
            expiry=record.expiry,
            total_clicks=len(record.clicks),
            clicks=[
                ClickView(timestamp=click.timestamp, referrer=click.referrer, location=click.location)
                for click in record.clicks
            ],
        )


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
