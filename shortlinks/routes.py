"""FastAPI route definitions for the short link REST API.

This module provides all HTTP endpoints with dependency injection, error
translation, and response serialization for the short link service.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /shorturls
        ├─ ShortURLCreate (request body)
        └─ ShortURLCreated (201) or 409/422/500

    GET  /shorturls/:shortcode
        └─ LinkAnalytics (200) or 404

    GET  /:shortcode
        └─ 302 Redirect or 404/410/500

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &  │
    │ Parse       │
    │ (Pydantic)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ Context     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call Service│
    │ Layer       │
    └──────┬──────┘
    ERROR?  │
    ┌─────┴──────────────┐
    │ ShortLinkError      │ other
    ▼                     ▼
┌─────────────┐   ┌─────────────┐
│ status +    │   │ 500 generic │
│ public      │   │ + traceback │
│ detail      │   │ in the log  │
└─────────────┘   └─────────────┘

Key Behaviours
===============
- Request validation failures return 422 before any store access.
- Internal failures never leak details; the log carries the traceback.
- Redirects use 302 and are only issued after the click is recorded.

Endpoints:
    /health:  Health check for monitoring.
    /shorturls:  Create new short links.
    /shorturls/:code:  Get link analytics.
    /:code:  Redirect to original URL.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from shortlinks.dependencies import RequestContext, get_link_service, get_request_context
from shortlinks.enums import HealthStatus
from shortlinks.errors import INTERNAL_ERROR_DETAIL, ShortLinkError
from shortlinks.schemas import HealthResponse, LinkAnalytics, ShortURLCreate, ShortURLCreated
from shortlinks.service import ShortLinkService

__all__ = ["router"]

router = APIRouter()


def _to_http_error(ctx: RequestContext, operation: str, exc: Exception) -> HTTPException:
    if isinstance(exc, ShortLinkError):
        ctx.logger.warning(
            f"{operation} failed: {exc}",
            extra={"operation": operation, "error": type(exc).__name__, "duration_ms": ctx.get_duration()},
        )
        return HTTPException(status_code=exc.status_code, detail=exc.detail)
    ctx.logger.exception(
        f"{operation} crashed: {exc!r}",
        extra={"operation": operation, "duration_ms": ctx.get_duration()},
    )
    return HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.store.ping()
    except Exception as e:
        ctx.logger.error(f"Store health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.cache_writer.ping()
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/shorturls", response_model=ShortURLCreated, status_code=201, tags=["links"])
async def create_short_url(
    payload: ShortURLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> ShortURLCreated:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Short link requested for: {payload.url}",
        extra={"operation": "create_short_url", "target_url": payload.url, "shortcode": payload.shortcode},
    )

    try:
        record = await service.create_short_url(payload)
    except Exception as exc:
        raise _to_http_error(ctx, "create_short_url", exc) from exc

    return ShortURLCreated(short_link=service.short_link_for(record.code), expiry=record.expiry)


@router.get("/shorturls/{shortcode}", response_model=LinkAnalytics, tags=["links"])
async def get_analytics(
    shortcode: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> LinkAnalytics:
    ctx.logger.info(f"Analytics requested for short code: {shortcode}")
    try:
        record = await service.get_analytics(shortcode)
    except Exception as exc:
        raise _to_http_error(ctx, "get_analytics", exc) from exc
    return LinkAnalytics.from_record(record)


@router.get("/{shortcode}", tags=["redirect"])
async def redirect_to_url(
    shortcode: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    ctx.logger.info(
        f"Redirect requested for short code: {shortcode}",
        extra={"operation": "redirect", "short_code": shortcode, "client_ip": ctx.client_ip},
    )

    try:
        result = await service.follow(shortcode, referrer=ctx.referrer, client_ip=ctx.client_ip)
    except Exception as exc:
        raise _to_http_error(ctx, "redirect", exc) from exc

    ctx.logger.info(
        f"Redirect successful: {shortcode} -> {result.target_url}",
        extra={"operation": "redirect", "short_code": shortcode, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=result.target_url, status_code=302)
