"""Shared enums for the short link service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "RedirectStage", "StoreBackend"]

class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    GONE = "gone"
    ERROR = "error"


class RedirectStage(StrEnum):
    """Stages a redirect request moves through, in order."""

    LOOKUP = "lookup"
    EXPIRY_CHECK = "expiry_check"
    RECORD_VISIT = "record_visit"
    RESPOND = "respond"

class StoreBackend(StrEnum):
    """Mapping store implementations selectable through settings."""

    SQL = "sql"
    MEMORY = "memory"
