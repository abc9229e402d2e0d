"""Error taxonomy for short link operations.

Every error carries the HTTP status it maps to and a ``detail`` string that is
safe to show to callers. Operational failures (store outages, namespace
exhaustion) expose only a generic message.

Error Hierarchy
===============
::
    ShortLinkError
    ├─ InvalidInputError (422)
    │   └─ InvalidFormat
    ├─ ConflictError (409)
    │   ├─ CodeTaken
    │   └─ DuplicateCode        (raised by stores on insert)
    ├─ NotFoundError (404)
    ├─ ExpiredError (410)
    ├─ ExhaustedNamespace (500)
    └─ StoreUnavailable (500)
"""

__all__ = [
    "INTERNAL_ERROR_DETAIL",
    "ShortLinkError",
    "InvalidInputError",
    "InvalidFormat",
    "ConflictError",
    "CodeTaken",
    "DuplicateCode",
    "NotFoundError",
    "ExpiredError",
    "ExhaustedNamespace",
    "StoreUnavailable",
]

INTERNAL_ERROR_DETAIL = "Internal server error"


class ShortLinkError(Exception):
    status_code: int = 500
    detail: str = INTERNAL_ERROR_DETAIL

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        super().__init__(message or detail or self.detail)
        if detail is not None:
            self.detail = detail


class InvalidInputError(ShortLinkError):
    status_code = 422
    detail = "Invalid input"


class InvalidFormat(InvalidInputError):
    detail = "Invalid shortcode format. Must be alphanumeric 4-10 chars."


class ConflictError(ShortLinkError):
    status_code = 409
    detail = "Shortcode already in use"


class CodeTaken(ConflictError):
    pass


class DuplicateCode(ConflictError):
    """A store rejected an insert because the code already exists."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Duplicate short code: {code}")
        self.code = code


class NotFoundError(ShortLinkError):
    status_code = 404
    detail = "Shortcode not found"


class ExpiredError(ShortLinkError):
    status_code = 410
    detail = "Short URL has expired"


class ExhaustedNamespace(ShortLinkError):
    """No free code was found within the configured attempt budget."""


class StoreUnavailable(ShortLinkError):
    """The mapping store failed or timed out."""
