"""Short code reservation against the mapping store namespace."""

import logging
from collections.abc import Callable

from shortlinks.codegen import DEFAULT_CODE_LENGTH, generate_candidate, validate_format
from shortlinks.errors import CodeTaken, ExhaustedNamespace, InvalidFormat
from shortlinks.store import LinkStore

__all__ = ["RESERVED_CODES", "UniquenessResolver"]

logger = logging.getLogger(__name__)

# Paths served by the application itself; a link under one of them could never redirect.
RESERVED_CODES = frozenset({"health", "metrics", "shorturls", "docs", "redoc"})


class UniquenessResolver:
    """Pick a code that is free at the time of the check.

    The check is not atomic with the later insert. Callers must still handle
    ``DuplicateCode`` from ``LinkStore.insert``, which is the real guard; this
    class only keeps collisions rare and bounds the search.
    """

    def __init__(
        self,
        store: LinkStore,
        *,
        max_attempts: int = 1000,
        code_length: int = DEFAULT_CODE_LENGTH,
        generator: Callable[[int], str] = generate_candidate,
    ) -> None:
        assert max_attempts > 0, f"max_attempts must be positive, got {max_attempts!r}"
        self._store = store
        self._max_attempts = max_attempts
        self._code_length = code_length
        self._generator = generator

    async def reserve(self, candidate: str | None = None) -> str:
        if candidate is not None:
            return await self._check_supplied(candidate)
        return await self._draw_unused()

    async def _check_supplied(self, candidate: str) -> str:
        if not validate_format(candidate):
            raise InvalidFormat(f"Invalid shortcode format: {candidate!r}")
        if candidate.lower() in RESERVED_CODES:
            raise CodeTaken(f"Shortcode {candidate!r} is reserved")
        if await self._store.exists_by_code(candidate):
            raise CodeTaken(f"Shortcode {candidate!r} is already taken")
        return candidate

    async def _draw_unused(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            code = self._generator(self._code_length)
            if code.lower() in RESERVED_CODES:
                continue
            if not await self._store.exists_by_code(code):
                if attempt > 1:
                    logger.info(f"Found free short code after {attempt} attempts")
                return code
        logger.error(f"No free short code after {self._max_attempts} attempts")
        raise ExhaustedNamespace(f"No free short code after {self._max_attempts} attempts")
