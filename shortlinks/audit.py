"""Fire-and-forget audit trail.

Audit lines are written to the ``shortlinks.audit`` logger and appended to a
capped Redis stream. Writes run as background tasks; a failing sink is logged
at debug level and otherwise ignored, so the audit trail can never change the
outcome of the request that produced it.
"""

import asyncio
import datetime
import logging

import redis.asyncio as redis

__all__ = ["AuditLog"]

logger = logging.getLogger("shortlinks.audit")


class AuditLog:
    def __init__(
        self,
        cache: redis.Redis | None,
        *,
        stream_key: str = "audit_log",
        maxlen: int = 10000,
    ) -> None:
        self._cache = cache
        self._stream_key = stream_key
        self._maxlen = maxlen
        self._pending: set[asyncio.Task[None]] = set()

    def log(self, message: str) -> None:
        """Schedule an audit line; never raises and never blocks the caller."""
        timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
        line = f"[{timestamp}] {message}"
        try:
            task = asyncio.get_running_loop().create_task(self._write(line))
        except RuntimeError:
            logger.debug(f"No running loop, audit line dropped: {line}")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for all scheduled audit writes to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _write(self, line: str) -> None:
        logger.info(line)
        if self._cache is None:
            return
        try:
            await self._cache.xadd(
                self._stream_key,
                {"line": line},
                maxlen=self._maxlen,
                approximate=True,
            )
        except Exception as exc:
            logger.debug(f"Audit stream write failed: {exc}")
