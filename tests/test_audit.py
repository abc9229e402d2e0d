"""Audit trail tests."""

import logging

import pytest

from shortlinks.audit import AuditLog


@pytest.mark.asyncio
async def test_log_appends_to_stream(audit, mock_redis) -> None:
    audit.log("Short URL created: abc123 -> https://example.com")
    await audit.flush()

    mock_redis.xadd.assert_awaited_once()
    stream, fields = mock_redis.xadd.await_args.args
    assert stream == "audit_log"
    assert fields["line"].endswith("Short URL created: abc123 -> https://example.com")
    assert mock_redis.xadd.await_args.kwargs == {"maxlen": 100, "approximate": True}


@pytest.mark.asyncio
async def test_log_writes_to_logger(caplog) -> None:
    audit = AuditLog(None)
    with caplog.at_level(logging.INFO, logger="shortlinks.audit"):
        audit.log("Redirected: abc123")
        await audit.flush()

    assert any("Redirected: abc123" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_stream_failure_is_ignored(audit, mock_redis) -> None:
    mock_redis.xadd.side_effect = ConnectionError("redis down")

    audit.log("Redirected: abc123")
    await audit.flush()

    mock_redis.xadd.assert_awaited_once()


def test_log_without_running_loop_is_dropped(audit, mock_redis) -> None:
    audit.log("outside the loop")
    mock_redis.xadd.assert_not_called()
