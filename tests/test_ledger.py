"""Click ledger tests."""

import asyncio
import datetime

import pytest
import pytest_asyncio

from shortlinks.errors import NotFoundError
from shortlinks.ledger import ClickLedger
from shortlinks.schemas import ShortLinkRecord

NOW = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)


@pytest_asyncio.fixture
async def expired_record(memory_store) -> ShortLinkRecord:
    record = ShortLinkRecord(
        code="expir1",
        original_url="https://example.com",
        created_at=NOW - datetime.timedelta(hours=2),
        expiry=NOW - datetime.timedelta(hours=1),
    )
    await memory_store.insert(record)
    return record


@pytest.mark.asyncio
async def test_record_visit_appends_event(memory_store, expired_record) -> None:
    ledger = ClickLedger(memory_store)

    event = await ledger.record_visit("expir1", "https://news.example.com", "DE", NOW)

    found = await memory_store.find_by_code("expir1")
    assert found.clicks == (event,)
    assert event.timestamp == NOW
    assert event.referrer == "https://news.example.com"
    assert event.location == "DE"


@pytest.mark.asyncio
async def test_record_visit_applies_fallbacks(memory_store, expired_record) -> None:
    event = await ClickLedger(memory_store).record_visit("expir1", None, None, NOW)
    assert event.referrer == "direct"
    assert event.location == "unknown"


@pytest.mark.asyncio
async def test_record_visit_unknown_code(memory_store) -> None:
    with pytest.raises(NotFoundError):
        await ClickLedger(memory_store).record_visit("nope12", None, None, NOW)


@pytest.mark.asyncio
async def test_record_visit_preserves_history(memory_store, expired_record) -> None:
    ledger = ClickLedger(memory_store)
    first = await ledger.record_visit("expir1", None, "US", NOW)
    second = await ledger.record_visit("expir1", None, "FR", NOW + datetime.timedelta(seconds=5))

    found = await memory_store.find_by_code("expir1")
    assert found.clicks == (first, second)


@pytest.mark.asyncio
async def test_concurrent_visits_are_all_recorded(memory_store, expired_record) -> None:
    ledger = ClickLedger(memory_store)

    await asyncio.gather(*(ledger.record_visit("expir1", None, None, NOW) for _ in range(50)))

    found = await memory_store.find_by_code("expir1")
    assert len(found.clicks) == 50
    assert len({c.event_id for c in found.clicks}) == 50
