"""Redirect endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from shortlinks.errors import StoreUnavailable


async def _create(client: AsyncClient, url: str, **extra) -> str:
    response = await client.post("/shorturls", json={"url": url, **extra})
    assert response.status_code == 201
    return response.json()["shortLink"].rsplit("/", 1)[1]


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient) -> None:
    short_code = await _create(client, "https://www.google.com")

    # httpx won't follow by default
    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.google.com"


@pytest.mark.asyncio
async def test_redirect_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert response.json()["detail"] == "Shortcode not found"


@pytest.mark.asyncio
async def test_redirect_records_clicks(client: AsyncClient) -> None:
    short_code = await _create(client, "https://www.python.org")

    for _ in range(3):
        await client.get(f"/{short_code}", follow_redirects=False)

    stats_resp = await client.get(f"/shorturls/{short_code}")
    assert stats_resp.status_code == 200
    assert stats_resp.json()["totalClicks"] == 3


@pytest.mark.asyncio
async def test_redirect_with_custom_code(client: AsyncClient) -> None:
    await _create(client, "https://www.github.com", shortcode="ghub")
    response = await client.get("/ghub", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_redirect_records_referrer_and_location(client: AsyncClient, geolocator) -> None:
    short_code = await _create(client, "https://www.example.com")

    await client.get(f"/{short_code}", headers={"Referer": "https://news.example.org/post"}, follow_redirects=False)
    await client.get(f"/{short_code}", follow_redirects=False)

    clicks = (await client.get(f"/shorturls/{short_code}")).json()["clicks"]
    assert [c["referrer"] for c in clicks] == ["https://news.example.org/post", "direct"]
    assert [c["location"] for c in clicks] == ["IN", "IN"]
    assert geolocator.lookups == ["203.0.113.7", "203.0.113.7"]


@pytest.mark.asyncio
async def test_redirect_after_expiry_is_gone(client: AsyncClient, clock) -> None:
    short_code = await _create(client, "https://www.example.com", validity=1)
    assert (await client.get(f"/{short_code}", follow_redirects=False)).status_code == 302

    clock.advance(minutes=1, seconds=1)

    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 410
    assert response.json()["detail"] == "Short URL has expired"
    stats = (await client.get(f"/shorturls/{short_code}")).json()
    assert stats["totalClicks"] == 1


@pytest.mark.asyncio
async def test_redirect_fails_closed_when_click_not_stored(client: AsyncClient, memory_store, monkeypatch) -> None:
    short_code = await _create(client, "https://www.example.com")

    async def broken_persist(record) -> None:
        raise StoreUnavailable("write timed out on db-primary:5432")

    monkeypatch.setattr(memory_store, "persist", broken_persist)

    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 500
    assert "location" not in response.headers
    assert response.json() == {"detail": "Internal server error"}


@pytest.mark.asyncio
async def test_create_follow_and_expire_flow(client: AsyncClient, clock) -> None:
    create = await client.post("/shorturls", json={"url": "https://example.com", "validityMinutes": 1})
    assert create.status_code == 201
    short_code = create.json()["shortLink"].rsplit("/", 1)[1]
    assert len(short_code) == 6

    clock.advance(seconds=30)
    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com"
    assert (await client.get(f"/shorturls/{short_code}")).json()["totalClicks"] == 1

    clock.advance(seconds=31)
    assert (await client.get(f"/{short_code}", follow_redirects=False)).status_code == 410
    assert (await client.get(f"/shorturls/{short_code}")).json()["totalClicks"] == 1
