"""Analytics endpoint behavior tests."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/shorturls", json={"url": "https://www.google.com", "shortcode": "goog1"})
    assert create_resp.status_code == 201

    response = await client.get("/shorturls/goog1")
    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"shortcode", "originalUrl", "createdAt", "expiry", "totalClicks", "clicks"}
    assert data["shortcode"] == "goog1"
    assert data["originalUrl"] == "https://www.google.com"
    assert data["totalClicks"] == 0
    assert data["clicks"] == []
    assert data["expiry"] == create_resp.json()["expiry"]


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/shorturls/nonexistent")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats_after_clicks(client: AsyncClient, clock) -> None:
    await client.post("/shorturls", json={"url": "https://www.example.com", "shortcode": "exmpl"})

    for _ in range(5):
        clock.advance(seconds=1)
        await client.get("/exmpl", follow_redirects=False)

    response = await client.get("/shorturls/exmpl")
    assert response.status_code == 200
    data = response.json()
    assert data["totalClicks"] == 5
    assert len(data["clicks"]) == 5
    assert set(data["clicks"][0]) == {"timestamp", "referrer", "location"}
    timestamps = [c["timestamp"] for c in data["clicks"]]
    assert timestamps == sorted(timestamps)


@pytest.mark.asyncio
async def test_stats_available_after_expiry(client: AsyncClient, clock) -> None:
    await client.post("/shorturls", json={"url": "https://www.example.com", "shortcode": "old123", "validity": 1})
    clock.advance(hours=1)

    response = await client.get("/shorturls/old123")
    assert response.status_code == 200
    assert response.json()["totalClicks"] == 0
