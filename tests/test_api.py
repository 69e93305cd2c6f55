"""Tests for the HTTP API."""

import httpx
import pytest
import pytest_asyncio

from compscout.api.deps import get_database
from compscout.ingest.quota import FamilyQuotaTracker
from compscout.main import app


@pytest_asyncio.fixture
async def client(db_session):
    async def override_database():
        yield db_session

    app.dependency_overrides[get_database] = override_database
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_family_report(client, db_session):
    await FamilyQuotaTracker(db_session).get_or_create_family("Seiko", "Prospex")

    resp = await client.get("/api/families/report")

    assert resp.status_code == 200
    data = resp.json()
    assert data["total_families"] == 1
    assert data["library_ready"] is False
    assert data["families"][0]["display_name"] == "Seiko Prospex"
    assert data["families"][0]["below_minimum"] is True


@pytest.mark.asyncio
async def test_clean_comps_with_guidance(client):
    comps = [{"sold_price": p, "title": "Seiko Prospex watch"} for p in (10, 20, 30, 40, 50, 60, 70, 80)]
    comps.append({"sold_price": 5, "title": "Seiko Prospex for parts"})

    resp = await client.post("/api/comps/clean", json={"comps": comps, "search_query": "seiko prospex"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["median_price"] == 45.0
    assert data["comp_count"] == 4
    assert data["confidence"] == "low"
    assert data["reason_code"] == "low_confidence"
    assert len(data["comps"]) == 8
    # raw = 45 - 6.75 - 5 - 11.25 = 22; floor(22 * 0.8) = 17
    assert data["guidance"]["max_buy"] == 17


@pytest.mark.asyncio
async def test_clean_comps_guidance_override(client):
    comps = [{"sold_price": 100, "title": "Tissot PRX"} for _ in range(4)]
    resp = await client.post(
        "/api/comps/clean",
        json={"comps": comps, "guidance": {"fixed_costs": 0, "target_margin": 0}},
    )

    # raw = 100 - 15 = 85; floor(85 * 0.8) = 68
    assert resp.json()["guidance"]["max_buy"] == 68


@pytest.mark.asyncio
async def test_clean_no_comps(client):
    resp = await client.post("/api/comps/clean", json={"comps": []})

    data = resp.json()
    assert data["success"] is False
    assert data["reason_code"] == "no_comps"
    assert data["median_price"] is None
    assert data["guidance"]["max_buy"] is None
    assert data["guidance"]["reason_code"] == "cleaning_failed"


@pytest.mark.asyncio
async def test_clean_rejects_negative_price(client):
    resp = await client.post("/api/comps/clean", json={"comps": [{"sold_price": -1}]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_comp_query(client):
    resp = await client.post("/api/comps/query", json={"title": "Seiko Prospex Automatic 42mm Men's Diver"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["query"] == "seiko prospex automatic 42mm"
    assert data["identifiers"]["brand"] == "seiko"
    assert data["identifiers"]["demographic"] == "mens"
    assert data["accessory_prone"] is False
