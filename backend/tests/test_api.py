from decimal import Decimal

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import ALICE, OWNER
from lootvault.api.deps import get_engine
from lootvault.core.database import get_session
from lootvault.main import app

GOLD = ("fungible", "gold", 0, "100", 1)


@pytest_asyncio.fixture
async def client(session_factory, engine):
    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_engine] = lambda: engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _as(caller):
    return {"X-Caller-Address": caller}


async def _callback(client, engine, request_id, value, signature=None):
    if signature is None:
        signature = engine.randomness.sign(request_id, value)
    return await client.post(
        "/api/v1/randomness/callback",
        json={"request_id": request_id, "random_value": value, "signature": signature},
    )


async def test_create_and_read_box(client):
    resp = await client.post(
        "/api/v1/boxes",
        json={"name": "Epic Chest", "description": "epic", "price": "0.01", "max_supply": 100},
        headers=_as(OWNER),
    )
    assert resp.status_code == 201
    assert resp.json()["id"] == 0

    resp = await client.post(
        "/api/v1/boxes/0/rewards",
        json={"token_type": "unique", "token_address": "relic", "token_id": 7, "amount": "4", "weight": 10},
        headers=_as(OWNER),
    )
    assert resp.status_code == 201
    assert Decimal(resp.json()["amount"]) == 1

    box = (await client.get("/api/v1/boxes/0")).json()
    assert box["name"] == "Epic Chest"
    assert box["total_opened"] == 0
    assert box["is_active"] is True

    rewards = (await client.get("/api/v1/boxes/0/rewards")).json()
    assert [r["token_address"] for r in rewards] == ["relic"]
    assert (await client.get("/api/v1/boxes/0/total-weight")).json()["total_weight"] == 10
    assert len((await client.get("/api/v1/boxes")).json()) == 1


async def test_catalog_errors_map_to_status_codes(client, make_box):
    resp = await client.post(
        "/api/v1/boxes", json={"name": "Chest", "price": "1"}, headers=_as(ALICE)
    )
    assert resp.status_code == 403

    assert (await client.get("/api/v1/boxes/9")).status_code == 404

    box_id = await make_box()
    resp = await client.post(
        f"/api/v1/boxes/{box_id}/rewards",
        json={"token_type": "fungible", "token_address": "gold", "amount": "1", "weight": 0},
        headers=_as(OWNER),
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"/api/v1/boxes/{box_id}/rewards",
        json={"token_type": "erc404", "token_address": "gold", "weight": 1},
        headers=_as(OWNER),
    )
    assert resp.status_code == 422


async def test_price_and_active_updates(client, make_box):
    box_id = await make_box(rewards=[GOLD])
    resp = await client.patch(f"/api/v1/boxes/{box_id}/price", json={"price": "2"}, headers=_as(OWNER))
    assert Decimal(resp.json()["price"]) == 2

    resp = await client.patch(f"/api/v1/boxes/{box_id}/active", json={"active": False}, headers=_as(OWNER))
    assert resp.json()["is_active"] is False

    resp = await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "2"}, headers=_as(ALICE))
    assert resp.status_code == 409


async def test_open_and_fulfill_over_http(client, engine, make_box, stock):
    box_id = await make_box(rewards=[GOLD])
    await stock("fungible", "gold", 0, "1000")

    resp = await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "0.001"}, headers=_as(ALICE))
    assert resp.status_code == 400

    resp = await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "0.01"}, headers=_as(ALICE))
    assert resp.status_code == 202
    request_id = resp.json()["request_id"]
    assert resp.json()["status"] == "requested"

    resp = await _callback(client, engine, request_id, 77, signature="forged")
    assert resp.status_code == 401

    resp = await _callback(client, engine, request_id, 77)
    assert resp.status_code == 200
    assert resp.json() == {"request_id": request_id, "accepted": True, "status": "fulfilled"}

    # Replayed delivery is accepted and ignored
    resp = await _callback(client, engine, request_id, 78)
    assert resp.json()["status"] == "fulfilled"

    opened = (await client.get(f"/api/v1/opens/{request_id}")).json()
    assert opened["random_value"] == "77"
    assert opened["reward_position"] == 0

    resp = await client.get(f"/api/v1/boxes/{box_id}/opened/{ALICE}")
    assert resp.json()["opened"] == 1


async def test_callback_for_unknown_request(client, engine):
    resp = await _callback(client, engine, "nope", 1)
    assert resp.status_code == 200
    assert resp.json()["status"] is None
    assert (await client.get("/api/v1/opens/nope")).status_code == 404


async def test_failed_payout_and_admin_retry(client, engine, make_box, stock):
    box_id = await make_box(rewards=[("unique", "relic", 7, "1", 1)])
    resp = await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "0.01"}, headers=_as(ALICE))
    request_id = resp.json()["request_id"]

    resp = await _callback(client, engine, request_id, 5)
    assert resp.status_code == 409

    assert (await client.get("/api/v1/admin/opens?status=failed", headers=_as(ALICE))).status_code == 403
    failed = (await client.get("/api/v1/admin/opens?status=failed", headers=_as(OWNER))).json()
    assert [r["request_id"] for r in failed] == [request_id]

    await stock("unique", "relic", 7, "1")
    resp = await client.post(f"/api/v1/admin/opens/{request_id}/retry", headers=_as(OWNER))
    assert resp.status_code == 200
    assert resp.json()["status"] == "fulfilled"

    resp = await client.post(f"/api/v1/admin/opens/{request_id}/retry", headers=_as(OWNER))
    assert resp.status_code == 409


async def test_admin_withdrawals_and_expiry(client, make_box):
    box_id = await make_box(rewards=[GOLD])
    await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "0.01"}, headers=_as(ALICE))

    resp = await client.post("/api/v1/admin/withdraw/proceeds", json={"amount": "0.01"}, headers=_as(ALICE))
    assert resp.status_code == 403

    resp = await client.post("/api/v1/admin/withdraw/proceeds", json={"amount": "0.01"}, headers=_as(OWNER))
    assert resp.status_code == 200
    assert resp.json()["token_address"] == "native"

    resp = await client.post(
        "/api/v1/admin/withdraw/fungible", json={"token_address": "gold", "amount": "1"}, headers=_as(OWNER)
    )
    assert resp.status_code == 409

    resp = await client.post("/api/v1/admin/opens/expire", headers=_as(OWNER))
    assert resp.json() == {"expired": 0}


async def test_open_without_caller_header(client, make_box):
    box_id = await make_box(rewards=[GOLD], price="0")
    resp = await client.post(f"/api/v1/boxes/{box_id}/open", json={"payment": "0"})
    assert resp.status_code == 401


async def test_migrate_requires_owner(client):
    assert (await client.get("/migrate")).status_code == 403
    assert (await client.get("/migrate", headers=_as(ALICE))).status_code == 403


async def test_callback_rejects_oversized_random_value(client, engine):
    value = 2**256
    resp = await _callback(client, engine, "req-1", value)
    assert resp.status_code == 422
