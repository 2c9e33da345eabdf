"""Integration tests for the items and roll API endpoints."""

import json

import pytest
from httpx import AsyncClient

from quickroll.infra.ws_manager import ws_manager


async def create_actor(client: AsyncClient, **overrides) -> dict:
    body = {"name": "Hero", "abilities": {"str": 3, "dex": 2}, "proficiency": 2}
    body.update(overrides)
    resp = await client.post("/api/actors", json=body)
    assert resp.status_code == 200
    return resp.json()


async def create_sword(client: AsyncClient, actor_id: str, **overrides) -> dict:
    body = {
        "name": "Longsword",
        "item_type": "weapon",
        "action_type": "mwak",
        "proficient": True,
        "system": {
            "damage_parts": [{"formula": "1d8 + @mod", "damage_type": "slashing"}],
            "versatile_formula": "1d10 + @mod",
        },
    }
    body.update(overrides)
    resp = await client.post(f"/api/actors/{actor_id}/items", json=body)
    assert resp.status_code == 200
    return resp.json()


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["engine"] == "quickroll-core"


@pytest.mark.asyncio
async def test_create_actor_and_item(client: AsyncClient):
    actor = await create_actor(client)
    assert actor["abilities"]["str"] == 3

    item = await create_sword(client, actor["id"])
    assert item["actor_id"] == actor["id"]
    assert item["flags"]["quick_attack"] == {"primary": True, "alternate": True}
    assert item["flags"]["quick_damage"]["primary"] == [True]

    resp = await client.get(f"/api/items/{item['id']}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Longsword"


@pytest.mark.asyncio
async def test_missing_resources_404(client: AsyncClient):
    assert (await client.get("/api/actors/nope")).status_code == 404
    assert (await client.get("/api/items/nope")).status_code == 404
    resp = await client.post("/api/actors/nope/items", json={"name": "X", "item_type": "loot"})
    assert resp.status_code == 404
    resp = await client.post("/api/items/nope/roll", json={})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_roll_item_preset(client: AsyncClient, dice):
    actor = await create_actor(client)
    item = await create_sword(client, actor["id"])
    dice.script(15, 6)

    resp = await client.post(f"/api/items/{item['id']}/roll", json={})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    attack, damage = data["message"]["fragments"]
    assert attack["kind"] == "attack"
    assert attack["total"] == 20
    assert damage["base"]["total"] == 9
    assert data["message"]["is_crit"] is False


@pytest.mark.asyncio
async def test_roll_explicit_fields_skips_unknown(client: AsyncClient, dice):
    actor = await create_actor(client)
    item = await create_sword(client, actor["id"])
    dice.script(7)

    resp = await client.post(
        f"/api/items/{item['id']}/roll",
        json={
            "fields": [
                {"kind": "damage", "index": 0, "force_versatile": True},
                {"kind": "bogus"},
                {"kind": "text", "content": "Swings wide."},
            ],
            "params": {"properties": False},
        },
    )
    data = resp.json()
    kinds = [f["kind"] for f in data["message"]["fragments"]]
    assert kinds == ["damage", "text"]
    damage = data["message"]["fragments"][0]
    assert damage["versatile"] is True
    assert damage["base"]["total"] == 10
    assert data["message"]["properties"] is None


@pytest.mark.asyncio
async def test_roll_bad_formula_422(client: AsyncClient):
    actor = await create_actor(client)
    item = await create_sword(
        client, actor["id"], system={"damage_parts": [{"formula": "1d8 + ???"}]}
    )
    resp = await client.post(
        f"/api/items/{item['id']}/roll", json={"fields": [{"kind": "damage"}]}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_roll_consumes_and_denies(client: AsyncClient):
    actor = await create_actor(client)
    wand = await create_sword(
        client,
        actor["id"],
        name="Wand",
        item_type="equipment",
        action_type="",
        resources={"uses_value": 1, "uses_max": 1},
    )
    body = {"fields": [{"kind": "desc"}], "params": {"consumption": {"use_charge": True}}}

    first = (await client.post(f"/api/items/{wand['id']}/roll", json=body)).json()
    assert first["status"] == "completed"
    assert (await client.get(f"/api/items/{wand['id']}")).json()["resources"]["uses_value"] == 0

    second = (await client.post(f"/api/items/{wand['id']}/roll", json=body)).json()
    assert second["status"] == "aborted"
    assert second["error_kind"] == "resource_denied"


@pytest.mark.asyncio
async def test_roll_broadcasts_to_table(client: AsyncClient):
    actor = await create_actor(client)
    item = await create_sword(client, actor["id"])
    fake = FakeWebSocket()
    ws_manager._connections["table1"]["c1"] = fake
    try:
        resp = await client.post(
            f"/api/items/{item['id']}/roll",
            json={"table_id": "table1", "fields": [{"kind": "description"}]},
        )
        assert resp.status_code == 200
        assert len(fake.sent) == 1
        assert json.loads(fake.sent[0])["item_id"] == item["id"]
    finally:
        ws_manager.disconnect("table1", "c1")


@pytest.mark.asyncio
async def test_update_flags(client: AsyncClient):
    actor = await create_actor(client)
    item = await create_sword(client, actor["id"])
    resp = await client.put(
        f"/api/items/{item['id']}/flags",
        json={"quick_attack": {"primary": True, "alternate": False}, "crit_range": 19},
    )
    assert resp.status_code == 200
    flags = resp.json()["flags"]
    assert flags["quick_attack"] == {"primary": True, "alternate": False}
    assert flags["crit_range"] == 19
    assert flags["quick_damage"]["primary"] == [True]

    resp = await client.put("/api/items/nope/flags", json={})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_damage_resizes_toggles(client: AsyncClient):
    actor = await create_actor(client)
    item = await create_sword(client, actor["id"])
    resp = await client.put(
        f"/api/items/{item['id']}/damage",
        json={"parts": [{"formula": "1d8"}, {"formula": "1d6", "damage_type": "fire"}]},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert len(data["damage_parts"]) == 2
    assert data["flags"]["quick_damage"]["primary"] == [True, True]
    assert data["flags"]["quick_damage"]["context"] == [None, None]


@pytest.mark.asyncio
async def test_actor_rolls(client: AsyncClient, dice):
    actor = await create_actor(client, skills={"ath": 5})
    dice.script(11)
    resp = await client.post(
        f"/api/actors/{actor['id']}/rolls", json={"kind": "skill", "target": "ath"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "ATH Skill"
    assert data["fragments"][0]["total"] == 16

    resp = await client.post(
        f"/api/actors/{actor['id']}/rolls", json={"kind": "skill", "target": "nope"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_roll_formula(client: AsyncClient, dice):
    dice.script(2, 5)
    resp = await client.post("/api/roll", json={"formula": "2d6 + 3"})
    assert resp.status_code == 200
    assert resp.json()["total"] == 10

    resp = await client.post("/api/roll", json={"formula": "2d6 +"})
    assert resp.status_code == 422
