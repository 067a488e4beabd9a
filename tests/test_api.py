"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from battle_arena.api import create_app
from battle_arena.core.config import ArenaConfig
from battle_arena.services.llm import FakeLLMClient
from battle_arena.services.storage import MemoryRankingStore

C1_WINS = json.dumps({"winner": "character1", "narrative": "Character 1 prevails."})


class _NoHistoryStore(MemoryRankingStore):
    async def lpush(self, key, *values):
        raise ConnectionError("store unavailable")


class _UnreadableStore(MemoryRankingStore):
    async def hgetall(self, key):
        raise ConnectionError("store unavailable")


def _headers(owner: str) -> dict[str, str]:
    return {"X-Owner-Id": owner}


@pytest.fixture
def api(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    client = FakeLLMClient(responses=[C1_WINS] * 10)
    app = create_app(ArenaConfig(seed=1), store=MemoryRankingStore(), client=client)
    return TestClient(app)


def _create(api: TestClient, owner: str, name: str = "Hero", **extra) -> dict:
    response = api.post(
        "/character",
        json={"name": name, "traits": f"{name} traits", **extra},
        headers=_headers(owner),
    )
    assert response.status_code == 200, response.text
    return response.json()["character"]


class TestCharacters:
    """Tests for character endpoints."""

    def test_requires_owner_header(self, api):
        response = api.post("/character", json={"name": "A", "traits": "t"})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_create_and_get(self, api):
        created = _create(api, "0xABC", "Alice", league="veteran")

        assert created["owner"] == "0xabc"
        assert created["elo"] == 1000
        assert created["league"] == "veteran"
        assert created["id"].startswith("0xabc_")

        response = api.get(f"/character/{created['id']}")
        assert response.json()["character"] == created

    def test_missing_fields(self, api):
        response = api.post("/character", json={"name": "A"}, headers=_headers("u1"))
        assert response.status_code == 400
        assert response.json() == {"error": "Name and traits are required"}

    def test_list_by_owner(self, api):
        created = _create(api, "u1")
        assert api.get("/characters", params={"owner": "u1"}).json() == {"characters": [created]}
        assert api.get("/characters", headers=_headers("u1")).json() == {"characters": [created]}
        assert api.get("/characters").status_code == 400

    def test_delete(self, api):
        created = _create(api, "u1")

        assert api.delete(f"/character/{created['id']}", headers=_headers("u2")).status_code == 403
        response = api.delete(f"/character/{created['id']}", headers=_headers("u1"))
        assert response.json() == {"success": True}
        assert api.get(f"/character/{created['id']}").status_code == 404

    def test_update_traits(self, api):
        created = _create(api, "u1")
        url = f"/character/{created['id']}/traits"

        response = api.post(url, json={"traits": "new"}, headers=_headers("u1"))
        assert response.status_code == 200
        body = response.json()
        assert body["previousElo"] == 1000
        assert body["character"]["elo"] == 750
        assert body["character"]["traits"] == "new"

        response = api.post(url, json={"traits": "again"}, headers=_headers("u1"))
        assert response.status_code == 429
        assert response.json()["remainingTime"] > 0


class TestBattleEndpoint:
    """Tests for POST /battle."""

    def test_battle(self, api):
        a = _create(api, "a", "Alice")
        b = _create(api, "b", "Boris")

        response = api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["battle"]["character1"] == a["id"]
        assert body["battle"]["character2"] == b["id"]
        assert body["battle"]["winner"] == a["id"]
        assert body["battle"]["isDraw"] is False
        assert body["battle"]["explanation"] == "Character 1 prevails."
        assert body["updatedStats"]["winner"]["elo"] == 1016
        assert body["updatedStats"]["loser"]["elo"] == 984

    def test_cooldown_rejection(self, api):
        a = _create(api, "a")
        _create(api, "b")
        api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        response = api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Character is on cooldown"
        assert 0 < body["remainingTime"] <= 180
        assert response.headers["Retry-After"] == str(body["remainingTime"])

    def test_missing_character_id(self, api):
        response = api.post("/battle", json={}, headers=_headers("a"))
        assert response.status_code == 400
        assert response.json() == {"error": "Character ID is required"}

    def test_not_owner(self, api):
        a = _create(api, "a")
        response = api.post("/battle", json={"characterId": a["id"]}, headers=_headers("b"))
        assert response.status_code == 403
        assert response.json() == {"error": "Not authorized to use this character"}

    def test_unknown_character(self, api):
        response = api.post("/battle", json={"characterId": "x_1"}, headers=_headers("a"))
        assert response.status_code == 404
        assert response.json() == {"error": "Character not found"}

    def test_no_opponents(self, api):
        a = _create(api, "a")
        response = api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))
        assert response.status_code == 404
        assert response.json() == {"error": "No opponents available"}

    def test_persistence_failure_is_opaque(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        app = create_app(ArenaConfig(seed=1), store=_NoHistoryStore(), client=FakeLLMClient())
        api = TestClient(app)
        a = _create(api, "a")
        _create(api, "b")

        response = api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_store_read_failure_is_opaque(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        app = create_app(ArenaConfig(seed=1), store=_UnreadableStore(), client=FakeLLMClient())
        api = TestClient(app, raise_server_exceptions=False)

        for response in (
            api.get("/character/a_1"),
            api.post("/battle", json={"characterId": "a_1"}, headers=_headers("a")),
        ):
            assert response.status_code == 500
            assert response.headers["content-type"] == "application/json"
            assert response.json() == {"error": "Internal server error"}


class TestBattleQueries:
    """Tests for GET /battle and GET /cooldown."""

    def test_lookup_and_history(self, api):
        a = _create(api, "a")
        _create(api, "b")
        battle = api.post(
            "/battle", json={"characterId": a["id"]}, headers=_headers("a")
        ).json()["battle"]

        assert api.get("/battle", params={"id": battle["id"]}).json() == {"battle": battle}
        assert api.get("/battle", params={"characterId": a["id"]}).json() == {"battles": [battle]}
        assert api.get("/battle", params={"address": "a"}).json() == {"battles": [battle]}

    def test_unknown_battle(self, api):
        response = api.get("/battle", params={"id": "battle:0-none"})
        assert response.status_code == 404
        assert response.json() == {"error": "Battle not found"}

    def test_requires_a_target(self, api):
        assert api.get("/battle").status_code == 400

    def test_cooldown_status(self, api):
        a = _create(api, "a")
        _create(api, "b")
        assert api.get("/cooldown", params={"characterId": a["id"]}).json() == {"cooldown": 0}

        api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        cooldown = api.get("/cooldown", params={"characterId": a["id"]}).json()["cooldown"]
        assert 0 < cooldown <= 180


class TestRankingEndpoints:
    """Tests for leaderboard endpoints."""

    def test_league_leaderboard(self, api):
        a = _create(api, "a", "Alice")
        b = _create(api, "b", "Boris")
        api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        body = api.get("/ranking", params={"league": "general"}).json()

        assert body["total"] == 2
        assert [(r["rank"], r["id"], r["elo"]) for r in body["rankings"]] == [
            (1, a["id"], 1016),
            (2, b["id"], 984),
        ]

    def test_unknown_league(self, api):
        response = api.get("/ranking", params={"league": "nope"})
        assert response.status_code == 400

    def test_user_ranking(self, api):
        a = _create(api, "a", "Alice")
        _create(api, "b", "Boris")
        api.post("/battle", json={"characterId": a["id"]}, headers=_headers("a"))

        body = api.get("/ranking/user", headers=_headers("b")).json()
        assert body["league"] == "general"
        assert body["ranking"]["rank"] == 2
        assert body["ranking"]["characterName"] == "Boris"

        body = api.get("/ranking/user", params={"league": "veteran"}, headers=_headers("b")).json()
        assert body["ranking"] is None

    def test_health(self, api):
        assert api.get("/health").json() == {"status": "healthy"}
