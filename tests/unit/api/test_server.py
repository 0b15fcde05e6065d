# tests/unit/api/test_server.py — v1
"""Tests for api/server.py — HTTP surface via FastAPI TestClient."""

from __future__ import annotations

import asyncio
import json
import time

import pytest
from fastapi.testclient import TestClient

from pokefusion.api.server import create_app
from pokefusion.config.settings import Settings
from pokefusion.pipeline.orchestrator import FusionOrchestrator

BODY = {
    "pokemon1Name": "Pikachu",
    "pokemon2Name": "Charmander",
    "pokemon1ImageUrl": "https://img.example/pikachu.png",
    "pokemon2ImageUrl": "https://img.example/charmander.png",
    "fusionName": "Pikamander",
    "pokemon1Id": 25,
    "pokemon2Id": 4,
}
AUTH = {"X-User-Id": "u1"}


@pytest.fixture
def client(fast_config, stub_providers, funded_store, tmp_path):
    settings = Settings(_env_file=None, store_root=tmp_path / "unused", sse_keepalive_s=0.5)
    orch = FusionOrchestrator(fast_config, stub_providers, funded_store)
    with TestClient(create_app(settings, orchestrator=orch)) as c:
        yield c


def _sse_events(text: str) -> list[dict]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in text.split("\n\n")
        if chunk.startswith("data: ")
    ]


class TestAuthAndValidation:
    def test_missing_identity_is_401(self, client):
        assert client.post("/api/generate", json=BODY).status_code == 401
        assert client.get("/api/credits/balance").status_code == 401

    def test_invalid_body_is_400(self, client):
        bad = dict(BODY, pokemon1ImageUrl="   ")
        assert client.post("/api/generate", json=bad, headers=AUTH).status_code == 400
        missing = {k: v for k, v in BODY.items() if k != "fusionName"}
        assert client.post("/api/generate", json=missing, headers=AUTH).status_code == 400

    def test_non_json_body_is_400(self, client):
        resp = client.post("/api/generate", content=b"not json", headers=AUTH)
        assert resp.status_code == 400

    def test_zero_balance_is_402(self, client, stub_providers):
        resp = client.post("/api/generate", json=BODY, headers={"X-User-Id": "broke"})
        assert resp.status_code == 402
        assert resp.json()["paymentRequired"] is True
        stub_providers.blend.blend.assert_not_awaited()

    def test_stream_zero_balance_is_402_not_a_stream(self, client):
        resp = client.post("/api/generate/stream", json=BODY, headers={"X-User-Id": "broke"})
        assert resp.status_code == 402


class TestGenerate:
    def test_blocking_generate(self, client):
        resp = client.post("/api/generate", json=BODY, headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()
        assert data["finalUrl"] == "https://cdn.example/enhanced.png"
        assert data["isLocalFallback"] is False
        assert data["fusionName"] == "Pikamander"
        assert [s["stage"] for s in data["stages"]] == ["blend", "describe", "enhance"]
        assert client.get("/api/credits/balance", headers=AUTH).json() == {"balance": 4}

    def test_stream_emits_ordered_events_and_terminal(self, client):
        resp = client.post("/api/generate/stream", json=BODY, headers=AUTH)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        events = _sse_events(resp.text)
        assert [e["sequence"] for e in events] == list(range(len(events)))
        assert [(e["stage"], e["status"]) for e in events[:2]] == [("blend", "started"), ("blend", "succeeded")]
        terminal = events[-1]
        assert (terminal["stage"], terminal["status"]) == ("pipeline", "completed")
        assert terminal["data"]["finalUrl"] == "https://cdn.example/enhanced.png"

    def test_start_then_poll(self, client):
        resp = client.post("/api/generate/start", json=BODY, headers=AUTH)
        assert resp.status_code == 202
        poll_url = resp.json()["pollUrl"]

        deadline = time.monotonic() + 5
        snap = client.get(poll_url, headers=AUTH).json()
        while not snap["done"] and time.monotonic() < deadline:
            time.sleep(0.02)
            snap = client.get(poll_url, headers=AUTH).json()

        assert snap["done"] is True
        assert snap["outcome"]["finalUrl"] == "https://cdn.example/enhanced.png"
        rest = client.get(poll_url, params={"cursor": snap["nextCursor"]}, headers=AUTH).json()
        assert rest["events"] == []

    def test_poll_other_users_run_is_404(self, client):
        resp = client.post("/api/generate/start", json=BODY, headers=AUTH)
        poll_url = resp.json()["pollUrl"]
        assert client.get(poll_url, headers={"X-User-Id": "intruder"}).status_code == 404
        assert client.get("/api/prediction/unknown", headers=AUTH).status_code == 404


class TestCreditsAndGallery:
    def test_refund_of_delivered_fusion_is_409(self, client):
        for _ in range(3):
            data = client.post("/api/generate", json=BODY, headers=AUTH).json()
            resp = client.post("/api/credits/refund", json={"correlationId": data["correlationId"]}, headers=AUTH)
            assert resp.status_code == 409
        assert client.get("/api/credits/balance", headers=AUTH).json() == {"balance": 2}
        assert len(client.get("/api/fusions", headers=AUTH).json()["fusions"]) == 3

    def test_refund_when_record_lost(self, client, funded_store):
        data = client.post("/api/generate", json=BODY, headers=AUTH).json()
        asyncio.run(funded_store.delete_fusion(data["fusionId"]))
        resp = client.post("/api/credits/refund", json={"correlationId": data["correlationId"]}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json() == {"balance": 5}

    def test_refund_unknown_run_is_404(self, client):
        resp = client.post("/api/credits/refund", json={"correlationId": "nope"}, headers=AUTH)
        assert resp.status_code == 404

    def test_gallery_is_per_user(self, client):
        data = client.post("/api/generate", json=BODY, headers=AUTH).json()
        listing = client.get("/api/fusions", headers=AUTH).json()["fusions"]
        assert [f["record_id"] for f in listing] == [data["fusionId"]]
        assert client.get(f"/api/fusions/{data['fusionId']}", headers=AUTH).status_code == 200
        assert client.get(f"/api/fusions/{data['fusionId']}", headers={"X-User-Id": "u2"}).status_code == 404
        assert client.get("/api/fusions", headers={"X-User-Id": "u2"}).json()["fusions"] == []

    def test_signup_credits_granted_once(self, fast_config, stub_providers, json_store, tmp_path):
        settings = Settings(_env_file=None, store_root=tmp_path, signup_credits=3)
        orch = FusionOrchestrator(fast_config, stub_providers, json_store)
        with TestClient(create_app(settings, orchestrator=orch)) as c:
            headers = {"X-User-Id": "newbie"}
            assert c.get("/api/credits/balance", headers=headers).json() == {"balance": 3}
            assert c.get("/api/credits/balance", headers=headers).json() == {"balance": 3}

    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"
