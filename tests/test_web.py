"""Tests for the FastAPI intent gateway."""

import json

from fastapi.testclient import TestClient

from player_economy.web import app


def player(player_id: str, level: int = 20) -> dict:
    return {"player_id": player_id, "level": level, "area_id": "town_square"}


class TestGateway:
    def setup_method(self):
        self.client_cm = TestClient(app)
        self.client = self.client_cm.__enter__()
        self.client.post("/reset")

    def teardown_method(self):
        self.client_cm.__exit__(None, None, None)

    def test_sample_state(self):
        trades = self.client.get("/trades").json()
        assert len(trades["active"]) == 1
        assert trades["active"][0]["status"] == "pending"

        auctions = self.client.get("/auctions", params={"active_only": True}).json()["auctions"]
        assert len(auctions) == 1
        assert auctions[0]["item"]["item_id"] == "magic_ring"

    def test_prices(self):
        prices = self.client.get("/prices").json()["prices"]
        assert set(prices) == {"health_potion", "mana_potion", "iron_sword", "magic_ring"}

    def test_channels(self):
        channels = {c["channel_id"]: c for c in self.client.get("/channels").json()["channels"]}
        assert channels["whisper"]["max_participants"] == 2

    def test_player(self):
        body = self.client.get("/players/alice").json()
        assert body["balance"] == {"gold": "1000"}
        # Three potions are offered in the seeded trade but not yet moved
        assert body["inventory"]["health_potion"] == 10

    def test_bid_intent(self):
        auction_id = self.client.get("/auctions").json()["auctions"][0]["auction_id"]
        response = self.client.post(
            "/intents/auction.bid",
            json={"auction_id": auction_id, "bidder": player("bob"), "amount": "450"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["value"]["current_bid"] == "450"
        assert self.client.get("/players/bob").json()["balance"]["gold"] == "1050"

    def test_rejected_intent(self):
        auction_id = self.client.get("/auctions").json()["auctions"][0]["auction_id"]
        response = self.client.post(
            "/intents/auction.bid",
            json={"auction_id": auction_id, "bidder": player("bob"), "amount": "100"},
        )
        assert response.status_code == 409
        body = response.json()
        assert body["ok"] is False
        assert body["error"] == "BidTooLow"
        assert body["code"] == 2003

    def test_unknown_intent(self):
        response = self.client.post("/intents/auction.steal", json={})
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidRequest"

    def test_not_found(self):
        response = self.client.post(
            "/intents/trade.complete", json={"trade_id": "00000000-0000-0000-0000-000000000000"}
        )
        assert response.status_code == 404

    def test_trade_flow(self):
        trade_id = self.client.get("/trades").json()["active"][0]["trade_id"]
        accepted = self.client.post("/intents/trade.accept", json={"trade_id": trade_id, "player_id": "bob"})
        assert accepted.json()["value"]["status"] == "accepted"

        wrong = self.client.post("/intents/trade.cancel", json={"trade_id": trade_id, "player_id": "bob"})
        assert wrong.status_code == 403

        done = self.client.post("/intents/trade.complete", json={"trade_id": trade_id})
        assert done.json()["value"]["status"] == "completed"
        history = self.client.get("/trades", params={"player_id": "alice"}).json()["history"]
        assert [t["status"] for t in history] == ["completed"]

        reputation = self.client.get("/reputation/alice").json()
        assert reputation["reputation"] == 10.0
        assert reputation["tier"] == "Neutral"

    def test_search(self):
        response = self.client.post("/intents/market.search", json={"query": "ring"})
        results = response.json()["value"]
        assert [r["kind"] for r in results] == ["auction"]

    def test_tick(self):
        body = self.client.post("/tick").json()
        assert set(body) == {"fired", "timed_out", "expired", "elapsed_ms"}


class TestSnapshotPersistence:
    def test_state_survives_restart(self, monkeypatch, tmp_path):
        path = tmp_path / "economy.json"
        monkeypatch.setenv("ECONOMY_SNAPSHOT_PATH", str(path))

        with TestClient(app) as client:
            response = client.post(
                "/intents/reputation.update", json={"player_id": "dave", "change": 250, "reason": "quest"}
            )
            assert response.json()["value"] == 250.0
        assert json.loads(path.read_text())["reputation"]["dave"] == 250.0

        with TestClient(app) as client:
            body = client.get("/reputation/dave").json()
            assert body["reputation"] == 250.0
            assert body["tier"] == "Liked"

    def test_malformed_snapshot_keeps_sample_state(self, monkeypatch, tmp_path):
        path = tmp_path / "economy.json"
        path.write_text(json.dumps({"trade_history": {"x": {"trade_id": "nope"}}}))
        monkeypatch.setenv("ECONOMY_SNAPSHOT_PATH", str(path))

        with TestClient(app) as client:
            assert len(client.get("/trades").json()["active"]) == 1
