import unittest
from datetime import datetime
from unittest import mock
from zoneinfo import ZoneInfo

from fastapi.testclient import TestClient

from torn_sentinel.analytics.pipeline import SentinelPipeline
from torn_sentinel.api import SentinelService, get_app

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=ZoneInfo("Asia/Jakarta")).timestamp()

client = TestClient(get_app())

ABROAD = {
    "player_id": 42,
    "money_onhand": 1_000_000,
    "travel": {"destination": "Japan", "time_left": 0},
}
YATA = {"stocks": {"jap": {"stocks": [{"id": 206, "name": "Xanax", "cost": 25000, "quantity": 40}]}}}


class ApiRoutesTest(unittest.TestCase):
    def setUp(self):
        self.service = SentinelService(SentinelPipeline(clock=lambda: NOW), clock=lambda: NOW)
        patcher = mock.patch("torn_sentinel.api.app.service", self.service)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_health_and_meta(self):
        health = client.get("/healthz")
        self.assertEqual(health.status_code, 200)
        self.assertEqual(health.json().get("status"), "ok")

        services = client.get("/v1/meta/services")
        self.assertEqual(services.status_code, 200)
        self.assertEqual(services.json()["services"], ["sentinel_api", "trade_tracker"])

    def test_ticks_detect_buy_and_update_summary(self):
        first = client.post(
            "/v1/accounts/42/ticks",
            json={"payload": ABROAD, "foreign_stock": YATA, "taken_at": NOW - 60},
        )
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()["baseline"])

        after_purchase = dict(ABROAD, money_onhand=750_000)
        second = client.post(
            "/v1/accounts/42/ticks",
            json={"payload": after_purchase, "foreign_stock": YATA, "taken_at": NOW},
        )
        body = second.json()
        self.assertTrue(body["persisted"])
        self.assertIsNone(body["error"])
        self.assertEqual(len(body["trades"]), 1)
        trade = body["trades"][0]
        self.assertEqual((trade["side"], trade["item_id"], trade["qty"]), ("BUY", 206, 10))
        self.assertEqual(trade["region"], "Japan")

        unmatched = client.get("/v1/accounts/42/trades/unmatched").json()
        self.assertEqual([buy["remaining"] for buy in unmatched["buys"]], [10])

        summary = client.get("/v1/accounts/42/trades/summary").json()
        self.assertEqual(summary["pending_buys"], 1)
        self.assertEqual(summary["completed_trades"], 0)

        activity = client.get("/v1/accounts/42/activity", params={"limit": 5}).json()
        self.assertEqual(activity["trades"][0]["record_id"], "buy_1")
        self.assertIn("wallet_change", [event["type"] for event in activity["events"]])

        profit = client.get("/v1/accounts/42/profit").json()
        self.assertEqual(profit["expense"]["travel_buy"], 250_000.0)
        self.assertEqual(profit["net"], -250_000.0)

        cleared = client.delete("/v1/accounts/42/trades")
        self.assertEqual(cleared.status_code, 200)
        self.assertEqual(client.get("/v1/accounts/42/trades/unmatched").json()["buys"], [])

    def test_alert_lifecycle(self):
        created = client.post(
            "/v1/accounts/42/alerts", json={"item_id": 206, "country": "jap", "item_name": "Xanax"}
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["alerts"][0]["country"], "Japan")

        duplicate = client.post("/v1/accounts/42/alerts", json={"item_id": 206, "country": "Japan"})
        self.assertEqual(duplicate.status_code, 409)

        empty = {"stocks": {"jap": {"stocks": [{"id": 206, "name": "Xanax", "cost": 830000, "quantity": 0}]}}}
        stocked = {"stocks": {"jap": {"stocks": [{"id": 206, "name": "Xanax", "cost": 830000, "quantity": 6}]}}}
        client.post(
            "/v1/accounts/42/alerts/evaluate",
            json={"destination": "Japan", "time_left": 0, "foreign_stock": empty, "now": NOW},
        )
        evaluated = client.post(
            "/v1/accounts/42/alerts/evaluate",
            json={"destination": "Japan", "time_left": 0, "foreign_stock": stocked, "now": NOW + 60},
        ).json()
        evaluation = evaluated["evaluations"][0]
        self.assertTrue(evaluation["fired"])
        self.assertEqual(evaluation["state"], "COOLDOWN")
        self.assertEqual(evaluation["trigger"]["quantity"], 6)

        listed = client.get("/v1/accounts/42/alerts").json()
        self.assertEqual(listed["alerts"][0]["state"], "COOLDOWN")

        removed = client.delete("/v1/accounts/42/alerts/206")
        self.assertEqual(removed.status_code, 200)
        missing = client.delete("/v1/accounts/42/alerts/206")
        self.assertEqual(missing.status_code, 404)

    def test_invalid_alert_request(self):
        response = client.post("/v1/accounts/42/alerts", json={"item_id": 0, "country": "Japan"})
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
