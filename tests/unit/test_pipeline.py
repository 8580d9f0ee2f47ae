import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock
from zoneinfo import ZoneInfo

from torn_sentinel.analytics.pipeline import SentinelPipeline
from torn_sentinel.etl.models import (
    ActivityType,
    AlertState,
    Listing,
    Snapshot,
    StockItem,
    TradeSide,
    TravelStatus,
)
from torn_sentinel.ingestion.json_store import JsonDocument, PersistenceError

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=ZoneInfo("Asia/Jakarta")).timestamp()
JAPAN_STOCK = {"Japan": [StockItem(item_id=206, name="Xanax", unit_price=25_000.0, quantity=50)]}


def _snap(offset: float, cash: float, location: str = "Torn", **extra) -> Snapshot:
    return Snapshot(account_id="42", taken_at=T0 + offset, cash=cash, location=location, **extra)


class SentinelPipelineTests(unittest.TestCase):
    def setUp(self):
        self.now = T0
        self.pipeline = SentinelPipeline(clock=lambda: self.now)

    def test_first_tick_is_baseline(self):
        result = self.pipeline.run_tick(_snap(0, 1_000_000.0, "Japan"))
        self.assertTrue(result.baseline)
        self.assertEqual(result.events, ())
        self.assertEqual(result.trades, ())
        self.assertTrue(result.ok)

    def test_buy_then_sell_flows_into_ledger_and_profit(self):
        self.pipeline.run_tick(_snap(0, 1_000_000.0, "Japan"), JAPAN_STOCK)
        bought = self.pipeline.run_tick(_snap(60, 750_000.0, "Japan"), JAPAN_STOCK)

        self.assertEqual([trade.side for trade in bought.trades], [TradeSide.BUY])
        self.assertEqual(bought.trades[0].record_id, "buy_1")
        self.assertEqual(self.pipeline.ledger.buys("42")[0].qty, 10)

        listing = Listing(
            source="market", listing_id="market:1", item_id=206,
            unit_price=30_000.0, quantity=10, item_name="Xanax",
        )
        self.pipeline.run_tick(_snap(4000, 750_000.0, listings=(listing,)))
        sold = self.pipeline.run_tick(_snap(4060, 1_035_000.0))

        self.assertEqual([trade.side for trade in sold.trades], [TradeSide.SELL])
        summary = self.pipeline.ledger.summary("42")
        self.assertEqual(summary.completed_trades, 1)
        self.assertAlmostEqual(summary.total_profit, 35_000.0)

        daily = self.pipeline.profit.ledger("42", now=T0 + 4060)
        self.assertEqual(daily.expense["travel_buy"], 250_000.0)
        self.assertAlmostEqual(daily.income["travel"], 285_000.0)
        self.assertAlmostEqual(daily.expense["tax"], 15_000.0)

        history = self.pipeline.recent_trades("42")
        self.assertEqual([trade.side for trade in history], [TradeSide.SELL, TradeSide.BUY])
        kinds = {event.type for event in self.pipeline.recent_events("42")}
        self.assertIn(ActivityType.WALLET_CHANGE, kinds)

    def test_hard_failure_rolls_back_whole_tick(self):
        self.pipeline.run_tick(_snap(0, 1_000_000.0, "Japan"), JAPAN_STOCK)
        with mock.patch.object(
            self.pipeline.profit, "apply_trade", side_effect=RuntimeError("boom")
        ):
            result = self.pipeline.run_tick(_snap(60, 750_000.0, "Japan"), JAPAN_STOCK)

        self.assertEqual(result.error, "boom")
        self.assertEqual(result.trades, ())
        self.assertEqual(self.pipeline.ledger.buys("42"), [])
        self.assertEqual(self.pipeline.recent_events("42"), [])
        self.assertEqual(self.pipeline.snapshots.current("42").taken_at, T0)

        retried = self.pipeline.run_tick(_snap(60, 750_000.0, "Japan"), JAPAN_STOCK)
        self.assertEqual(len(retried.trades), 1)

    def test_persistence_failure_keeps_result_and_flush_retries(self):
        with tempfile.TemporaryDirectory() as tmp:
            pipeline = SentinelPipeline(tmp, clock=lambda: self.now)
            pipeline.run_tick(_snap(0, 1_000_000.0, "Japan"), JAPAN_STOCK)

            with mock.patch.object(
                JsonDocument, "write", side_effect=PersistenceError("disk full")
            ):
                result = pipeline.run_tick(_snap(60, 750_000.0, "Japan"), JAPAN_STOCK)

            self.assertFalse(result.persisted)
            self.assertEqual(len(result.trades), 1)
            self.assertTrue(pipeline.ledger.dirty)

            self.assertTrue(pipeline.flush())
            stored = json.loads((Path(tmp) / "trade_ledger.json").read_text(encoding="utf-8"))
            self.assertEqual(len(stored["42"]["buys"]), 1)

            reopened = SentinelPipeline(tmp, clock=lambda: self.now)
            self.assertEqual(reopened.snapshots.current("42").cash, 750_000.0)
            self.assertEqual(reopened.ledger.buys("42")[0].qty, 10)

    def test_detector_state_carries_across_ticks(self):
        self.pipeline.run_tick(_snap(0, 1_000_000.0))
        first = self.pipeline.run_tick(_snap(10, 900_000.0))
        second = self.pipeline.run_tick(_snap(20, 800_000.0))
        self.assertEqual([e.type for e in first.events], [ActivityType.WALLET_CHANGE])
        self.assertEqual(second.events, ())

    def test_alert_evaluation_logs_triggers(self):
        self.pipeline.alerts.add_rule("42", 206, "Japan", item_name="Xanax")
        travel = TravelStatus(destination="Japan", time_left=0)
        empty = {"Japan": [StockItem(item_id=206, name="Xanax", unit_price=830_000.0, quantity=0)]}
        stocked = {"Japan": [StockItem(item_id=206, name="Xanax", unit_price=830_000.0, quantity=8)]}

        self.pipeline.evaluate_alerts("42", travel, empty, now=T0)
        evaluations = self.pipeline.evaluate_alerts("42", travel, stocked, now=T0 + 60)

        self.assertTrue(evaluations[0].fired)
        self.assertEqual(self.pipeline.alerts.rules_for("42")[0].state, AlertState.COOLDOWN)
        triggers = self.pipeline.recent_triggers("42")
        self.assertEqual([trigger.quantity for trigger in triggers], [8])

    def test_accounts_do_not_share_state(self):
        self.pipeline.run_tick(_snap(0, 1_000_000.0, "Japan"), JAPAN_STOCK)
        other = Snapshot(account_id="7", taken_at=T0 + 60, cash=750_000.0, location="Japan")
        result = self.pipeline.run_tick(other, JAPAN_STOCK)
        self.assertTrue(result.baseline)
        self.assertEqual(result.trades, ())


if __name__ == "__main__":
    unittest.main()
