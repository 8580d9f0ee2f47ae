import tempfile
import unittest
from pathlib import Path

from torn_sentinel.analytics.trade_ledger import TradeLedger
from torn_sentinel.etl.models import DetectedTrade, SellRecord, TradeSide


class TradeLedgerTests(unittest.TestCase):
    def setUp(self):
        self.ledger = TradeLedger(market_tax=0.05, clock=lambda: 5000.0)

    def test_fifo_consumes_oldest_lot_first(self):
        lot_a = self.ledger.record_buy("42", 206, 10, 100.0, taken_at=1.0)
        lot_b = self.ledger.record_buy("42", 206, 10, 200.0, taken_at=2.0)

        sell = self.ledger.record_sell("42", 206, 15, 400.0, taken_at=3.0)

        self.assertEqual(sell.total_buy_cost, 2000.0)
        self.assertEqual(
            [(match.buy_id, match.match_qty) for match in sell.matched_buys],
            [(lot_a.id, 10), (lot_b.id, 5)],
        )
        self.assertFalse(sell.is_orphan)
        self.assertAlmostEqual(sell.gross_revenue, 6000.0)
        self.assertAlmostEqual(sell.tax, 300.0)
        self.assertAlmostEqual(sell.net_revenue, 5700.0)
        self.assertAlmostEqual(sell.profit, 3700.0)

        buys = {buy.id: buy for buy in self.ledger.buys("42")}
        self.assertTrue(buys[lot_a.id].matched)
        self.assertEqual(buys[lot_b.id].matched_qty, 5)
        self.assertFalse(buys[lot_b.id].matched)

    def test_sell_beyond_available_lots_is_orphan(self):
        self.ledger.record_buy("42", 206, 4, 100.0)
        sell = self.ledger.record_sell("42", 206, 10, 150.0)
        self.assertTrue(sell.is_orphan)
        self.assertIsNone(sell.profit)
        self.assertEqual(sell.orphan_qty, 6)
        self.assertEqual(sell.matched_qty, 4)
        self.assertEqual(self.ledger.summary("42").completed_trades, 0)

    def test_sell_without_history_is_orphan(self):
        sell = self.ledger.record_sell("42", 206, 3, 150.0)
        self.assertTrue(sell.is_orphan)
        self.assertEqual(sell.matched_buys, ())

    def test_matched_quantity_never_exceeds_sold_quantity(self):
        self.ledger.record_buy("42", 206, 10, 100.0)
        self.ledger.record_buy("42", 206, 5, 100.0)
        self.ledger.record_buy("42", 197, 8, 100.0)
        sold = 0
        for qty in (3, 7, 4, 6):
            sold += qty
            self.ledger.record_sell("42", 206, qty, 120.0)
            matched = sum(buy.matched_qty for buy in self.ledger.buys("42") if buy.item_id == 206)
            self.assertLessEqual(matched, sold)
            for buy in self.ledger.buys("42"):
                self.assertLessEqual(buy.matched_qty, buy.qty)
        other = [buy for buy in self.ledger.buys("42") if buy.item_id == 197]
        self.assertEqual(other[0].matched_qty, 0)

    def test_queries_and_clear(self):
        self.ledger.record_buy("42", 206, 10, 100.0)
        self.ledger.record_buy("42", 197, 2, 100.0)
        self.ledger.record_sell("42", 206, 10, 200.0)

        self.assertEqual([buy.item_id for buy in self.ledger.unmatched_buys("42")], [197])
        self.assertEqual(self.ledger.unmatched_buys("42", item_id=206), [])
        summary = self.ledger.summary("42")
        self.assertEqual(summary.completed_trades, 1)
        self.assertEqual(summary.pending_buys, 1)
        self.assertAlmostEqual(summary.total_profit, 900.0)

        self.ledger.clear_history("42")
        self.assertEqual(self.ledger.buys("42"), [])
        self.assertEqual(self.ledger.summary("42").completed_trades, 0)

    def test_record_routes_detected_trades(self):
        buy = DetectedTrade(
            side=TradeSide.BUY,
            account_id="42",
            item_id=206,
            item_name="Xanax",
            qty=10,
            unit_price=25_000.0,
            region="Japan",
            cash_delta=250_000.0,
            detected_at=100.0,
        )
        record = self.ledger.record(buy)
        self.assertEqual(record.region, "Japan")
        self.assertEqual(record.total_cost, 250_000.0)

        sell = DetectedTrade(
            side=TradeSide.SELL,
            account_id="42",
            item_id=206,
            item_name="Xanax",
            qty=10,
            unit_price=30_000.0,
            region="Torn",
            cash_delta=285_000.0,
            detected_at=200.0,
        )
        record = self.ledger.record(sell)
        self.assertIsInstance(record, SellRecord)
        self.assertAlmostEqual(record.profit, 35_000.0)

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValueError):
            self.ledger.record_buy("42", 206, 0, 100.0)
        with self.assertRaises(ValueError):
            self.ledger.record_sell("42", 206, -1, 100.0)

    def test_accounts_are_independent(self):
        self.ledger.record_buy("1", 206, 10, 100.0)
        sell = self.ledger.record_sell("2", 206, 5, 100.0)
        self.assertTrue(sell.is_orphan)

    def test_persists_and_reloads(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "trade_ledger.json"
            ledger = TradeLedger(path)
            ledger.record_buy("42", 206, 10, 100.0, taken_at=1.0)
            ledger.record_sell("42", 206, 4, 150.0, taken_at=2.0)
            ledger.save()

            reloaded = TradeLedger(path)
            buys = reloaded.buys("42")
            self.assertEqual(buys[0].matched_qty, 4)
            self.assertEqual(len(reloaded.sells("42")), 1)
            follow_up = reloaded.record_buy("42", 206, 1, 100.0)
            self.assertEqual(follow_up.id, "buy_3")


if __name__ == "__main__":
    unittest.main()
