import json
import os
import tempfile
import unittest
from unittest import mock

import httpx

from torn_sentinel import cli
from torn_sentinel.analytics.pipeline import SentinelPipeline
from torn_sentinel.config import settings as config_settings
from torn_sentinel.ingestion.torn_client import TornClient, YataClient
from torn_sentinel.services import trade_tracker


def _torn(cash: int) -> TornClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/v2/"):
            return httpx.Response(200, json={"itemmarket": [], "bazaar": []})
        return httpx.Response(
            200,
            json={
                "player_id": 42,
                "money_onhand": cash,
                "travel": {"destination": "Mexico", "time_left": 0},
            },
        )

    return TornClient(
        "secret",
        base_url="https://api.torn.test",
        v2_base_url="https://api.torn.test/v2",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def _yata() -> YataClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"stocks": {"mex": {"stocks": [{"id": 258, "name": "Jaguar Plushie", "cost": 10000, "quantity": 30}]}}},
        )

    return YataClient("https://yata.test/", http_client=httpx.Client(transport=httpx.MockTransport(handler)))


class TradeTrackerServiceTests(unittest.TestCase):
    def test_run_cycle_detects_purchase(self):
        pipeline = SentinelPipeline()
        pipeline.alerts.add_rule("42", 258, "Mexico")

        baseline, _ = trade_tracker.run_cycle(pipeline, _torn(500_000), _yata(), now=1000.0)
        self.assertTrue(baseline.baseline)

        result, evaluations = trade_tracker.run_cycle(pipeline, _torn(250_000), _yata(), now=1060.0)
        self.assertEqual(result.account_id, "42")
        self.assertEqual([(t.item_id, t.qty) for t in result.trades], [(258, 25)])
        self.assertEqual(len(evaluations), 1)
        self.assertEqual(evaluations[0].rule.country, "Mexico")

    def test_main_reports_missing_api_key(self):
        with mock.patch.object(trade_tracker.config_settings, "get_settings") as settings:
            settings.return_value = mock.Mock(
                api_key="",
                account_id="42",
                data_dir="./unused",
                yata_url="https://yata.test/",
                user_agent="test",
                request_timeout=1.0,
                torn_api_base_url="https://api.torn.test",
                torn_api_v2_base_url="https://api.torn.test/v2",
                thresholds={},
                alert_cooldown=900.0,
                market_tax=0.05,
                timezone="Asia/Jakarta",
                xanax_price=850_000.0,
            )
            code = trade_tracker.main(["--dry-run", "--skip-stock"])
        self.assertEqual(code, 1)


class CliTests(unittest.TestCase):
    def test_service_router_forwards_arguments(self):
        with mock.patch.object(cli, "_load_service_main") as loader:
            loader.return_value = mock.Mock(return_value=0)
            code = cli.main(["service", "--name", "trade_tracker", "--", "--dry-run"])
        self.assertEqual(code, 0)
        loader.assert_called_once_with("trade_tracker")
        loader.return_value.assert_called_once_with(["--dry-run"])

    def test_service_without_return_code_counts_as_success(self):
        with mock.patch.object(cli, "_load_service_main") as loader:
            loader.return_value = mock.Mock(return_value=None)
            self.assertEqual(cli.main(["service", "--name", "sentinel_api"]), 0)

    def test_services_lists_names(self):
        with mock.patch("builtins.print") as printed:
            self.assertEqual(cli.main(["services"]), 0)
        self.assertEqual(
            [call.args[0] for call in printed.call_args_list], ["sentinel_api", "trade_tracker"]
        )

    def test_status_prints_stored_state(self):
        with tempfile.TemporaryDirectory() as tmp:
            pipeline = SentinelPipeline(tmp)
            pipeline.alerts.add_rule("42", 206, "Japan")
            pipeline.flush()
            with mock.patch.dict(os.environ, {"TORN_DATA_DIR": tmp}, clear=False):
                config_settings.reset_settings()
                self.addCleanup(config_settings.reset_settings)
                with mock.patch("builtins.print") as printed:
                    code = cli.main(["status", "--account", "42"])
        self.assertEqual(code, 0)
        status = json.loads(printed.call_args.args[0])
        self.assertEqual(status["trades"]["pending_buys"], 0)
        self.assertEqual(status["alerts"], [{"item_id": 206, "country": "Japan", "state": "IDLE"}])

    def test_no_command_prints_help(self):
        with mock.patch("sys.stdout"):
            self.assertEqual(cli.main([]), 1)


if __name__ == "__main__":
    unittest.main()
