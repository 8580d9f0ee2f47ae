"""One poll-detect-record cycle for a single account."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Sequence

from ..analytics.pipeline import SentinelPipeline, TickResult
from ..config import settings as config_settings
from ..etl.models import AlertEvaluation
from ..etl.normalizer import build_snapshot, parse_travel_status
from ..ingestion import TornApiError, TornClient, YataClient

LOGGER = logging.getLogger(__name__)
SERVICE_NAME = "trade_tracker"


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run_cycle(
    pipeline: SentinelPipeline,
    torn: TornClient,
    yata: YataClient | None,
    account_id: str | None = None,
    now: float | None = None,
) -> tuple[TickResult, list[AlertEvaluation]]:
    """Fetch account state and foreign stock, then run one tick and the alert rules."""

    payload = torn.fetch_account_payload()
    account = account_id or str(payload.get("player_id") or "")
    if not account:
        raise TornApiError("unable to resolve account id from payload")
    stock = yata.fetch_stock() if yata is not None else None
    taken_at = time.time() if now is None else now

    snapshot = build_snapshot(account, payload, taken_at)
    result = pipeline.run_tick(snapshot, stock)
    evaluations = pipeline.evaluate_alerts(
        account, parse_travel_status(payload), stock, now=taken_at
    )
    return result, evaluations


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME, description="Poll Torn once and record detected activity"
    )
    parser.add_argument("--account", help="Account id (defaults to TORN_ACCOUNT_ID)")
    parser.add_argument(
        "--dry-run", action="store_true", help="Keep state in memory, skip file writes"
    )
    parser.add_argument(
        "--skip-stock", action="store_true", help="Do not fetch the YATA foreign stock export"
    )
    args = parser.parse_args(argv)

    _configure_logging()
    cfg = config_settings.get_settings()
    account_id = args.account or cfg.account_id or None
    pipeline = SentinelPipeline.from_settings(cfg, persist=not args.dry_run)

    LOGGER.info(
        "%s starting account=%s dry_run=%s data_dir=%s",
        SERVICE_NAME,
        account_id or "auto",
        args.dry_run,
        cfg.data_dir,
    )
    yata = None
    if not args.skip_stock:
        yata = YataClient(cfg.yata_url, user_agent=cfg.user_agent, timeout=cfg.request_timeout)
    try:
        with TornClient(
            cfg.api_key,
            base_url=cfg.torn_api_base_url,
            v2_base_url=cfg.torn_api_v2_base_url,
            user_agent=cfg.user_agent,
            timeout=cfg.request_timeout,
        ) as torn:
            result, evaluations = run_cycle(pipeline, torn, yata, account_id)
    except TornApiError as exc:
        LOGGER.error("%s aborted: %s (code=%s)", SERVICE_NAME, exc.user_message, exc.code)
        return 1
    finally:
        if yata is not None:
            yata.close()

    if not result.ok:
        LOGGER.error("%s tick failed: %s", SERVICE_NAME, result.error)
        return 1
    for event in result.events:
        LOGGER.info("activity %s delta=%s", event.type.value, event.delta)
    for trade in result.trades:
        LOGGER.info(
            "trade %s %sx %s @ %.0f (%s)",
            trade.side.value,
            trade.qty,
            trade.item_name,
            trade.unit_price,
            trade.record_id,
        )
    for evaluation in evaluations:
        if evaluation.trigger is not None:
            LOGGER.info(
                "restock %s in %s: %s available",
                evaluation.trigger.item_name or evaluation.trigger.item_id,
                evaluation.trigger.country,
                evaluation.trigger.quantity,
            )
    if not result.persisted:
        LOGGER.warning("%s results not persisted", SERVICE_NAME)
    return 0
