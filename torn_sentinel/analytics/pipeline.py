"""Per-account tick orchestration: snapshot rotation, detection, ledger and profit."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from ..config import Settings, constants
from ..etl.models import (
    ActivityEvent,
    AlertEvaluation,
    AlertTrigger,
    BuyRecord,
    DetectedTrade,
    SellRecord,
    Snapshot,
    StockItem,
    TravelStatus,
)
from ..etl.normalizer import stock_for_region
from ..ingestion.bounded_log import BoundedLog
from ..ingestion.json_store import AccountDocumentStore, PersistenceError
from ..ingestion.snapshot_store import SnapshotStore
from .activity_detector import ActivityDetector, DetectorState
from .market_alerts import AlertRegistry, MarketAlertEngine
from .profit_aggregator import ProfitAggregator
from .trade_detector import TradeDetector, TradeDetectorState
from .trade_ledger import TradeLedger

logger = logging.getLogger(__name__)

StockByRegion = Mapping[str, Sequence[StockItem]]


@dataclass(frozen=True)
class DetectorStates:
    activity: DetectorState = field(default_factory=DetectorState)
    trades: TradeDetectorState = field(default_factory=TradeDetectorState)

    def to_dict(self) -> dict[str, Any]:
        return {"activity": self.activity.to_dict(), "trades": self.trades.to_dict()}

    @classmethod
    def from_dict(cls, raw: Any) -> "DetectorStates":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            activity=DetectorState.from_dict(raw.get("activity")),
            trades=TradeDetectorState.from_dict(raw.get("trades")),
        )


class DetectorStateStore(AccountDocumentStore[DetectorStates]):
    def _empty(self, account_id: str) -> DetectorStates:
        return DetectorStates()

    def _decode(self, account_id: str, raw: Any) -> DetectorStates:
        return DetectorStates.from_dict(raw)

    def _encode(self, value: DetectorStates) -> Any:
        return value.to_dict()

    def get(self, account_id: str) -> DetectorStates:
        return self._get(account_id)

    def put(self, account_id: str, states: DetectorStates) -> None:
        self._put(account_id, states)


@dataclass(frozen=True)
class TickResult:
    account_id: str
    events: tuple[ActivityEvent, ...] = ()
    trades: tuple[DetectedTrade, ...] = ()
    records: tuple[BuyRecord | SellRecord, ...] = ()
    baseline: bool = False
    persisted: bool = True
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SentinelPipeline:
    """Runs one detection tick per call and keeps every per-account store in step.

    A tick either applies completely or, on a hard failure, not at all: every
    store is entered in a transaction for the account and rolled back if any
    step raises. Writing to disk happens afterwards; a failed write leaves the
    in-memory state applied and is retried by ``flush``.
    """

    def __init__(
        self,
        data_dir: str | Path | None = None,
        *,
        activity_detector: ActivityDetector | None = None,
        trade_detector: TradeDetector | None = None,
        alert_engine: MarketAlertEngine | None = None,
        market_tax: float = constants.DEFAULT_MARKET_TAX,
        timezone: str = constants.DEFAULT_TIMEZONE,
        xanax_price: float = constants.DEFAULT_XANAX_PRICE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        base = Path(data_dir) if data_dir is not None else None

        def _path(name: str) -> Path | None:
            return base / name if base is not None else None

        self.activity_detector = activity_detector or ActivityDetector()
        self.trade_detector = trade_detector or TradeDetector()
        self.alert_engine = alert_engine or MarketAlertEngine()
        self._clock = clock

        self.snapshots = SnapshotStore(_path("snapshots.json"))
        self.detector_states = DetectorStateStore(_path("detector_state.json"))
        self.activity_log: BoundedLog[ActivityEvent] = BoundedLog(
            encode=ActivityEvent.to_dict,
            decode=ActivityEvent.from_dict,
            timestamp=lambda event: event.occurred_at,
            path=_path("activity_log.json"),
            max_entries=constants.ACTIVITY_LOG_MAX_ENTRIES,
            retention=constants.ACTIVITY_LOG_RETENTION,
        )
        self.trade_log: BoundedLog[DetectedTrade] = BoundedLog(
            encode=DetectedTrade.to_dict,
            decode=DetectedTrade.from_dict,
            timestamp=lambda trade: trade.detected_at,
            path=_path("trade_log.json"),
            max_entries=constants.TRADE_LOG_MAX_ENTRIES,
        )
        self.trigger_log: BoundedLog[AlertTrigger] = BoundedLog(
            encode=AlertTrigger.to_dict,
            decode=AlertTrigger.from_dict,
            timestamp=lambda trigger: trigger.fired_at,
            path=_path("alert_triggers.json"),
            max_entries=constants.ALERT_LOG_MAX_ENTRIES,
        )
        self.ledger = TradeLedger(_path("trade_ledger.json"), market_tax=market_tax, clock=clock)
        self.alerts = AlertRegistry(_path("alerts.json"))
        self.profit = ProfitAggregator(
            _path("daily_ledger.json"),
            timezone=timezone,
            clock=clock,
            xanax_price=xanax_price,
        )

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, persist: bool = True) -> "SentinelPipeline":
        return cls(
            settings.data_dir if persist else None,
            activity_detector=ActivityDetector(thresholds=settings.thresholds),
            alert_engine=MarketAlertEngine(cooldown=settings.alert_cooldown),
            market_tax=settings.market_tax,
            timezone=settings.timezone,
            xanax_price=settings.xanax_price,
        )

    @property
    def stores(self) -> tuple[AccountDocumentStore, ...]:
        return (
            self.snapshots,
            self.detector_states,
            self.activity_log,
            self.trade_log,
            self.trigger_log,
            self.ledger,
            self.alerts,
            self.profit,
        )

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    def run_tick(
        self,
        snapshot: Snapshot,
        foreign_stock: StockByRegion | None = None,
    ) -> TickResult:
        account_id = snapshot.account_id
        with self._lock_for(account_id):
            try:
                with ExitStack() as stack:
                    for store in self.stores:
                        stack.enter_context(store.transaction(account_id))
                    result = self._apply_tick(snapshot, foreign_stock)
            except Exception as exc:
                logger.error(
                    "tick aborted for %s, state rolled back: %s",
                    account_id,
                    exc,
                    exc_info=True,
                )
                return TickResult(account_id=account_id, persisted=False, error=str(exc))

            persisted = self._save()
        if not persisted:
            result = replace(result, persisted=False)
        return result

    def _apply_tick(self, snapshot: Snapshot, foreign_stock: StockByRegion | None) -> TickResult:
        account_id = snapshot.account_id
        now = snapshot.taken_at
        pair = self.snapshots.push(snapshot)
        states = self.detector_states.get(account_id)

        activity = self.activity_detector.detect(pair.previous, snapshot, states.activity)
        stock = None if snapshot.is_home else stock_for_region(foreign_stock, snapshot.location)
        trades = self.trade_detector.detect(pair.previous, snapshot, stock, states.trades)
        self.detector_states.put(
            account_id, DetectorStates(activity=activity.state, trades=trades.state)
        )

        records: list[BuyRecord | SellRecord] = []
        recorded: list[DetectedTrade] = []
        for trade in trades.trades:
            record = self.ledger.record(trade)
            self.profit.apply_trade(record, now=now)
            records.append(record)
            recorded.append(replace(trade, record_id=record.id))
        self.profit.apply_activity(activity.events, now=now)

        self.activity_log.extend(account_id, activity.events, now=now)
        self.activity_log.prune(account_id, now)
        self.trade_log.extend(account_id, recorded, now=now)

        if activity.baseline:
            logger.info("baseline snapshot recorded for %s", account_id)
        elif activity.events or trades.trades:
            logger.info(
                "tick for %s: %s events, %s trades",
                account_id,
                len(activity.events),
                len(trades.trades),
            )
        return TickResult(
            account_id=account_id,
            events=activity.events,
            trades=tuple(recorded),
            records=tuple(records),
            baseline=activity.baseline,
        )

    def _save(self) -> bool:
        persisted = True
        for store in self.stores:
            try:
                store.save()
            except PersistenceError as exc:
                logger.error("persistence failed: %s", exc)
                persisted = False
        return persisted

    def flush(self) -> bool:
        """Retry writing every dirty store; True when everything is on disk."""

        return self._save()

    def evaluate_alerts(
        self,
        account_id: str,
        travel: TravelStatus,
        stock_by_region: StockByRegion | None,
        now: float | None = None,
    ) -> list[AlertEvaluation]:
        now = self._clock() if now is None else now
        with self._lock_for(account_id):
            with self.alerts.transaction(account_id), self.trigger_log.transaction(account_id):
                evaluations = [
                    self.alert_engine.evaluate(
                        rule,
                        travel,
                        stock_for_region(stock_by_region, rule.country),
                        now,
                    )
                    for rule in self.alerts.rules_for(account_id)
                ]
                if evaluations:
                    self.alerts.mark_dirty()
                triggers = [evaluation.trigger for evaluation in evaluations if evaluation.trigger]
                self.trigger_log.extend(account_id, triggers, now=now)
            self._save()
        return evaluations

    def recent_events(self, account_id: str, limit: int | None = None) -> list[ActivityEvent]:
        return self.activity_log.recent(account_id, limit)

    def recent_trades(self, account_id: str, limit: int | None = None) -> list[DetectedTrade]:
        return self.trade_log.recent(account_id, limit)

    def recent_triggers(self, account_id: str, limit: int | None = None) -> list[AlertTrigger]:
        return self.trigger_log.recent(account_id, limit)
