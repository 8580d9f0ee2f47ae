"""Service layer between the HTTP routes and the sentinel pipeline."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..analytics.pipeline import SentinelPipeline
from ..config import settings as config_settings
from ..etl.models import ActivityEvent, AlertEvaluation, BuyRecord, DetectedTrade, TravelStatus
from ..etl.normalizer import build_snapshot, normalize_region, parse_foreign_stock
from .schemas import (
    ActivityEventSchema,
    ActivityResponse,
    AlertCreateRequest,
    AlertEvaluateRequest,
    AlertEvaluateResponse,
    AlertEvaluationSchema,
    AlertListResponse,
    AlertRuleSchema,
    AlertTriggerSchema,
    BuyLotSchema,
    DetectedTradeSchema,
    ProfitResponse,
    TickRequest,
    TickResponse,
    TradeSummaryResponse,
    UnmatchedBuysResponse,
)


def _event_schema(event: ActivityEvent) -> ActivityEventSchema:
    return ActivityEventSchema(
        type=event.type.value,
        occurred_at=event.occurred_at,
        delta=event.delta,
        current=event.current,
        details=dict(event.details),
    )


def _trade_schema(trade: DetectedTrade) -> DetectedTradeSchema:
    return DetectedTradeSchema(
        side=trade.side.value,
        item_id=trade.item_id,
        item_name=trade.item_name,
        qty=trade.qty,
        unit_price=trade.unit_price,
        total=trade.total,
        region=trade.region,
        detected_at=trade.detected_at,
        listing_id=trade.listing_id,
        record_id=trade.record_id,
    )


def _buy_schema(buy: BuyRecord) -> BuyLotSchema:
    return BuyLotSchema(
        id=buy.id,
        item_id=buy.item_id,
        item_name=buy.item_name,
        qty=buy.qty,
        matched_qty=buy.matched_qty,
        remaining=buy.remaining,
        unit_price=buy.unit_price,
        region=buy.region,
        taken_at=buy.taken_at,
    )


def _evaluation_schema(evaluation: AlertEvaluation) -> AlertEvaluationSchema:
    trigger = evaluation.trigger
    return AlertEvaluationSchema(
        item_id=evaluation.rule.item_id,
        country=evaluation.rule.country,
        previous_state=evaluation.previous_state.value,
        state=evaluation.state.value,
        fired=evaluation.fired,
        trigger=(
            AlertTriggerSchema(
                item_id=trigger.item_id,
                item_name=trigger.item_name,
                country=trigger.country,
                quantity=trigger.quantity,
                unit_price=trigger.unit_price,
                fired_at=trigger.fired_at,
            )
            if trigger is not None
            else None
        ),
    )


class SentinelService:
    def __init__(
        self,
        pipeline: SentinelPipeline | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._pipeline = pipeline
        self._clock = clock

    @property
    def pipeline(self) -> SentinelPipeline:
        if self._pipeline is None:
            self._pipeline = SentinelPipeline.from_settings(config_settings.get_settings())
        return self._pipeline

    def run_tick(self, account_id: str, request: TickRequest) -> TickResponse:
        taken_at = request.taken_at if request.taken_at is not None else self._clock()
        snapshot = build_snapshot(account_id, request.payload, taken_at)
        foreign_stock = (
            parse_foreign_stock(request.foreign_stock) if request.foreign_stock else None
        )
        result = self.pipeline.run_tick(snapshot, foreign_stock)
        return TickResponse(
            account_id=account_id,
            baseline=result.baseline,
            persisted=result.persisted,
            error=result.error,
            events=[_event_schema(event) for event in result.events],
            trades=[_trade_schema(trade) for trade in result.trades],
        )

    def activity(self, account_id: str, limit: int = 50) -> ActivityResponse:
        return ActivityResponse(
            account_id=account_id,
            events=[_event_schema(event) for event in self.pipeline.recent_events(account_id, limit)],
            trades=[_trade_schema(trade) for trade in self.pipeline.recent_trades(account_id, limit)],
        )

    def trade_summary(self, account_id: str) -> TradeSummaryResponse:
        summary = self.pipeline.ledger.summary(account_id)
        return TradeSummaryResponse(account_id=account_id, **summary.to_row())

    def unmatched_buys(
        self, account_id: str, item_id: Optional[int] = None
    ) -> UnmatchedBuysResponse:
        buys = self.pipeline.ledger.unmatched_buys(account_id, item_id)
        return UnmatchedBuysResponse(account_id=account_id, buys=[_buy_schema(buy) for buy in buys])

    def clear_trades(self, account_id: str) -> dict[str, str]:
        self.pipeline.ledger.clear_history(account_id)
        self.pipeline.flush()
        return {"status": "cleared", "account_id": account_id}

    def list_alerts(self, account_id: str) -> AlertListResponse:
        rules = self.pipeline.alerts.rules_for(account_id)
        return AlertListResponse(
            account_id=account_id,
            alerts=[
                AlertRuleSchema(
                    item_id=rule.item_id,
                    item_name=rule.item_name,
                    country=rule.country,
                    state=rule.state.value,
                    last_stock=rule.last_stock,
                    cooldown_until=rule.cooldown_until,
                    created_at=rule.created_at,
                    last_update=rule.last_update,
                )
                for rule in rules
            ],
        )

    def add_alert(self, account_id: str, request: AlertCreateRequest) -> AlertListResponse:
        self.pipeline.alerts.add_rule(
            account_id,
            request.item_id,
            request.country,
            item_name=request.item_name,
            now=self._clock(),
        )
        self.pipeline.flush()
        return self.list_alerts(account_id)

    def remove_alert(self, account_id: str, item_id: int, country: Optional[str] = None) -> bool:
        removed = self.pipeline.alerts.remove_rule(account_id, item_id, country)
        if removed:
            self.pipeline.flush()
        return removed

    def evaluate_alerts(
        self, account_id: str, request: AlertEvaluateRequest
    ) -> AlertEvaluateResponse:
        travel = TravelStatus(
            destination=normalize_region(request.destination),
            time_left=request.time_left,
        )
        stock = parse_foreign_stock(request.foreign_stock) if request.foreign_stock else None
        evaluations = self.pipeline.evaluate_alerts(
            account_id,
            travel,
            stock,
            now=request.now if request.now is not None else self._clock(),
        )
        return AlertEvaluateResponse(
            account_id=account_id,
            evaluations=[_evaluation_schema(evaluation) for evaluation in evaluations],
        )

    def profit(self, account_id: str) -> ProfitResponse:
        now = self._clock()
        ledger = self.pipeline.profit.ledger(account_id, now=now)
        totals = self.pipeline.profit.totals(account_id, now=now)
        return ProfitResponse(
            account_id=account_id,
            date=totals.date,
            income=dict(ledger.income),
            expense=dict(ledger.expense),
            stats={key: float(value) for key, value in ledger.stats.items()},
            total_income=totals.income,
            total_expense=totals.expense,
            net=totals.net,
            per_hour=totals.per_hour,
            hours_active=totals.hours_active,
        )
