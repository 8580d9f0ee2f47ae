"""Restock-while-traveling alerts for foreign market items."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from ..config import constants
from ..etl.models import (
    AlertEvaluation,
    AlertRule,
    AlertState,
    AlertTrigger,
    StockItem,
    TravelStatus,
)
from ..etl.normalizer import normalize_region
from ..ingestion.json_store import AccountDocumentStore

logger = logging.getLogger(__name__)


class DuplicateAlertError(ValueError):
    pass


def _find_stock(stock: Sequence[StockItem] | None, item_id: int) -> tuple[int, float] | None:
    if stock is None:
        return None
    for item in stock:
        if item.item_id == item_id:
            return item.quantity, item.unit_price
    return 0, 0.0


class MarketAlertEngine:
    """Per-rule state machine: IDLE -> ARMED -> MONITORING -> TRIGGERED -> COOLDOWN.

    Only a restock from empty (last observed stock 0, now above 0) fires, and
    TRIGGERED is left in the same evaluation for COOLDOWN. Leaving the target
    country sends any rule back to IDLE.
    """

    def __init__(
        self,
        arm_window: int = constants.ALERT_ARM_WINDOW,
        cooldown: float = constants.DEFAULT_ALERT_COOLDOWN,
    ) -> None:
        self.arm_window = arm_window
        self.cooldown = cooldown

    def evaluate(
        self,
        rule: AlertRule,
        travel: TravelStatus,
        stock: Sequence[StockItem] | None,
        now: float,
    ) -> AlertEvaluation:
        previous = rule.state
        at_target = normalize_region(travel.destination) == normalize_region(rule.country)
        observed = _find_stock(stock, rule.item_id)
        trigger: AlertTrigger | None = None

        if rule.state is AlertState.COOLDOWN:
            if now >= rule.cooldown_until or not at_target:
                rule.state = AlertState.IDLE
                rule.cooldown_until = 0.0
        elif not at_target:
            rule.state = AlertState.IDLE
        elif rule.state is AlertState.IDLE:
            if travel.time_left <= 0:
                rule.state = AlertState.MONITORING
            elif travel.time_left <= self.arm_window:
                rule.state = AlertState.ARMED
        elif rule.state is AlertState.ARMED:
            if travel.time_left <= 0:
                rule.state = AlertState.MONITORING
        elif rule.state is AlertState.MONITORING:
            if observed is not None and rule.last_stock == 0 and observed[0] > 0:
                rule.state = AlertState.TRIGGERED
                trigger = AlertTrigger(
                    account_id=rule.account_id,
                    item_id=rule.item_id,
                    item_name=rule.item_name,
                    country=rule.country,
                    quantity=observed[0],
                    unit_price=observed[1],
                    fired_at=now,
                )
                logger.info(
                    "restock alert fired account=%s item=%s country=%s stock=%s",
                    rule.account_id,
                    rule.item_id,
                    rule.country,
                    observed[0],
                )
                rule.state = AlertState.COOLDOWN
                rule.cooldown_until = now + self.cooldown

        if observed is not None:
            rule.last_stock = observed[0]
        rule.last_update = now
        if rule.state is not previous:
            logger.debug(
                "alert %s/%s %s -> %s",
                rule.item_id,
                rule.country,
                previous.value,
                rule.state.value,
            )
        return AlertEvaluation(rule=rule, previous_state=previous, state=rule.state, trigger=trigger)


class AlertRegistry(AccountDocumentStore[list]):
    """User-created alert rules, one per (account, item, country)."""

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__(path)

    def _empty(self, account_id: str) -> list:
        return []

    def _decode(self, account_id: str, raw: Any) -> list:
        return [AlertRule.from_dict(item) for item in raw or ()]

    def _encode(self, value: list) -> Any:
        return [rule.to_dict() for rule in value]

    def add_rule(
        self,
        account_id: str,
        item_id: int,
        country: str,
        item_name: str = "",
        now: float = 0.0,
    ) -> AlertRule:
        region = normalize_region(country)
        with self._lock:
            rules = self._get(account_id)
            for rule in rules:
                if rule.item_id == item_id and rule.country == region:
                    raise DuplicateAlertError(
                        f"alert for item {item_id} in {region} already exists"
                    )
            rule = AlertRule(
                account_id=account_id,
                item_id=item_id,
                item_name=item_name,
                country=region,
                created_at=now,
                last_update=now,
            )
            rules.append(rule)
            self._touch()
        logger.info("alert added account=%s item=%s country=%s", account_id, item_id, region)
        return rule

    def remove_rule(self, account_id: str, item_id: int, country: str | None = None) -> bool:
        region = normalize_region(country) if country else None
        with self._lock:
            rules = self._get(account_id)
            kept = [
                rule
                for rule in rules
                if not (rule.item_id == item_id and (region is None or rule.country == region))
            ]
            if len(kept) == len(rules):
                return False
            self._put(account_id, kept)
        return True

    def rules_for(self, account_id: str) -> list[AlertRule]:
        with self._lock:
            return list(self._get(account_id))
