"""Daily income/expense ledger with lazy day rollover."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable
from zoneinfo import ZoneInfo

from ..config import constants
from ..etl.models import (
    ActivityEvent,
    ActivityType,
    BuyRecord,
    DailyLedger,
    ProfitTotals,
    SellRecord,
)
from ..ingestion.json_store import AccountDocumentStore

logger = logging.getLogger(__name__)

HOURS_ACTIVE = "hoursActive"


def _day_start(now: float, zone: ZoneInfo) -> datetime:
    local = datetime.fromtimestamp(now, zone)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


class ProfitAggregator(AccountDocumentStore[DailyLedger]):
    """One active ``DailyLedger`` per account, replaced when the local date changes.

    Every read and write first compares the stored date with today's date in
    ``timezone``; a stale ledger is swapped for an empty one before the
    operation proceeds.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        timezone: str = constants.DEFAULT_TIMEZONE,
        clock: Callable[[], float] = time.time,
        xanax_price: float = constants.DEFAULT_XANAX_PRICE,
    ) -> None:
        super().__init__(path)
        self._zone = ZoneInfo(timezone)
        self._clock = clock
        self.xanax_price = xanax_price

    def _empty(self, account_id: str) -> DailyLedger:
        return DailyLedger.empty(self._today(self._clock()))

    def _decode(self, account_id: str, raw: Any) -> DailyLedger:
        return DailyLedger.from_dict(raw)

    def _encode(self, value: DailyLedger) -> Any:
        return value.to_dict()

    def _today(self, now: float) -> str:
        return datetime.fromtimestamp(now, self._zone).date().isoformat()

    def _hours_active(self, now: float) -> float:
        elapsed = (now - _day_start(now, self._zone).timestamp()) / 3600.0
        return max(1.0, elapsed)

    def _stamp(self, ledger: DailyLedger, now: float) -> None:
        ledger.last_update = now
        ledger.stats[HOURS_ACTIVE] = self._hours_active(now)
        self._touch()

    def _active(self, account_id: str, now: float) -> DailyLedger:
        today = self._today(now)
        self._ensure_loaded()
        ledger = self._accounts.get(account_id)
        if ledger is None:
            ledger = DailyLedger.empty(today)
            self._put(account_id, ledger)
        elif ledger.date != today:
            logger.info(
                "new day for %s (%s -> %s), resetting daily ledger",
                account_id,
                ledger.date,
                today,
            )
            ledger = DailyLedger.empty(today)
            self._put(account_id, ledger)
        return ledger

    def ledger(self, account_id: str, now: float | None = None) -> DailyLedger:
        with self._lock:
            return self._active(account_id, self._clock() if now is None else now)

    def add_income(
        self, account_id: str, category: str, amount: float, now: float | None = None
    ) -> None:
        now = self._clock() if now is None else now
        with self._lock:
            ledger = self._active(account_id, now)
            key = category if category in ledger.income else "other"
            ledger.income[key] += amount
            self._stamp(ledger, now)
        logger.debug("income %s +%.0f for %s", key, amount, account_id)

    def add_expense(
        self, account_id: str, category: str, amount: float, now: float | None = None
    ) -> None:
        now = self._clock() if now is None else now
        with self._lock:
            ledger = self._active(account_id, now)
            key = category if category in ledger.expense else "other"
            ledger.expense[key] += abs(amount)
            self._stamp(ledger, now)
        logger.debug("expense %s -%.0f for %s", key, abs(amount), account_id)

    def increment_stat(
        self, account_id: str, key: str, n: float = 1, now: float | None = None
    ) -> None:
        now = self._clock() if now is None else now
        with self._lock:
            ledger = self._active(account_id, now)
            if key not in ledger.stats or key == HOURS_ACTIVE:
                return
            ledger.stats[key] += n
            self._stamp(ledger, now)

    def totals(self, account_id: str, now: float | None = None) -> ProfitTotals:
        now = self._clock() if now is None else now
        with self._lock:
            ledger = self._active(account_id, now)
            income = ledger.total_income
            expense = ledger.total_expense
            hours = self._hours_active(now)
            if ledger.stats.get(HOURS_ACTIVE) != hours:
                ledger.stats[HOURS_ACTIVE] = hours
                self._touch()
        net = income - expense
        return ProfitTotals(
            date=ledger.date,
            income=income,
            expense=expense,
            net=net,
            per_hour=net / hours,
            hours_active=hours,
        )

    def apply_trade(self, record: BuyRecord | SellRecord, now: float | None = None) -> None:
        """Book a ledger record: SELL net revenue and tax, BUY purchase cost."""

        if isinstance(record, SellRecord):
            self.add_income(record.account_id, "travel", record.net_revenue, now=now)
            self.add_expense(record.account_id, "tax", record.tax, now=now)
        else:
            self.add_expense(record.account_id, "travel_buy", record.total_cost, now=now)

    def apply_activity(self, events: Iterable[ActivityEvent], now: float | None = None) -> None:
        for event in events:
            stamp = event.occurred_at if now is None else now
            if event.type is ActivityType.CRIME_REWARD:
                crimes = event.details.get("crimes_completed") or 1
                self.increment_stat(event.account_id, "crimeCount", crimes, now=stamp)
            elif event.type is ActivityType.ENERGY_USED:
                if event.details.get("source") == "xanax":
                    self.increment_stat(event.account_id, "xanaxUsed", 1, now=stamp)
                    self.add_expense(event.account_id, "xanax", self.xanax_price, now=stamp)
            elif event.type is ActivityType.TRAVEL_ARRIVE:
                if event.details.get("returned_home"):
                    self.increment_stat(event.account_id, "tripCount", 1, now=stamp)
