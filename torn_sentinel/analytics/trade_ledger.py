"""Trade history with FIFO cost-basis matching for realized profit."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from ..config import constants
from ..etl.models import (
    BuyRecord,
    CompletedTrade,
    DetectedTrade,
    MatchedBuy,
    SellRecord,
    TradeSide,
)
from ..ingestion.json_store import AccountDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class TradeBook:
    buys: list[BuyRecord] = field(default_factory=list)
    sells: list[SellRecord] = field(default_factory=list)
    completed: list[CompletedTrade] = field(default_factory=list)
    next_id: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "buys": [buy.to_dict() for buy in self.buys],
            "sells": [sell.to_dict() for sell in self.sells],
            "completed": [trade.to_dict() for trade in self.completed],
            "next_id": self.next_id,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "TradeBook":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            buys=[BuyRecord.from_dict(item) for item in raw.get("buys") or ()],
            sells=[SellRecord.from_dict(item) for item in raw.get("sells") or ()],
            completed=[CompletedTrade.from_dict(item) for item in raw.get("completed") or ()],
            next_id=int(raw.get("next_id") or 1),
        )


@dataclass(frozen=True)
class TradeSummary:
    total_profit: float
    completed_trades: int
    pending_buys: int

    def to_row(self) -> dict[str, object]:
        return {
            "total_profit": self.total_profit,
            "completed_trades": self.completed_trades,
            "pending_buys": self.pending_buys,
        }


class TradeLedger(AccountDocumentStore[TradeBook]):
    """BUY lots per account, consumed oldest-first by SELLs of the same item.

    ``matched_qty`` on a lot only ever grows and never passes ``qty``. A SELL
    whose quantity is not fully covered by open lots is flagged ``is_orphan``
    and carries no profit.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        market_tax: float = constants.DEFAULT_MARKET_TAX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(path)
        self.market_tax = market_tax
        self._clock = clock

    def _empty(self, account_id: str) -> TradeBook:
        return TradeBook()

    def _decode(self, account_id: str, raw: Any) -> TradeBook:
        return TradeBook.from_dict(raw)

    def _encode(self, value: TradeBook) -> Any:
        return value.to_dict()

    def _next_id(self, book: TradeBook, prefix: str) -> str:
        record_id = f"{prefix}_{book.next_id}"
        book.next_id += 1
        return record_id

    def record_buy(
        self,
        account_id: str,
        item_id: int,
        qty: int,
        unit_price: float,
        *,
        item_name: str = "",
        region: str = "",
        taken_at: float | None = None,
    ) -> BuyRecord:
        if qty <= 0:
            raise ValueError(f"BUY quantity must be positive, got {qty}")
        with self._lock:
            book = self._get(account_id)
            record = BuyRecord(
                id=self._next_id(book, "buy"),
                account_id=account_id,
                item_id=item_id,
                item_name=item_name,
                qty=qty,
                unit_price=unit_price,
                total_cost=unit_price * qty,
                region=region,
                taken_at=self._clock() if taken_at is None else taken_at,
            )
            book.buys.append(record)
            self._touch()
        return record

    def record_sell(
        self,
        account_id: str,
        item_id: int,
        qty: int,
        unit_price: float,
        *,
        item_name: str = "",
        taken_at: float | None = None,
    ) -> SellRecord:
        if qty <= 0:
            raise ValueError(f"SELL quantity must be positive, got {qty}")
        gross = unit_price * qty
        tax = gross * self.market_tax
        net = gross - tax

        with self._lock:
            book = self._get(account_id)
            remaining = qty
            total_buy_cost = 0.0
            matches: list[MatchedBuy] = []
            for lot in book.buys:
                if remaining <= 0:
                    break
                if lot.item_id != item_id or lot.remaining <= 0:
                    continue
                consumed = min(lot.remaining, remaining)
                portion = lot.unit_price * consumed
                total_buy_cost += portion
                remaining -= consumed
                lot.matched_qty += consumed
                lot.matched = lot.matched_qty >= lot.qty
                matches.append(
                    MatchedBuy(
                        buy_id=lot.id,
                        match_qty=consumed,
                        unit_price=lot.unit_price,
                        portion_cost=portion,
                        region=lot.region,
                    )
                )

            stamp = self._clock() if taken_at is None else taken_at
            profit = None if remaining > 0 else net - total_buy_cost
            record = SellRecord(
                id=self._next_id(book, "sell"),
                account_id=account_id,
                item_id=item_id,
                item_name=item_name,
                qty=qty,
                unit_price=unit_price,
                gross_revenue=gross,
                tax=tax,
                net_revenue=net,
                total_buy_cost=total_buy_cost,
                profit=profit,
                is_orphan=remaining > 0,
                orphan_qty=remaining,
                matched_buys=tuple(matches),
                taken_at=stamp,
            )
            book.sells.append(record)
            if profit is not None:
                book.completed.append(
                    CompletedTrade(
                        item_id=item_id,
                        item_name=item_name,
                        qty=qty,
                        buy_cost=total_buy_cost,
                        sell_revenue=net,
                        profit=profit,
                        taken_at=stamp,
                    )
                )
            self._touch()

        if record.is_orphan:
            logger.info(
                "orphan SELL account=%s item=%s qty=%s unmatched=%s",
                account_id,
                item_id,
                qty,
                remaining,
            )
        return record

    def record(self, trade: DetectedTrade) -> BuyRecord | SellRecord:
        if trade.side is TradeSide.BUY:
            return self.record_buy(
                trade.account_id,
                trade.item_id,
                trade.qty,
                trade.unit_price,
                item_name=trade.item_name,
                region=trade.region,
                taken_at=trade.detected_at,
            )
        return self.record_sell(
            trade.account_id,
            trade.item_id,
            trade.qty,
            trade.unit_price,
            item_name=trade.item_name,
            taken_at=trade.detected_at,
        )

    def buys(self, account_id: str) -> list[BuyRecord]:
        with self._lock:
            return list(self._get(account_id).buys)

    def sells(self, account_id: str) -> list[SellRecord]:
        with self._lock:
            return list(self._get(account_id).sells)

    def unmatched_buys(self, account_id: str, item_id: int | None = None) -> list[BuyRecord]:
        with self._lock:
            return [
                buy
                for buy in self._get(account_id).buys
                if not buy.matched and (item_id is None or buy.item_id == item_id)
            ]

    def summary(self, account_id: str) -> TradeSummary:
        with self._lock:
            book = self._get(account_id)
            return TradeSummary(
                total_profit=sum(trade.profit for trade in book.completed),
                completed_trades=len(book.completed),
                pending_buys=sum(1 for buy in book.buys if not buy.matched),
            )

    def clear_history(self, account_id: str) -> None:
        logger.info("clearing trade history for %s", account_id)
        self.clear(account_id)
