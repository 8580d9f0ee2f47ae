"""Heuristic BUY/SELL inference from cash deltas and market reference data.

BUYs are only inferred abroad: the cash drop is matched against the region's
live stock as a single bulk purchase of one item. SELLs are only inferred at
home: a listing that vanished (or shrank) between polls, together with a cash
increase in the expected band, is taken as a completed sale. Both are
heuristics; missing reference data yields no trades.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..config import constants
from ..etl.fingerprints import buy_signature
from ..etl.models import DetectedTrade, Listing, Snapshot, StockItem, TradeSide

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeDetectorState:
    """Recently emitted BUY signatures and when they were seen, for one account."""

    recent: Mapping[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"recent": dict(self.recent)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "TradeDetectorState":
        if not raw:
            return cls()
        return cls(recent={str(k): float(v) for k, v in (raw.get("recent") or {}).items()})


@dataclass(frozen=True)
class TradeDetection:
    trades: tuple[DetectedTrade, ...]
    state: TradeDetectorState

    @property
    def buys(self) -> list[DetectedTrade]:
        return [trade for trade in self.trades if trade.side is TradeSide.BUY]

    @property
    def sells(self) -> list[DetectedTrade]:
        return [trade for trade in self.trades if trade.side is TradeSide.SELL]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TradeDetector:
    def __init__(
        self,
        min_buy_threshold: float = constants.MIN_BUY_THRESHOLD,
        ratio_deviation: float = constants.BUY_RATIO_DEVIATION,
        absolute_error: float = constants.BUY_ABSOLUTE_ERROR,
        typical_capacity: int = constants.TYPICAL_TRAVEL_CAPACITY,
        dedup_window: float = constants.BUY_DEDUP_WINDOW,
        sell_ratio_min: float = constants.SELL_RATIO_MIN,
        sell_ratio_max: float = constants.SELL_RATIO_MAX,
    ) -> None:
        self.min_buy_threshold = min_buy_threshold
        self.ratio_deviation = ratio_deviation
        self.absolute_error = absolute_error
        self.typical_capacity = typical_capacity
        self.dedup_window = dedup_window
        self.sell_ratio_min = sell_ratio_min
        self.sell_ratio_max = sell_ratio_max

    def detect(
        self,
        prev: Snapshot | None,
        curr: Snapshot,
        stock: Sequence[StockItem] | None = None,
        state: TradeDetectorState | None = None,
    ) -> TradeDetection:
        state = state or TradeDetectorState()
        if prev is None:
            return TradeDetection(trades=(), state=state)

        now = curr.taken_at
        recent = {
            signature: seen_at
            for signature, seen_at in state.recent.items()
            if now - seen_at <= self.dedup_window * 2
        }
        trades: list[DetectedTrade] = []

        buy = self.infer_buy(prev, curr, stock)
        if buy is not None:
            signature = buy_signature(curr.account_id, buy.item_id, buy.qty, curr.cash)
            seen_at = recent.get(signature)
            if seen_at is not None and now - seen_at < self.dedup_window:
                logger.debug(
                    "duplicate BUY suppressed account=%s item=%s qty=%s",
                    curr.account_id,
                    buy.item_id,
                    buy.qty,
                )
            else:
                recent[signature] = now
                trades.append(buy)

        trades.extend(self.infer_sells(prev, curr))
        return TradeDetection(trades=tuple(trades), state=TradeDetectorState(recent=recent))

    def infer_buy(
        self,
        prev: Snapshot,
        curr: Snapshot,
        stock: Sequence[StockItem] | None,
    ) -> DetectedTrade | None:
        """Match the cash drop abroad to ``unit_price * qty`` of a single stock item."""

        if curr.is_home:
            return None
        cash_delta = prev.cash - curr.cash
        if cash_delta <= self.min_buy_threshold:
            return None
        if not stock:
            logger.warning(
                "cash drop of %.0f in %s but no live stock available",
                cash_delta,
                curr.location,
            )
            return None

        best: tuple[StockItem, int] | None = None
        for item in stock:
            if item.unit_price <= 0:
                continue
            raw_qty = cash_delta / item.unit_price
            qty = _round_half_up(raw_qty)
            if qty <= 0 or abs(raw_qty - qty) > self.ratio_deviation:
                continue
            if best is None or abs(qty - self.typical_capacity) < abs(
                best[1] - self.typical_capacity
            ):
                best = (item, qty)

        if best is None:
            logger.debug(
                "cash drop of %.0f in %s matches no stock item", cash_delta, curr.location
            )
            return None
        item, qty = best
        if abs(item.unit_price * qty - cash_delta) >= self.absolute_error:
            return None
        logger.info(
            "BUY inferred account=%s %sx %s @ %.0f in %s",
            curr.account_id,
            qty,
            item.name or item.item_id,
            item.unit_price,
            curr.location,
        )
        return DetectedTrade(
            side=TradeSide.BUY,
            account_id=curr.account_id,
            item_id=item.item_id,
            item_name=item.name,
            qty=qty,
            unit_price=item.unit_price,
            region=curr.location,
            cash_delta=cash_delta,
            detected_at=curr.taken_at,
        )

    def infer_sells(self, prev: Snapshot, curr: Snapshot) -> list[DetectedTrade]:
        """Vanished or shrunken listings covered by a cash increase in the tax band.

        Candidates are walked in listing order and gathered into a window whose
        combined revenue is compared with the cash not yet attributed. When the
        window overshoots the band its oldest candidates are dropped (cancelled
        listings bring in no cash); when the ratio lands inside the band every
        candidate in the window is booked as a sale.
        """

        if not curr.is_home:
            return []
        cash_delta = curr.cash - prev.cash
        if cash_delta <= 0 or not prev.listings:
            return []

        current = curr.listing_map()
        remaining = cash_delta
        window: list[tuple[Listing, int]] = []
        sells: list[DetectedTrade] = []
        for listing in prev.listings:
            if remaining <= 0:
                break
            still_listed = current.get(listing.listing_id)
            left = 0
            if still_listed is not None and still_listed.item_id == listing.item_id:
                left = still_listed.quantity
            sold_qty = listing.quantity - left
            if sold_qty <= 0 or listing.unit_price <= 0:
                continue
            window.append((listing, sold_qty))
            while window and remaining / _window_revenue(window) < self.sell_ratio_min:
                dropped, _ = window.pop(0)
                logger.debug(
                    "listing %s gone without matching cash, treated as cancelled",
                    dropped.listing_id,
                )
            if not window or remaining / _window_revenue(window) > self.sell_ratio_max:
                continue
            remaining = max(0.0, remaining - _window_revenue(window))
            for sold, qty in window:
                sells.append(self._sell(curr, sold, qty, cash_delta))
            window = []
        return sells

    def _sell(
        self, curr: Snapshot, listing: Listing, sold_qty: int, cash_delta: float
    ) -> DetectedTrade:
        logger.info(
            "SELL inferred account=%s %sx %s @ %.0f (%s)",
            curr.account_id,
            sold_qty,
            listing.item_name or listing.item_id,
            listing.unit_price,
            listing.source,
        )
        return DetectedTrade(
            side=TradeSide.SELL,
            account_id=curr.account_id,
            item_id=listing.item_id,
            item_name=listing.item_name or f"Item #{listing.item_id}",
            qty=sold_qty,
            unit_price=listing.unit_price,
            region=curr.location,
            cash_delta=cash_delta,
            detected_at=curr.taken_at,
            listing_id=listing.listing_id,
            listing_source=listing.source,
        )


def _window_revenue(window: Sequence[tuple[Listing, int]]) -> float:
    return sum(listing.unit_price * qty for listing, qty in window)
