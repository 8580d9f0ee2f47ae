from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from ..config.constants import (
    EXPENSE_CATEGORIES,
    HOME_LOCATION,
    INCOME_CATEGORIES,
    STAT_KEYS,
)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return _as_float(value)


@dataclass(frozen=True)
class Listing:
    source: str
    listing_id: str
    item_id: int
    unit_price: float
    quantity: int
    item_name: str = ""

    @property
    def revenue(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "listing_id": self.listing_id,
            "item_id": self.item_id,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "item_name": self.item_name,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Listing":
        return cls(
            source=str(raw.get("source") or "market"),
            listing_id=str(raw.get("listing_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            unit_price=_as_float(raw.get("unit_price")),
            quantity=_as_int(raw.get("quantity")),
            item_name=str(raw.get("item_name") or ""),
        )


@dataclass(frozen=True)
class StockItem:
    item_id: int
    name: str
    unit_price: float
    quantity: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "StockItem":
        return cls(
            item_id=_as_int(raw.get("item_id")),
            name=str(raw.get("name") or ""),
            unit_price=_as_float(raw.get("unit_price")),
            quantity=_as_int(raw.get("quantity")),
        )


@dataclass(frozen=True)
class TravelStatus:
    destination: str
    time_left: int = 0

    @property
    def landed(self) -> bool:
        return self.time_left <= 0


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time capture of an account's cash, location and market exposure."""

    account_id: str
    taken_at: float
    cash: float
    location: str = HOME_LOCATION
    travel_time_left: int = 0
    inventory: Mapping[str, int] = field(default_factory=dict)
    listings: Sequence[Listing] = ()
    energy: int = 0
    energy_max: int = 100
    nerve: int = 0
    nerve_max: int = 0
    job_points: int = 0
    job_position: str = ""
    criminal_offenses: int = 0

    @property
    def is_home(self) -> bool:
        return self.location == HOME_LOCATION

    @property
    def is_traveling(self) -> bool:
        return self.travel_time_left > 0

    @property
    def inventory_total(self) -> int:
        return sum(self.inventory.values())

    def listing_map(self) -> dict[str, Listing]:
        return {listing.listing_id: listing for listing in self.listings}

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "taken_at": self.taken_at,
            "cash": self.cash,
            "location": self.location,
            "travel_time_left": self.travel_time_left,
            "inventory": dict(self.inventory),
            "listings": [listing.to_dict() for listing in self.listings],
            "energy": self.energy,
            "energy_max": self.energy_max,
            "nerve": self.nerve,
            "nerve_max": self.nerve_max,
            "job_points": self.job_points,
            "job_position": self.job_position,
            "criminal_offenses": self.criminal_offenses,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Snapshot":
        inventory = raw.get("inventory") or {}
        return cls(
            account_id=str(raw.get("account_id") or ""),
            taken_at=_as_float(raw.get("taken_at")),
            cash=_as_float(raw.get("cash")),
            location=str(raw.get("location") or HOME_LOCATION),
            travel_time_left=_as_int(raw.get("travel_time_left")),
            inventory={str(k): _as_int(v) for k, v in inventory.items()},
            listings=tuple(Listing.from_dict(item) for item in raw.get("listings") or ()),
            energy=_as_int(raw.get("energy")),
            energy_max=_as_int(raw.get("energy_max"), 100),
            nerve=_as_int(raw.get("nerve")),
            nerve_max=_as_int(raw.get("nerve_max")),
            job_points=_as_int(raw.get("job_points")),
            job_position=str(raw.get("job_position") or ""),
            criminal_offenses=_as_int(raw.get("criminal_offenses")),
        )


class ActivityType(str, Enum):
    ENERGY_USED = "energy_used"
    ENERGY_FULL = "energy_full"
    NERVE_USED = "nerve_used"
    CRIME_REWARD = "crime_reward"
    TRAVEL_DEPART = "travel_depart"
    TRAVEL_ARRIVE = "travel_arrive"
    TRADE_BUY = "trade_buy"
    TRADE_SELL = "trade_sell"
    WALLET_CHANGE = "wallet_change"
    JOB_POINTS = "job_points"
    JOB_CHANGE = "job_change"


@dataclass(frozen=True)
class ActivityEvent:
    type: ActivityType
    occurred_at: float
    account_id: str
    delta: float | None = None
    current: float | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "occurred_at": self.occurred_at,
            "account_id": self.account_id,
            "delta": self.delta,
            "current": self.current,
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ActivityEvent":
        return cls(
            type=ActivityType(raw["type"]),
            occurred_at=_as_float(raw.get("occurred_at")),
            account_id=str(raw.get("account_id") or ""),
            delta=_optional_float(raw.get("delta")),
            current=_optional_float(raw.get("current")),
            details=dict(raw.get("details") or {}),
        )


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class DetectedTrade:
    """A BUY or SELL inferred from a snapshot pair, before it reaches the ledger."""

    side: TradeSide
    account_id: str
    item_id: int
    item_name: str
    qty: int
    unit_price: float
    region: str
    cash_delta: float
    detected_at: float
    listing_id: str | None = None
    listing_source: str | None = None
    record_id: str | None = None

    @property
    def total(self) -> float:
        return self.unit_price * self.qty

    def to_dict(self) -> dict[str, Any]:
        return {
            "side": self.side.value,
            "account_id": self.account_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "region": self.region,
            "cash_delta": self.cash_delta,
            "detected_at": self.detected_at,
            "listing_id": self.listing_id,
            "listing_source": self.listing_source,
            "record_id": self.record_id,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DetectedTrade":
        return cls(
            side=TradeSide(raw["side"]),
            account_id=str(raw.get("account_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            qty=_as_int(raw.get("qty")),
            unit_price=_as_float(raw.get("unit_price")),
            region=str(raw.get("region") or ""),
            cash_delta=_as_float(raw.get("cash_delta")),
            detected_at=_as_float(raw.get("detected_at")),
            listing_id=raw.get("listing_id"),
            listing_source=raw.get("listing_source"),
            record_id=raw.get("record_id"),
        )


@dataclass
class BuyRecord:
    id: str
    account_id: str
    item_id: int
    item_name: str
    qty: int
    unit_price: float
    total_cost: float
    region: str
    taken_at: float
    matched_qty: int = 0
    matched: bool = False

    @property
    def remaining(self) -> int:
        return self.qty - self.matched_qty

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "total_cost": self.total_cost,
            "region": self.region,
            "taken_at": self.taken_at,
            "matched_qty": self.matched_qty,
            "matched": self.matched,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BuyRecord":
        return cls(
            id=str(raw["id"]),
            account_id=str(raw.get("account_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            qty=_as_int(raw.get("qty")),
            unit_price=_as_float(raw.get("unit_price")),
            total_cost=_as_float(raw.get("total_cost")),
            region=str(raw.get("region") or ""),
            taken_at=_as_float(raw.get("taken_at")),
            matched_qty=_as_int(raw.get("matched_qty")),
            matched=bool(raw.get("matched", False)),
        )


@dataclass(frozen=True)
class MatchedBuy:
    buy_id: str
    match_qty: int
    unit_price: float
    portion_cost: float
    region: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "buy_id": self.buy_id,
            "match_qty": self.match_qty,
            "unit_price": self.unit_price,
            "portion_cost": self.portion_cost,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MatchedBuy":
        return cls(
            buy_id=str(raw["buy_id"]),
            match_qty=_as_int(raw.get("match_qty")),
            unit_price=_as_float(raw.get("unit_price")),
            portion_cost=_as_float(raw.get("portion_cost")),
            region=str(raw.get("region") or ""),
        )


@dataclass(frozen=True)
class SellRecord:
    id: str
    account_id: str
    item_id: int
    item_name: str
    qty: int
    unit_price: float
    gross_revenue: float
    tax: float
    net_revenue: float
    total_buy_cost: float
    profit: float | None
    is_orphan: bool
    orphan_qty: int
    matched_buys: Sequence[MatchedBuy]
    taken_at: float

    @property
    def matched_qty(self) -> int:
        return sum(match.match_qty for match in self.matched_buys)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "gross_revenue": self.gross_revenue,
            "tax": self.tax,
            "net_revenue": self.net_revenue,
            "total_buy_cost": self.total_buy_cost,
            "profit": self.profit,
            "is_orphan": self.is_orphan,
            "orphan_qty": self.orphan_qty,
            "matched_buys": [match.to_dict() for match in self.matched_buys],
            "taken_at": self.taken_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SellRecord":
        return cls(
            id=str(raw["id"]),
            account_id=str(raw.get("account_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            qty=_as_int(raw.get("qty")),
            unit_price=_as_float(raw.get("unit_price")),
            gross_revenue=_as_float(raw.get("gross_revenue")),
            tax=_as_float(raw.get("tax")),
            net_revenue=_as_float(raw.get("net_revenue")),
            total_buy_cost=_as_float(raw.get("total_buy_cost")),
            profit=_optional_float(raw.get("profit")),
            is_orphan=bool(raw.get("is_orphan", False)),
            orphan_qty=_as_int(raw.get("orphan_qty")),
            matched_buys=tuple(
                MatchedBuy.from_dict(item) for item in raw.get("matched_buys") or ()
            ),
            taken_at=_as_float(raw.get("taken_at")),
        )


@dataclass(frozen=True)
class CompletedTrade:
    item_id: int
    item_name: str
    qty: int
    buy_cost: float
    sell_revenue: float
    profit: float
    taken_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "qty": self.qty,
            "buy_cost": self.buy_cost,
            "sell_revenue": self.sell_revenue,
            "profit": self.profit,
            "taken_at": self.taken_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CompletedTrade":
        return cls(
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            qty=_as_int(raw.get("qty")),
            buy_cost=_as_float(raw.get("buy_cost")),
            sell_revenue=_as_float(raw.get("sell_revenue")),
            profit=_as_float(raw.get("profit")),
            taken_at=_as_float(raw.get("taken_at")),
        )


class AlertState(str, Enum):
    IDLE = "IDLE"
    ARMED = "ARMED"
    MONITORING = "MONITORING"
    TRIGGERED = "TRIGGERED"
    COOLDOWN = "COOLDOWN"


@dataclass
class AlertRule:
    account_id: str
    item_id: int
    item_name: str
    country: str
    state: AlertState = AlertState.IDLE
    last_stock: int | None = None
    cooldown_until: float = 0.0
    created_at: float = 0.0
    last_update: float = 0.0

    @property
    def key(self) -> tuple[str, int, str]:
        return (self.account_id, self.item_id, self.country)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "country": self.country,
            "state": self.state.value,
            "last_stock": self.last_stock,
            "cooldown_until": self.cooldown_until,
            "created_at": self.created_at,
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AlertRule":
        last_stock = raw.get("last_stock")
        state = raw.get("state") or AlertState.IDLE.value
        # TRIGGERED is never persisted; a stored one is treated as spent
        if state == AlertState.TRIGGERED.value:
            state = AlertState.COOLDOWN.value
        return cls(
            account_id=str(raw.get("account_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            country=str(raw.get("country") or ""),
            state=AlertState(state),
            last_stock=None if last_stock is None else _as_int(last_stock),
            cooldown_until=_as_float(raw.get("cooldown_until")),
            created_at=_as_float(raw.get("created_at")),
            last_update=_as_float(raw.get("last_update")),
        )


@dataclass(frozen=True)
class AlertTrigger:
    account_id: str
    item_id: int
    item_name: str
    country: str
    quantity: int
    unit_price: float
    fired_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "country": self.country,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "fired_at": self.fired_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AlertTrigger":
        return cls(
            account_id=str(raw.get("account_id") or ""),
            item_id=_as_int(raw.get("item_id")),
            item_name=str(raw.get("item_name") or ""),
            country=str(raw.get("country") or ""),
            quantity=_as_int(raw.get("quantity")),
            unit_price=_as_float(raw.get("unit_price")),
            fired_at=_as_float(raw.get("fired_at")),
        )


@dataclass(frozen=True)
class AlertEvaluation:
    rule: AlertRule
    previous_state: AlertState
    state: AlertState
    trigger: AlertTrigger | None = None

    @property
    def fired(self) -> bool:
        return self.trigger is not None

    @property
    def changed(self) -> bool:
        return self.previous_state != self.state


@dataclass
class DailyLedger:
    date: str
    income: dict[str, float]
    expense: dict[str, float]
    stats: dict[str, float]
    last_update: float = 0.0

    @classmethod
    def empty(cls, date: str) -> "DailyLedger":
        return cls(
            date=date,
            income={category: 0.0 for category in INCOME_CATEGORIES},
            expense={category: 0.0 for category in EXPENSE_CATEGORIES},
            stats={key: 0 for key in STAT_KEYS},
        )

    @property
    def total_income(self) -> float:
        return sum(self.income.values())

    @property
    def total_expense(self) -> float:
        return sum(self.expense.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "income": dict(self.income),
            "expense": dict(self.expense),
            "stats": dict(self.stats),
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DailyLedger":
        ledger = cls.empty(str(raw.get("date") or ""))
        for category, amount in (raw.get("income") or {}).items():
            ledger.income[str(category)] = _as_float(amount)
        for category, amount in (raw.get("expense") or {}).items():
            ledger.expense[str(category)] = _as_float(amount)
        for key, value in (raw.get("stats") or {}).items():
            ledger.stats[str(key)] = value
        ledger.last_update = _as_float(raw.get("last_update"))
        return ledger


@dataclass(frozen=True)
class ProfitTotals:
    date: str
    income: float
    expense: float
    net: float
    per_hour: float
    hours_active: float

    def to_row(self) -> dict[str, object]:
        return {
            "date": self.date,
            "income": self.income,
            "expense": self.expense,
            "net": self.net,
            "per_hour": self.per_hour,
            "hours_active": self.hours_active,
        }
