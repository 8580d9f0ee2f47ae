"""Domain models and normalization for account polls."""

from .models import (
    ActivityEvent,
    ActivityType,
    AlertEvaluation,
    AlertRule,
    AlertState,
    AlertTrigger,
    BuyRecord,
    CompletedTrade,
    DailyLedger,
    DetectedTrade,
    Listing,
    MatchedBuy,
    ProfitTotals,
    SellRecord,
    Snapshot,
    StockItem,
    TradeSide,
    TravelStatus,
)

__all__ = [
    "ActivityEvent",
    "ActivityType",
    "AlertEvaluation",
    "AlertRule",
    "AlertState",
    "AlertTrigger",
    "BuyRecord",
    "CompletedTrade",
    "DailyLedger",
    "DetectedTrade",
    "Listing",
    "MatchedBuy",
    "ProfitTotals",
    "SellRecord",
    "Snapshot",
    "StockItem",
    "TradeSide",
    "TravelStatus",
]
