"""Detection, matching and aggregation over account snapshots."""

from .activity_detector import ActivityDetection, ActivityDetector, DetectorState, infer_energy_source
from .market_alerts import AlertRegistry, DuplicateAlertError, MarketAlertEngine
from .pipeline import SentinelPipeline, TickResult
from .profit_aggregator import ProfitAggregator
from .trade_detector import TradeDetection, TradeDetector, TradeDetectorState
from .trade_ledger import TradeBook, TradeLedger, TradeSummary

__all__ = [
    "ActivityDetection",
    "ActivityDetector",
    "AlertRegistry",
    "DetectorState",
    "DuplicateAlertError",
    "MarketAlertEngine",
    "ProfitAggregator",
    "SentinelPipeline",
    "TickResult",
    "TradeBook",
    "TradeDetection",
    "TradeDetector",
    "TradeDetectorState",
    "TradeLedger",
    "TradeSummary",
    "infer_energy_source",
]
