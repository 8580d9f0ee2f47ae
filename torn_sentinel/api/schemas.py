"""Pydantic API schemas for the sentinel HTTP surface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TickRequest(BaseModel):
    payload: Dict[str, Any]
    foreign_stock: Optional[Dict[str, Any]] = None
    taken_at: Optional[float] = None


class ActivityEventSchema(BaseModel):
    type: str
    occurred_at: float
    delta: Optional[float] = None
    current: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class DetectedTradeSchema(BaseModel):
    side: str
    item_id: int
    item_name: str
    qty: int
    unit_price: float
    total: float
    region: str
    detected_at: float
    listing_id: Optional[str] = None
    record_id: Optional[str] = None


class TickResponse(BaseModel):
    account_id: str
    baseline: bool
    persisted: bool
    error: Optional[str] = None
    events: List[ActivityEventSchema]
    trades: List[DetectedTradeSchema]


class ActivityResponse(BaseModel):
    account_id: str
    events: List[ActivityEventSchema]
    trades: List[DetectedTradeSchema]


class TradeSummaryResponse(BaseModel):
    account_id: str
    total_profit: float
    completed_trades: int
    pending_buys: int


class BuyLotSchema(BaseModel):
    id: str
    item_id: int
    item_name: str
    qty: int
    matched_qty: int
    remaining: int
    unit_price: float
    region: str
    taken_at: float


class UnmatchedBuysResponse(BaseModel):
    account_id: str
    buys: List[BuyLotSchema]


class AlertCreateRequest(BaseModel):
    item_id: int = Field(..., gt=0)
    country: str = Field(..., min_length=1)
    item_name: str = ""


class AlertRuleSchema(BaseModel):
    item_id: int
    item_name: str
    country: str
    state: str
    last_stock: Optional[int] = None
    cooldown_until: float
    created_at: float
    last_update: float


class AlertListResponse(BaseModel):
    account_id: str
    alerts: List[AlertRuleSchema]


class AlertEvaluateRequest(BaseModel):
    destination: str = "Torn"
    time_left: int = Field(0, ge=0)
    foreign_stock: Optional[Dict[str, Any]] = None
    now: Optional[float] = None


class AlertTriggerSchema(BaseModel):
    item_id: int
    item_name: str
    country: str
    quantity: int
    unit_price: float
    fired_at: float


class AlertEvaluationSchema(BaseModel):
    item_id: int
    country: str
    previous_state: str
    state: str
    fired: bool
    trigger: Optional[AlertTriggerSchema] = None


class AlertEvaluateResponse(BaseModel):
    account_id: str
    evaluations: List[AlertEvaluationSchema]


class ProfitResponse(BaseModel):
    account_id: str
    date: str
    income: Dict[str, float]
    expense: Dict[str, float]
    stats: Dict[str, float]
    total_income: float
    total_expense: float
    net: float
    per_hour: float
    hours_active: float
