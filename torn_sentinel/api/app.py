"""FastAPI surface for ticks, trade history, alerts and the daily ledger."""

from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query

from .. import __version__
from ..analytics.market_alerts import DuplicateAlertError
from ..config import constants, settings
from .schemas import (
    ActivityResponse,
    AlertCreateRequest,
    AlertEvaluateRequest,
    AlertEvaluateResponse,
    AlertListResponse,
    ProfitResponse,
    TickRequest,
    TickResponse,
    TradeSummaryResponse,
    UnmatchedBuysResponse,
)
from .services import SentinelService

app = FastAPI(title="Torn Sentinel API", version=__version__)
service = SentinelService()


@app.get("/healthz")
def healthz() -> dict[str, str]:
    cfg = settings.get_settings()
    return {
        "status": "ok",
        "account": cfg.account_id or "unset",
        "timezone": cfg.timezone,
    }


@app.get("/v1/meta/services")
def list_services() -> dict[str, List[str]]:
    return {
        "services": constants.SERVICE_NAMES,
        "optional": constants.OPTIONAL_SERVICES,
    }


@app.post("/v1/accounts/{account_id}/ticks", response_model=TickResponse)
def run_tick(account_id: str, request: TickRequest) -> TickResponse:
    return service.run_tick(account_id, request)


@app.get("/v1/accounts/{account_id}/activity", response_model=ActivityResponse)
def activity(account_id: str, limit: int = Query(50, ge=1, le=500)) -> ActivityResponse:
    return service.activity(account_id, limit)


@app.get("/v1/accounts/{account_id}/trades/summary", response_model=TradeSummaryResponse)
def trade_summary(account_id: str) -> TradeSummaryResponse:
    return service.trade_summary(account_id)


@app.get("/v1/accounts/{account_id}/trades/unmatched", response_model=UnmatchedBuysResponse)
def unmatched_buys(account_id: str, item_id: Optional[int] = None) -> UnmatchedBuysResponse:
    return service.unmatched_buys(account_id, item_id)


@app.delete("/v1/accounts/{account_id}/trades")
def clear_trades(account_id: str) -> dict[str, str]:
    return service.clear_trades(account_id)


@app.get("/v1/accounts/{account_id}/alerts", response_model=AlertListResponse)
def list_alerts(account_id: str) -> AlertListResponse:
    return service.list_alerts(account_id)


@app.post("/v1/accounts/{account_id}/alerts", response_model=AlertListResponse, status_code=201)
def add_alert(account_id: str, request: AlertCreateRequest) -> AlertListResponse:
    try:
        return service.add_alert(account_id, request)
    except DuplicateAlertError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.delete("/v1/accounts/{account_id}/alerts/{item_id}")
def remove_alert(account_id: str, item_id: int, country: Optional[str] = None) -> dict[str, str]:
    if not service.remove_alert(account_id, item_id, country):
        raise HTTPException(status_code=404, detail="alert not found")
    return {"status": "removed"}


@app.post("/v1/accounts/{account_id}/alerts/evaluate", response_model=AlertEvaluateResponse)
def evaluate_alerts(account_id: str, request: AlertEvaluateRequest) -> AlertEvaluateResponse:
    return service.evaluate_alerts(account_id, request)


@app.get("/v1/accounts/{account_id}/profit", response_model=ProfitResponse)
def profit(account_id: str) -> ProfitResponse:
    return service.profit(account_id)


def get_app() -> FastAPI:
    return app
