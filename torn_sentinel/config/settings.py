"""Settings resolved from the environment with sane defaults."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

from . import constants


def _get_env_str(env_name: str, default: str) -> str:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    return raw


def _parse_env_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_env_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_thresholds() -> dict[str, Any]:
    raw = os.getenv("TORN_THRESHOLDS")
    if not raw:
        return dict(constants.DEFAULT_THRESHOLDS)
    thresholds = dict(constants.DEFAULT_THRESHOLDS)
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, dict):
            thresholds.update({str(k): float(v) for k, v in parsed.items()})
    except (TypeError, ValueError):
        return dict(constants.DEFAULT_THRESHOLDS)
    return thresholds


@dataclass(frozen=True)
class Settings:
    api_key: str
    account_id: str
    torn_api_base_url: str
    torn_api_v2_base_url: str
    yata_url: str
    user_agent: str
    request_timeout: float
    data_dir: str
    timezone: str
    market_tax: float
    alert_cooldown: float
    xanax_price: float
    api_port: int
    thresholds: dict[str, float]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=os.getenv("TORN_API_KEY", "").strip(),
            account_id=os.getenv("TORN_ACCOUNT_ID", "").strip(),
            torn_api_base_url=_get_env_str(
                "TORN_API_BASE_URL", constants.DEFAULT_TORN_API_BASE_URL
            ),
            torn_api_v2_base_url=_get_env_str(
                "TORN_API_V2_BASE_URL", constants.DEFAULT_TORN_API_V2_BASE_URL
            ),
            yata_url=_get_env_str("TORN_YATA_URL", constants.DEFAULT_YATA_URL),
            user_agent=_get_env_str("TORN_USER_AGENT", constants.DEFAULT_USER_AGENT),
            request_timeout=_parse_env_float(
                "TORN_REQUEST_TIMEOUT", constants.DEFAULT_REQUEST_TIMEOUT
            ),
            data_dir=_get_env_str("TORN_DATA_DIR", constants.DEFAULT_DATA_DIR),
            timezone=_get_env_str("TORN_TIMEZONE", constants.DEFAULT_TIMEZONE),
            market_tax=_parse_env_float(
                "TORN_MARKET_TAX", constants.DEFAULT_MARKET_TAX
            ),
            alert_cooldown=_parse_env_float(
                "TORN_ALERT_COOLDOWN", constants.DEFAULT_ALERT_COOLDOWN
            ),
            xanax_price=_parse_env_float(
                "TORN_XANAX_PRICE", constants.DEFAULT_XANAX_PRICE
            ),
            api_port=_parse_env_int("TORN_API_PORT", constants.DEFAULT_API_PORT),
            thresholds=_parse_thresholds(),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


__all__ = ["Settings", "get_settings", "reset_settings"]
