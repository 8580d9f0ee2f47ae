"""Runnable service entrypoints."""

__all__ = ["sentinel_api", "trade_tracker"]
