from __future__ import annotations

import hashlib
import json
from typing import Mapping


def _serialize(value: Mapping[str, object]) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _hash(value: str, salt: str) -> str:
    payload = salt + value
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def cash_bucket(cash: float, size: int = 1000) -> int:
    return int(cash // size)


def buy_signature(account_id: str, item_id: int, qty: int, cash_after: float) -> str:
    """Stable key for one bulk purchase; repeated polls of it collapse onto one key."""
    return _hash(
        _serialize(
            {
                "account_id": account_id,
                "item_id": item_id,
                "qty": qty,
                "cash_bucket": cash_bucket(cash_after),
            }
        ),
        "buy",
    )

