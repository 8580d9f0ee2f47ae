"""Append-only, size- and age-bounded record log shared by every history concern."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from .json_store import AccountDocumentStore

T = TypeVar("T")

Encoder = Callable[[T], Mapping[str, Any]]
Decoder = Callable[[Mapping[str, Any]], T]
Timestamp = Callable[[T], float]


class BoundedLog(AccountDocumentStore[list], Generic[T]):
    """Per-account ring buffer of records, oldest first.

    ``max_entries`` caps each account's log and ``retention`` (seconds) drops
    records older than the newest append minus the window. Either bound may be
    ``None``.
    """

    def __init__(
        self,
        encode: Encoder,
        decode: Decoder,
        timestamp: Timestamp,
        path: str | Path | None = None,
        max_entries: int | None = 500,
        retention: float | None = None,
    ) -> None:
        super().__init__(path)
        self._encode_record = encode
        self._decode_record = decode
        self._timestamp = timestamp
        self._max_entries = max_entries
        self._retention = retention

    def _empty(self, account_id: str) -> list:
        return []

    def _decode(self, account_id: str, raw: Any) -> list:
        return [self._decode_record(item) for item in raw or ()]

    def _encode(self, value: list) -> Any:
        return [dict(self._encode_record(record)) for record in value]

    def _trim(self, records: list, now: float | None) -> list:
        if self._retention is not None and now is not None:
            cutoff = now - self._retention
            records = [record for record in records if self._timestamp(record) > cutoff]
        if self._max_entries is not None and len(records) > self._max_entries:
            records = records[-self._max_entries :]
        return records

    def extend(self, account_id: str, records: Iterable[T], now: float | None = None) -> None:
        items = list(records)
        if not items:
            return
        with self._lock:
            current = list(self._get(account_id))
            current.extend(items)
            if now is None:
                now = max(self._timestamp(record) for record in items)
            self._put(account_id, self._trim(current, now))

    def append(self, account_id: str, record: T, now: float | None = None) -> None:
        self.extend(account_id, [record], now=now)

    def prune(self, account_id: str, now: float) -> None:
        with self._lock:
            current = self._get(account_id)
            trimmed = self._trim(list(current), now)
            if len(trimmed) != len(current):
                self._put(account_id, trimmed)

    def recent(self, account_id: str, limit: int | None = None) -> list[T]:
        """Newest-first view of the account's records."""

        with self._lock:
            records = list(reversed(self._get(account_id)))
        if limit is not None:
            records = records[: max(0, limit)]
        return records

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return sum(len(records) for records in self._accounts.values())
