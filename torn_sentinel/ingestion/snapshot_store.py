"""Two-slot (previous, current) snapshot retention per account."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..etl.models import Snapshot
from .json_store import AccountDocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotPair:
    previous: Snapshot | None = None
    current: Snapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous": self.previous.to_dict() if self.previous else None,
            "current": self.current.to_dict() if self.current else None,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "SnapshotPair":
        if not isinstance(raw, dict):
            return cls()
        previous = raw.get("previous")
        current = raw.get("current")
        return cls(
            previous=Snapshot.from_dict(previous) if previous else None,
            current=Snapshot.from_dict(current) if current else None,
        )


class SnapshotStore(AccountDocumentStore[SnapshotPair]):
    """Keeps exactly the two most recent snapshots; older ones are discarded."""

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__(path)

    def _empty(self, account_id: str) -> SnapshotPair:
        return SnapshotPair()

    def _decode(self, account_id: str, raw: Any) -> SnapshotPair:
        return SnapshotPair.from_dict(raw)

    def _encode(self, value: SnapshotPair) -> Any:
        return value.to_dict()

    def pair(self, account_id: str) -> SnapshotPair:
        return self._get(account_id)

    def current(self, account_id: str) -> Snapshot | None:
        return self._get(account_id).current

    def push(self, snapshot: Snapshot) -> SnapshotPair:
        """Rotate current into previous and store ``snapshot`` as current."""

        with self._lock:
            existing = self._get(snapshot.account_id)
            if existing.current is not None and snapshot.taken_at < existing.current.taken_at:
                logger.warning(
                    "snapshot for %s older than current (%.0f < %.0f)",
                    snapshot.account_id,
                    snapshot.taken_at,
                    existing.current.taken_at,
                )
            rotated = SnapshotPair(previous=existing.current, current=snapshot)
            self._put(snapshot.account_id, rotated)
            return rotated
