"""Persistence and upstream clients for Torn Sentinel."""

from .bounded_log import BoundedLog
from .json_store import AccountDocumentStore, JsonDocument, PersistenceError
from .snapshot_store import SnapshotPair, SnapshotStore
from .torn_client import TornApiError, TornClient, YataClient

__all__ = [
    "AccountDocumentStore",
    "BoundedLog",
    "JsonDocument",
    "PersistenceError",
    "SnapshotPair",
    "SnapshotStore",
    "TornApiError",
    "TornClient",
    "YataClient",
]
