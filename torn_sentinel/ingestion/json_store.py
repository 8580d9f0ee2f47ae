"""File-backed JSON documents, one per concern, keyed by account."""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generic, Iterator, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class PersistenceError(RuntimeError):
    """Raised when a document cannot be written to disk."""


class JsonDocument:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Any | None:
        if not self._path.exists():
            return None
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("unable to read %s: %s", self._path, exc)
            return None
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning("corrupt document %s ignored: %s", self._path, exc)
            return None

    def write(self, value: Any) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(value, indent=2, sort_keys=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"unable to write {self._path}: {exc}") from exc

    def delete(self) -> None:
        if self._path.exists():
            self._path.unlink()


class AccountDocumentStore(Generic[V]):
    """In-memory per-account state mirrored to a single JSON document.

    Subclasses provide ``_empty`` plus the ``_decode``/``_encode`` pair. Reads
    are lazy; ``save`` writes every account back in one document. A store built
    without a path keeps state in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._document = JsonDocument(path) if path is not None else None
        self._accounts: dict[str, V] = {}
        self._loaded = False
        self._dirty = False
        self._lock = threading.RLock()

    def _empty(self, account_id: str) -> V:
        raise NotImplementedError

    def _decode(self, account_id: str, raw: Any) -> V:
        return raw

    def _encode(self, value: V) -> Any:
        return value

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self._document is None:
            return
        raw = self._document.read()
        if not isinstance(raw, dict):
            return
        for account_id, value in raw.items():
            try:
                self._accounts[str(account_id)] = self._decode(str(account_id), value)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "dropping unreadable %s entry for %s: %s",
                    self._document.path.name,
                    account_id,
                    exc,
                )

    def _get(self, account_id: str) -> V:
        with self._lock:
            self._ensure_loaded()
            value = self._accounts.get(account_id)
            if value is None:
                value = self._empty(account_id)
                self._accounts[account_id] = value
            return value

    def _put(self, account_id: str, value: V) -> None:
        with self._lock:
            self._ensure_loaded()
            self._accounts[account_id] = value
            self._dirty = True

    def _touch(self) -> None:
        self._dirty = True

    def mark_dirty(self) -> None:
        """Flag in-place mutations of returned records for the next ``save``."""

        with self._lock:
            self._dirty = True

    def accounts(self) -> list[str]:
        with self._lock:
            self._ensure_loaded()
            return sorted(self._accounts)

    def clear(self, account_id: str) -> None:
        with self._lock:
            self._ensure_loaded()
            if self._accounts.pop(account_id, None) is not None:
                self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    @contextmanager
    def transaction(self, account_id: str) -> Iterator[None]:
        """Roll the account's in-memory state back if the block raises."""

        with self._lock:
            self._ensure_loaded()
            existed = account_id in self._accounts
            saved = copy.deepcopy(self._accounts.get(account_id))
        try:
            yield
        except BaseException:
            with self._lock:
                if existed:
                    self._accounts[account_id] = saved
                else:
                    self._accounts.pop(account_id, None)
            raise

    def save(self) -> None:
        with self._lock:
            if self._document is None or not self._dirty:
                return
            payload = {
                account_id: self._encode(value)
                for account_id, value in sorted(self._accounts.items())
            }
            self._document.write(payload)
            self._dirty = False
