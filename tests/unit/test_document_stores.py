import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from torn_sentinel.etl.models import ActivityEvent, ActivityType, Snapshot
from torn_sentinel.ingestion.bounded_log import BoundedLog
from torn_sentinel.ingestion.json_store import JsonDocument, PersistenceError
from torn_sentinel.ingestion.snapshot_store import SnapshotStore


def _event(occurred_at: float, account_id: str = "42") -> ActivityEvent:
    return ActivityEvent(
        type=ActivityType.WALLET_CHANGE,
        occurred_at=occurred_at,
        account_id=account_id,
        delta=10_000.0,
    )


def _log(path=None, max_entries=3, retention=None) -> BoundedLog:
    return BoundedLog(
        encode=ActivityEvent.to_dict,
        decode=ActivityEvent.from_dict,
        timestamp=lambda event: event.occurred_at,
        path=path,
        max_entries=max_entries,
        retention=retention,
    )


class JsonDocumentTests(unittest.TestCase):
    def test_write_and_read(self):
        with tempfile.TemporaryDirectory() as tmp:
            document = JsonDocument(Path(tmp) / "nested" / "doc.json")
            self.assertIsNone(document.read())
            document.write({"a": 1})
            self.assertEqual(document.read(), {"a": 1})
            document.delete()
            self.assertIsNone(document.read())

    def test_corrupt_document_reads_as_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "doc.json"
            path.write_text("{not json", encoding="utf-8")
            self.assertIsNone(JsonDocument(path).read())

    def test_write_failure_raises_persistence_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            document = JsonDocument(Path(tmp) / "doc.json")
            with mock.patch("torn_sentinel.ingestion.json_store.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(PersistenceError):
                    document.write({"a": 1})


class BoundedLogTests(unittest.TestCase):
    def test_keeps_newest_entries(self):
        log = _log(max_entries=3)
        log.extend("42", [_event(float(t)) for t in range(5)])
        self.assertEqual([e.occurred_at for e in log.recent("42")], [4.0, 3.0, 2.0])
        self.assertEqual([e.occurred_at for e in log.recent("42", limit=1)], [4.0])
        self.assertEqual(len(log), 3)

    def test_retention_drops_old_records(self):
        log = _log(max_entries=None, retention=100.0)
        log.append("42", _event(0.0))
        log.append("42", _event(50.0))
        log.append("42", _event(140.0))
        self.assertEqual([e.occurred_at for e in log.recent("42")], [140.0, 50.0])
        log.prune("42", now=500.0)
        self.assertEqual(log.recent("42"), [])

    def test_accounts_are_separate(self):
        log = _log()
        log.append("1", _event(1.0, "1"))
        log.append("2", _event(2.0, "2"))
        self.assertEqual(len(log.recent("1")), 1)
        self.assertEqual(log.accounts(), ["1", "2"])

    def test_persist_and_reload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "activity_log.json"
            log = _log(path)
            log.append("42", _event(10.0))
            log.save()
            self.assertIn("42", json.loads(path.read_text(encoding="utf-8")))
            reloaded = _log(path)
            self.assertEqual(reloaded.recent("42")[0].type, ActivityType.WALLET_CHANGE)

    def test_transaction_rolls_back_on_error(self):
        log = _log()
        log.append("42", _event(1.0))
        with self.assertRaises(RuntimeError):
            with log.transaction("42"):
                log.append("42", _event(2.0))
                raise RuntimeError("boom")
        self.assertEqual([e.occurred_at for e in log.recent("42")], [1.0])

        with self.assertRaises(RuntimeError):
            with log.transaction("new"):
                log.append("new", _event(3.0, "new"))
                raise RuntimeError("boom")
        self.assertNotIn("new", log.accounts())

    def test_save_without_changes_does_not_write(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "log.json"
            _log(path).save()
            self.assertFalse(path.exists())


class SnapshotStoreTests(unittest.TestCase):
    def test_keeps_two_most_recent(self):
        store = SnapshotStore()
        for taken_at in (1.0, 2.0, 3.0):
            pair = store.push(Snapshot(account_id="42", taken_at=taken_at, cash=taken_at))
        self.assertEqual(pair.previous.taken_at, 2.0)
        self.assertEqual(pair.current.taken_at, 3.0)
        self.assertEqual(store.current("42").taken_at, 3.0)

    def test_first_push_has_no_previous(self):
        store = SnapshotStore()
        pair = store.push(Snapshot(account_id="42", taken_at=1.0, cash=0.0))
        self.assertIsNone(pair.previous)

    def test_reload_from_disk(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "snapshots.json"
            store = SnapshotStore(path)
            store.push(Snapshot(account_id="42", taken_at=1.0, cash=10.0, location="Japan"))
            store.push(Snapshot(account_id="42", taken_at=2.0, cash=20.0))
            store.save()

            pair = SnapshotStore(path).pair("42")
            self.assertEqual(pair.previous.location, "Japan")
            self.assertEqual(pair.current.cash, 20.0)


if __name__ == "__main__":
    unittest.main()
