"""
Tests for the record store: JSON persistence, isolation of the in-memory
store, and the per-collection lock map.
"""

import json
import threading
import time

import pytest

from gamify_ledger.errors import StorageFailure
from gamify_ledger.store import BALANCE_REQUESTS, ORDERS, USERS, CollectionLocks, InMemoryStore, JsonFileStore


class TestJsonFileStore:
    def test_missing_collection_loads_empty(self, json_store):
        """A collection that was never written is empty, not an error."""
        assert json_store.load(ORDERS) == []

    def test_save_then_load(self, json_store):
        records = [{"id": "1", "email": "a@example.com"}, {"id": "2", "email": "b@example.com"}]
        json_store.save(ORDERS, records)

        assert json_store.load(ORDERS) == records
        assert json_store.path_for(ORDERS).name == "orders.json"

    def test_save_replaces_whole_collection(self, json_store):
        json_store.save(USERS, [{"id": "1"}, {"id": "2"}])
        json_store.save(USERS, [{"id": "3"}])

        assert json_store.load(USERS) == [{"id": "3"}]

    def test_persists_across_instances(self, tmp_path):
        JsonFileStore(tmp_path).save(BALANCE_REQUESTS, [{"id": "r1"}])

        assert JsonFileStore(tmp_path).load(BALANCE_REQUESTS) == [{"id": "r1"}]
        assert (tmp_path / "balanceRequests.json").exists()

    def test_no_temp_files_left_behind(self, json_store):
        json_store.save(USERS, [{"id": "1"}])

        leftovers = [p.name for p in json_store.data_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_corrupt_file_is_storage_failure(self, json_store):
        json_store.path_for(USERS).write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageFailure) as exc:
            json_store.load(USERS)
        assert exc.value.collection == USERS

    def test_invalid_utf8_is_storage_failure(self, json_store):
        json_store.path_for(USERS).write_bytes(b'[{"id": "\xff\xfe"}]')

        with pytest.raises(StorageFailure) as exc:
            json_store.load(USERS)
        assert exc.value.collection == USERS

    def test_non_list_document_is_storage_failure(self, json_store):
        json_store.path_for(USERS).write_text(json.dumps({"id": "1"}), encoding="utf-8")

        with pytest.raises(StorageFailure):
            json_store.load(USERS)

    def test_empty_file_loads_empty(self, json_store):
        json_store.path_for(ORDERS).write_text("", encoding="utf-8")

        assert json_store.load(ORDERS) == []

    def test_unserialisable_record_is_storage_failure(self, json_store):
        json_store.save(ORDERS, [{"id": "1"}])

        with pytest.raises(StorageFailure):
            json_store.save(ORDERS, [{"id": object()}])

        # The previous contents survive a failed save.
        assert json_store.load(ORDERS) == [{"id": "1"}]


class TestInMemoryStore:
    def test_loaded_records_are_copies(self):
        store = InMemoryStore({USERS: [{"id": "1", "balance": "5.00"}]})

        records = store.load(USERS)
        records[0]["balance"] = "999.00"
        records.append({"id": "2"})

        assert store.load(USERS) == [{"id": "1", "balance": "5.00"}]

    def test_saved_records_are_copies(self):
        store = InMemoryStore()
        records = [{"id": "1"}]
        store.save(ORDERS, records)
        records[0]["id"] = "changed"

        assert store.load(ORDERS) == [{"id": "1"}]


class TestCollectionLocks:
    def test_same_collection_is_reentrant(self):
        locks = CollectionLocks()

        with locks.hold(USERS, ORDERS):
            with locks.hold(USERS):
                pass

    def test_same_name_returns_same_lock(self):
        locks = CollectionLocks()
        assert locks.get(USERS) is locks.get(USERS)
        assert locks.get(USERS) is not locks.get(ORDERS)

    def test_hold_excludes_other_threads(self):
        locks = CollectionLocks()
        events = []

        def worker():
            with locks.hold(USERS):
                events.append("worker")

        with locks.hold(ORDERS, USERS):
            thread = threading.Thread(target=worker)
            thread.start()
            time.sleep(0.05)
            events.append("main")
        thread.join(timeout=5)

        assert events == ["main", "worker"]

    def test_opposite_argument_order_does_not_deadlock(self):
        locks = CollectionLocks()
        done = []

        def run(names):
            for _ in range(200):
                with locks.hold(*names):
                    pass
            done.append(names)

        threads = [
            threading.Thread(target=run, args=((USERS, ORDERS),)),
            threading.Thread(target=run, args=((ORDERS, USERS),)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(done) == 2
