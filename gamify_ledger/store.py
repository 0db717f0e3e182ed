"""
Record store.

A collection is an ordered list of JSON records, loaded and saved as a unit.
The substrate has no transactions, so callers wrap every load-mutate-save
cycle in ``store.locked(...)``.
"""

import copy
import json
import os
import tempfile
import threading
from collections import defaultdict
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .errors import StorageFailure
from .log import get_logger

logger = get_logger(__name__)

USERS = "users"
ORDERS = "orders"
BALANCE_REQUESTS = "balanceRequests"
CONTACTS = "contacts"


class CollectionLocks:
    """One re-entrant lock per collection name."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = defaultdict(threading.RLock)

    def get(self, collection: str) -> threading.RLock:
        with self._guard:
            return self._locks[collection]

    @contextmanager
    def hold(self, *collections: str) -> Iterator[None]:
        # Sorted acquisition keeps multi-collection operations deadlock-free.
        with ExitStack() as stack:
            for name in sorted(set(collections)):
                stack.enter_context(self.get(name))
            yield


class RecordStore:
    def __init__(self):
        self.locks = CollectionLocks()

    def locked(self, *collections: str):
        return self.locks.hold(*collections)

    def load(self, collection: str) -> list[dict]:
        raise NotImplementedError

    def save(self, collection: str, records: list[dict]) -> None:
        raise NotImplementedError


class InMemoryStore(RecordStore):
    def __init__(self, seed: Optional[dict[str, list[dict]]] = None):
        super().__init__()
        self.collections: dict[str, list[dict]] = copy.deepcopy(seed or {})

    def load(self, collection: str) -> list[dict]:
        return copy.deepcopy(self.collections.get(collection, []))

    def save(self, collection: str, records: list[dict]) -> None:
        self.collections[collection] = copy.deepcopy(list(records))


class JsonFileStore(RecordStore):
    """One ``<collection>.json`` file per collection under ``data_dir``."""

    def __init__(self, data_dir: Union[str, Path]):
        super().__init__()
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def load(self, collection: str) -> list[dict]:
        path = self.path_for(collection)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            logger.error("storage_load_failed", collection=collection, error=str(e))
            raise StorageFailure(collection, str(e)) from e

        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("storage_corrupt", collection=collection, error=str(e))
            raise StorageFailure(collection, f"invalid JSON: {e}") from e
        if not isinstance(data, list):
            raise StorageFailure(collection, "expected a JSON list")
        return data

    def save(self, collection: str, records: list[dict]) -> None:
        path = self.path_for(collection)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{collection}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(records, fh, indent=2, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("storage_save_failed", collection=collection, error=str(e))
            raise StorageFailure(collection, str(e)) from e
        logger.debug("collection_saved", collection=collection, records=len(records))
