"""
Shared fixtures.

Environment variables are set before any ``gamify_ledger`` import so the
module-level settings and app never touch the working directory.
"""

import os
import tempfile

_SCRATCH = tempfile.mkdtemp(prefix="gamify-ledger-tests-")
os.environ.setdefault("GAMIFY_DATA_DIR", os.path.join(_SCRATCH, "data"))
os.environ.setdefault("GAMIFY_UPLOAD_DIR", os.path.join(_SCRATCH, "uploads"))
os.environ.setdefault("GAMIFY_BCRYPT_ROUNDS", "4")
os.environ.setdefault("GAMIFY_LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest

from gamify_ledger.models import User
from gamify_ledger.receipts import ReceiptStorage
from gamify_ledger.service import LedgerService
from gamify_ledger.store import USERS, InMemoryStore, JsonFileStore


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def json_store(tmp_path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "data")


@pytest.fixture
def receipts(tmp_path) -> ReceiptStorage:
    return ReceiptStorage(tmp_path / "uploads")


@pytest.fixture
def service(store, receipts) -> LedgerService:
    return LedgerService(store=store, receipts=receipts, bcrypt_rounds=4)


@pytest.fixture
def json_service(json_store, receipts) -> LedgerService:
    return LedgerService(store=json_store, receipts=receipts, bcrypt_rounds=4)


def add_user(store, email: str, balance: str = "0.00", user_id: str = None, name: str = "Player") -> User:
    """Write a user straight into the store, skipping password hashing."""
    user = User(
        id=user_id or f"u-{email}",
        name=name,
        email=email,
        balance=Decimal(balance),
    )
    with store.locked(USERS):
        users = store.load(USERS)
        users.append(user.to_record())
        store.save(USERS, users)
    return user


@pytest.fixture
def seed_user():
    return add_user
