"""
Tests for rebinding a user's email across users, orders and balance requests.
"""

from decimal import Decimal

import pytest

from gamify_ledger.accounts import find_user_by_id
from gamify_ledger.errors import EmailTaken, StorageFailure, UserNotFound, ValidationFailed
from gamify_ledger.models import ReceiptRef
from gamify_ledger.service import LedgerService
from gamify_ledger.store import BALANCE_REQUESTS, ORDERS, USERS, InMemoryStore

OLD = "old@example.com"
NEW = "new@example.com"
RECEIPT = ReceiptRef(filename="r.png", url="/uploads/r.png")


@pytest.fixture
def populated(service, store, seed_user):
    user = seed_user(store, OLD, "100.00", user_id="u-1")
    seed_user(store, "bystander@example.com", "5.00", user_id="u-2")
    service.orders.checkout(OLD, [{"price": 10}])
    service.orders.checkout(OLD, [{"price": 15}])
    service.orders.checkout("bystander@example.com", [{"price": 1}])
    service.topups.submit(OLD, "20", "card", RECEIPT)
    service.topups.submit("bystander@example.com", "3", "card", RECEIPT)
    return user


class TestRebind:
    def test_every_reference_moves(self, service, store, populated):
        user = service.identity.rebind("u-1", new_email=NEW)

        assert user.email == NEW
        assert user.balance == Decimal("75.00")
        assert len(service.orders.list_for_user(NEW)) == 2
        assert len(service.topups.list_for_user(NEW)) == 1
        assert service.orders.list_for_user(OLD) == []
        assert service.topups.list_for_user(OLD) == []
        for collection in (USERS, ORDERS, BALANCE_REQUESTS):
            assert all(r["email"] != OLD for r in store.load(collection))

    def test_other_users_untouched(self, service, populated):
        service.identity.rebind("u-1", new_email=NEW)

        assert len(service.orders.list_for_user("bystander@example.com")) == 1
        assert len(service.topups.list_for_user("bystander@example.com")) == 1
        assert service.accounts.balance_of("bystander@example.com") == Decimal("4.00")

    def test_ledger_follows_new_email(self, service, populated):
        service.identity.rebind("u-1", new_email=NEW)

        request = service.topups.list_for_user(NEW)[0]
        result = service.topups.approve(request.id)

        assert result.balance == Decimal("95.00")

    def test_email_taken(self, service, store, populated):
        with pytest.raises(EmailTaken):
            service.identity.rebind("u-1", new_email="bystander@example.com")

        assert len(service.orders.list_for_user(OLD)) == 2
        assert find_user_by_id(service.accounts.load_users(), "u-1").email == OLD

    def test_same_email_is_allowed(self, service, populated):
        user = service.identity.rebind("u-1", new_email=OLD)

        assert user.email == OLD
        assert len(service.orders.list_for_user(OLD)) == 2

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFound):
            service.identity.rebind("missing", new_email=NEW)

    def test_nothing_to_update(self, service, populated):
        with pytest.raises(ValidationFailed):
            service.identity.rebind("u-1")

    def test_password_change(self, service):
        created = service.accounts.register("Aysel", OLD, "first")

        service.identity.rebind(created.id, new_password="second")

        assert service.accounts.login(OLD, "second").id == created.id


class FailingSaveStore(InMemoryStore):
    def __init__(self, fail_on: str):
        super().__init__()
        self.fail_on = fail_on
        self.armed = False

    def save(self, collection, records):
        if self.armed and collection == self.fail_on:
            raise StorageFailure(collection, "disk full")
        super().save(collection, records)


class TestPartialFailure:
    def test_failure_on_requests_leaves_orders_moved(self, seed_user):
        store = FailingSaveStore(fail_on=BALANCE_REQUESTS)
        service = LedgerService(store=store, bcrypt_rounds=4)
        seed_user(store, OLD, "10.00", user_id="u-1")
        service.orders.checkout(OLD, [{"price": 1}])
        service.topups.submit(OLD, "1", "card", RECEIPT)
        store.armed = True

        with pytest.raises(StorageFailure):
            service.identity.rebind("u-1", new_email=NEW)

        # Orders were committed before the failing step; the user was not.
        assert len(service.orders.list_for_user(NEW)) == 1
        assert len(service.topups.list_for_user(OLD)) == 1
        assert find_user_by_id(service.accounts.load_users(), "u-1").email == OLD
