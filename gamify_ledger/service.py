"""
Workflow boundary.

``LedgerService`` wires the workflows onto one record store and exposes every
operation as a method returning an ``Outcome``. Ledger failures come back as
``Outcome.failure`` values with a kind, a code and a message; they are never
raised to the caller.
"""

import functools
from typing import Any, BinaryIO, Callable, Optional

from pydantic import ValidationError

from .accounts import AccountLedger
from .config import settings
from .contacts import ContactInbox
from .errors import ErrorKind, LedgerError
from .identity import IdentityRebind
from .log import get_logger
from .models import Outcome, ReceiptRef
from .orders import OrderWorkflow
from .receipts import ReceiptStorage
from .store import JsonFileStore, RecordStore
from .topups import TopupWorkflow

logger = get_logger(__name__)


def boundary(func: Callable[..., Any]) -> Callable[..., Outcome]:
    @functools.wraps(func)
    def wrapper(self: "LedgerService", *args: Any, **kwargs: Any) -> Outcome:
        try:
            return Outcome.success(func(self, *args, **kwargs))
        except LedgerError as e:
            return Outcome.failure(e.kind, e.code, e.message)
        except ValidationError as e:
            # A persisted record no longer matches its model.
            logger.error("corrupt_record", operation=func.__name__, error=str(e))
            return Outcome.failure(ErrorKind.STORAGE_FAILURE, "corrupt_record", "Stored data is unreadable")

    return wrapper


class LedgerService:
    def __init__(
        self,
        store: Optional[RecordStore] = None,
        receipts: Optional[ReceiptStorage] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self.store = store or JsonFileStore(settings.data_dir)
        self.receipts = receipts or ReceiptStorage(settings.upload_dir)
        self.accounts = AccountLedger(self.store, bcrypt_rounds=bcrypt_rounds)
        self.topups = TopupWorkflow(self.store, self.accounts)
        self.orders = OrderWorkflow(self.store, self.accounts)
        self.identity = IdentityRebind(self.store, self.accounts, self.orders, self.topups)
        self.contacts = ContactInbox(self.store)

    # Users

    @boundary
    def register_user(self, name: str, email: str, password: str):
        return self.accounts.register(name, email, password)

    @boundary
    def login(self, email: str, password: str):
        return self.accounts.login(email, password)

    @boundary
    def get_user(self, email: str):
        return self.accounts.get_user(email).public()

    @boundary
    def list_users(self):
        return self.accounts.list_users()

    @boundary
    def rebind_user_email(
        self,
        user_id: str,
        new_email: Optional[str] = None,
        new_password: Optional[str] = None,
    ):
        return self.identity.rebind(user_id, new_email=new_email, new_password=new_password)

    # Top-ups

    @boundary
    def store_receipt(self, original_name: str, fileobj: BinaryIO):
        return self.receipts.save(original_name, fileobj)

    def discard_receipt(self, receipt: ReceiptRef) -> None:
        self.receipts.discard(receipt)

    @boundary
    def submit_topup(
        self,
        email: str,
        amount: Any,
        method: str,
        receipt: Optional[ReceiptRef],
        gamify_id: Optional[str] = None,
    ):
        return self.topups.submit(email, amount, method, receipt, gamify_id=gamify_id)

    @boundary
    def approve_topup(self, request_id: str):
        return self.topups.approve(request_id)

    @boundary
    def reject_topup(self, request_id: str):
        return self.topups.reject(request_id)

    @boundary
    def list_topups_for_user(self, email: str):
        return self.topups.list_for_user(email)

    @boundary
    def list_all_topups(self):
        return self.topups.list_all()

    # Orders

    @boundary
    def checkout(self, email: str, items: list[dict[str, Any]]):
        return self.orders.checkout(email, items)

    @boundary
    def list_orders_for_user(self, email: str):
        return self.orders.list_for_user(email)

    @boundary
    def list_all_orders(self):
        return self.orders.list_all()

    @boundary
    def set_order_status(self, order_id: str, status: str):
        return self.orders.set_status(order_id, status)

    # Contact form

    @boundary
    def submit_contact(self, name: str, email: str, message: str):
        return self.contacts.submit(name, email, message)

    @boundary
    def list_contacts(self):
        return self.contacts.list_all()
