"""
Gamify account ledger

This package provides:
- A collection-of-records store (JSON files) with per-collection locks
- Balance debit/credit that never goes negative
- Top-up request workflow: pending → approved / rejected, idempotent approval
- Order workflow: checkout debits the buyer, admin sets the status
- Email rebind across users, orders and balance requests
"""

from .errors import ErrorKind, LedgerError
from .models import (
    BalanceRequest,
    Order,
    OrderStatus,
    Outcome,
    PublicUser,
    TopupStatus,
    User,
)
from .service import LedgerService
from .store import InMemoryStore, JsonFileStore, RecordStore

__all__ = [
    "ErrorKind",
    "LedgerError",
    "BalanceRequest",
    "Order",
    "OrderStatus",
    "Outcome",
    "PublicUser",
    "TopupStatus",
    "User",
    "LedgerService",
    "InMemoryStore",
    "JsonFileStore",
    "RecordStore",
]
