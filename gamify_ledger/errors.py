"""
Ledger failures.

Every failure carries a machine-checkable ``kind`` (broad category used to
pick an HTTP status) and ``code`` (the specific failure), plus a
human-readable message.
"""

from decimal import Decimal
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    EMAIL_TAKEN = "email_taken"
    INVALID_STATUS = "invalid_status"
    INVALID_CREDENTIALS = "invalid_credentials"
    STORAGE_FAILURE = "storage_failure"


class LedgerError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION
    code: str = "ledger_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailed(LedgerError):
    kind = ErrorKind.VALIDATION
    code = "validation_error"


class EmptyCart(ValidationFailed):
    code = "empty_cart"

    def __init__(self) -> None:
        super().__init__("Cart is empty")


class InvalidTotal(ValidationFailed):
    code = "invalid_total"

    def __init__(self, total: Decimal) -> None:
        self.total = total
        super().__init__(f"Order total could not be computed: {total}")


class InvalidAmount(ValidationFailed):
    code = "invalid_amount"

    def __init__(self, amount: object) -> None:
        self.amount = amount
        super().__init__(f"Amount must be a positive number, got {amount!r}")


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"User {key} not found")


class OrderNotFound(NotFound):
    code = "order_not_found"

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class TopupNotFound(NotFound):
    code = "topup_not_found"

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Balance request {request_id} not found")


class InsufficientBalance(LedgerError):
    kind = ErrorKind.INSUFFICIENT_BALANCE
    code = "insufficient_balance"

    def __init__(self, balance: Decimal, required: Decimal) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient balance. Balance: {balance}, Required: {required}")


class EmailTaken(LedgerError):
    kind = ErrorKind.EMAIL_TAKEN
    code = "email_taken"

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidStatus(LedgerError):
    kind = ErrorKind.INVALID_STATUS
    code = "invalid_status"


class InvalidCredentials(LedgerError):
    kind = ErrorKind.INVALID_CREDENTIALS
    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("Wrong password")


class StorageFailure(LedgerError):
    kind = ErrorKind.STORAGE_FAILURE
    code = "storage_failure"

    def __init__(self, collection: str, reason: str) -> None:
        self.collection = collection
        self.reason = reason
        super().__init__(f"Storage failure on {collection}: {reason}")
