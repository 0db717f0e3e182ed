"""
Account ledger.

Owns every mutation of ``User.balance``. Balances are Decimal, rounded to
cents after each operation, and never negative.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import bcrypt

from .config import settings
from .errors import (
    EmailTaken,
    InsufficientBalance,
    InvalidAmount,
    InvalidCredentials,
    UserNotFound,
    ValidationFailed,
)
from .log import get_logger
from .models import PublicUser, User, new_id
from .money import ZERO, round2, to_decimal
from .store import USERS, RecordStore

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("ascii")
        )
    except ValueError:
        # Malformed stored hash.
        return False


def positive_amount(amount: Any) -> Decimal:
    """Parse and round a monetary amount, rejecting zero, negatives and NaN."""
    try:
        value = to_decimal(amount)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(amount)
    if not value.is_finite():
        raise InvalidAmount(amount)
    value = round2(value)
    if value <= ZERO:
        raise InvalidAmount(amount)
    return value


def find_user(users: list[User], email: str) -> Optional[User]:
    for user in users:
        if user.email == email:
            return user
    return None


def find_user_by_id(users: list[User], user_id: str) -> Optional[User]:
    for user in users:
        if user.id == user_id:
            return user
    return None


class AccountLedger:
    def __init__(self, store: RecordStore, bcrypt_rounds: Optional[int] = None):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds or settings.bcrypt_rounds

    def load_users(self) -> list[User]:
        return [User.model_validate(r) for r in self.store.load(USERS)]

    def save_users(self, users: list[User]) -> None:
        self.store.save(USERS, [u.to_record() for u in users])

    def get_user(self, email: str) -> User:
        user = find_user(self.load_users(), email)
        if user is None:
            raise UserNotFound(email)
        return user

    def list_users(self) -> list[PublicUser]:
        return [u.public() for u in self.load_users()]

    def balance_of(self, email: str) -> Decimal:
        return self.get_user(email).balance

    def debit(self, email: str, amount: Any) -> Decimal:
        """Take ``amount`` from the user's balance and return the new balance.

        Fails without touching the store when the user is missing or the
        balance would go negative.
        """
        amount = positive_amount(amount)
        with self.store.locked(USERS):
            users = self.load_users()
            user = find_user(users, email)
            if user is None:
                raise UserNotFound(email)
            if amount > user.balance:
                logger.info(
                    "debit_refused",
                    email=email,
                    balance=str(user.balance),
                    amount=str(amount),
                )
                raise InsufficientBalance(user.balance, amount)
            user.balance = round2(user.balance - amount)
            self.save_users(users)

        logger.info("balance_debited", email=email, amount=str(amount), balance=str(user.balance))
        return user.balance

    def credit(self, email: str, amount: Any) -> Decimal:
        amount = positive_amount(amount)
        with self.store.locked(USERS):
            users = self.load_users()
            user = find_user(users, email)
            if user is None:
                raise UserNotFound(email)
            user.balance = round2(user.balance + amount)
            self.save_users(users)

        logger.info("balance_credited", email=email, amount=str(amount), balance=str(user.balance))
        return user.balance

    def register(self, name: str, email: str, password: str) -> PublicUser:
        if not name or not email or not password:
            raise ValidationFailed("Name, email and password are required")

        password_hash = hash_password(password, self.bcrypt_rounds)
        with self.store.locked(USERS):
            users = self.load_users()
            if find_user(users, email) is not None:
                raise EmailTaken(email)
            user = User(
                id=new_id(),
                name=name,
                email=email,
                password_hash=password_hash,
                balance=ZERO,
            )
            users.append(user)
            self.save_users(users)

        logger.info("user_registered", user_id=user.id, email=email)
        return user.public()

    def login(self, email: str, password: str) -> PublicUser:
        if not email or not password:
            raise ValidationFailed("Email and password are required")
        user = self.get_user(email)
        if not verify_password(password, user.password_hash):
            logger.info("login_failed", email=email)
            raise InvalidCredentials()
        return user.public()
