import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import ErrorKind
from .money import ZERO, round2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str = "") -> str:
    """Creation-time ordered id with a random suffix so same-millisecond ids differ."""
    return f"{prefix}{int(time.time() * 1000)}-{uuid4().hex[:8]}"


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TopupStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Moves to the current status are no-ops and are not listed.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED}),
    OrderStatus.APPROVED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

TOPUP_TRANSITIONS: dict[TopupStatus, frozenset[TopupStatus]] = {
    TopupStatus.PENDING: frozenset({TopupStatus.APPROVED, TopupStatus.REJECTED}),
    TopupStatus.REJECTED: frozenset({TopupStatus.APPROVED}),
    TopupStatus.APPROVED: frozenset(),
}


class Record(BaseModel):
    """Base for persisted records; JSON keys are camelCase on disk."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class User(Record):
    id: str
    name: str = ""
    email: str
    password_hash: str = ""
    balance: Decimal = Field(default=ZERO, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("balance", mode="before")
    @classmethod
    def _round_balance(cls, value: Any) -> Decimal:
        return round2(value if value is not None else 0)

    def public(self) -> "PublicUser":
        return PublicUser(
            id=self.id,
            name=self.name,
            email=self.email,
            balance=self.balance,
            created_at=self.created_at,
        )


class PublicUser(Record):
    id: str
    name: str
    email: str
    balance: Decimal
    created_at: datetime


class Order(Record):
    id: str
    email: str
    items: list[dict[str, Any]]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("total", mode="before")
    @classmethod
    def _round_total(cls, value: Any) -> Decimal:
        return round2(value)

    def can_move_to(self, status: OrderStatus) -> bool:
        return status == self.status or status in ORDER_TRANSITIONS[self.status]


class BalanceRequest(Record):
    id: str
    email: str
    gamify_id: Optional[str] = None
    amount: Decimal
    method: str
    status: TopupStatus = TopupStatus.PENDING
    receipt_filename: Optional[str] = None
    receipt_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _round_amount(cls, value: Any) -> Decimal:
        return round2(value)

    def can_move_to(self, status: TopupStatus) -> bool:
        return status == self.status or status in TOPUP_TRANSITIONS[self.status]


class ContactMessage(Record):
    id: str
    name: str
    email: str
    message: str
    created_at: datetime = Field(default_factory=utcnow)


class ReceiptRef(BaseModel):
    filename: str
    url: str


class CheckoutResult(BaseModel):
    order: Order
    balance: Decimal


class ApprovalResult(BaseModel):
    request: BalanceRequest
    balance: Optional[Decimal] = None


class Failure(BaseModel):
    kind: ErrorKind
    code: str
    message: str


class Outcome(BaseModel):
    """Result of a call across the workflow boundary: a value or a typed failure."""

    ok: bool
    value: Any = None
    error: Optional[Failure] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, code: str, message: str) -> "Outcome":
        return cls(ok=False, error=Failure(kind=kind, code=code, message=message))


# Request bodies for the HTTP surface.


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ContactRequest(BaseModel):
    name: str = ""
    email: str = ""
    message: str = ""


class CheckoutRequest(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    customer: Optional[str] = Field(None, description="Email of the logged-in customer")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "items": [{"id": "p-1", "name": "Gift card", "price": 25.0}],
            "customer": "player@example.com",
        }
    })


class OrderStatusUpdate(BaseModel):
    status: str = ""


class UserUpdateRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
