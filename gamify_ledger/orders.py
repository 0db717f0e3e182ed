"""
Order workflow.

Checkout snapshots the cart, debits the buyer and records a ``pending``
order. The debit and the order are two separate saves (users, then orders)
made while both collections are locked.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Union

from .accounts import AccountLedger
from .errors import EmptyCart, InvalidStatus, InvalidTotal, OrderNotFound, ValidationFailed
from .log import get_logger
from .models import CheckoutResult, Order, OrderStatus, new_id, utcnow
from .money import ZERO, price_or_zero, round2
from .store import ORDERS, USERS, RecordStore

logger = get_logger(__name__)


def cart_total(items: list[dict[str, Any]]) -> Decimal:
    try:
        total = sum((price_or_zero(item.get("price")) for item in items), ZERO)
    except InvalidOperation:
        # Infinity - Infinity
        raise InvalidTotal(Decimal("NaN"))
    if not total.is_finite() or total <= ZERO:
        raise InvalidTotal(total)
    total = round2(total)
    if total <= ZERO:
        raise InvalidTotal(total)
    return total


class OrderWorkflow:
    def __init__(self, store: RecordStore, ledger: AccountLedger):
        self.store = store
        self.ledger = ledger

    def load_orders(self) -> list[Order]:
        return [Order.model_validate(r) for r in self.store.load(ORDERS)]

    def save_orders(self, orders: list[Order]) -> None:
        self.store.save(ORDERS, [o.to_record() for o in orders])

    def checkout(self, email: str, items: list[dict[str, Any]]) -> CheckoutResult:
        if not items:
            raise EmptyCart()
        if not email:
            raise ValidationFailed("You must be logged in to place an order")
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ValidationFailed("Cart items must be objects with a price")
        snapshot = [dict(item) for item in items]
        total = cart_total(snapshot)

        with self.store.locked(USERS, ORDERS):
            balance = self.ledger.debit(email, total)

            order = Order(
                id=new_id("ORD-"),
                email=email,
                items=snapshot,
                total=total,
                status=OrderStatus.PENDING,
            )
            try:
                orders = self.load_orders()
                orders.append(order)
                self.save_orders(orders)
            except Exception:
                logger.error(
                    "checkout_order_save_failed_after_debit",
                    email=email,
                    order_id=order.id,
                    total=str(total),
                )
                raise

        logger.info("checkout_completed", order_id=order.id, email=email, total=str(total), balance=str(balance))
        return CheckoutResult(order=order, balance=balance)

    def list_for_user(self, email: str) -> list[Order]:
        return [o for o in self.load_orders() if o.email == email]

    def list_all(self) -> list[Order]:
        return self.load_orders()

    def set_status(self, order_id: str, status: Union[str, OrderStatus]) -> Order:
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidStatus(f"Unknown order status {status!r}")

        with self.store.locked(ORDERS):
            orders = self.load_orders()
            order = next((o for o in orders if o.id == order_id), None)
            if order is None:
                raise OrderNotFound(order_id)
            if order.status == target:
                return order
            if not order.can_move_to(target):
                raise InvalidStatus(f"Cannot move order from {order.status.value} to {target.value}")
            previous = order.status
            order.status = target
            order.updated_at = utcnow()
            self.save_orders(orders)

        logger.info("order_status_changed", order_id=order_id, previous=previous.value, status=target.value)
        return order
