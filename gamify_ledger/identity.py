"""
Identity rebind.

Orders and balance requests refer to their owner by email, so an email change
has to be written to three collections. The writes happen in a fixed order
(orders, balance requests, then the user) while all three are locked. A
storage failure part way through leaves the earlier writes in place; the
failure is logged with the step that did not complete.
"""

from typing import Optional

from .accounts import AccountLedger, find_user, find_user_by_id, hash_password
from .errors import EmailTaken, UserNotFound, ValidationFailed
from .log import get_logger
from .models import PublicUser
from .orders import OrderWorkflow
from .store import BALANCE_REQUESTS, ORDERS, USERS, RecordStore
from .topups import TopupWorkflow

logger = get_logger(__name__)


class IdentityRebind:
    def __init__(
        self,
        store: RecordStore,
        ledger: AccountLedger,
        orders: OrderWorkflow,
        topups: TopupWorkflow,
    ):
        self.store = store
        self.ledger = ledger
        self.orders = orders
        self.topups = topups

    def rebind(
        self,
        user_id: str,
        new_email: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> PublicUser:
        if not new_email and not new_password:
            raise ValidationFailed("Nothing to update")

        password_hash = hash_password(new_password, self.ledger.bcrypt_rounds) if new_password else None

        with self.store.locked(USERS, ORDERS, BALANCE_REQUESTS):
            users = self.ledger.load_users()
            user = find_user_by_id(users, user_id)
            if user is None:
                raise UserNotFound(user_id)

            old_email = user.email
            if new_email and new_email != old_email:
                holder = find_user(users, new_email)
                if holder is not None and holder.id != user.id:
                    raise EmailTaken(new_email)

                step = ORDERS
                try:
                    moved_orders = self._move_orders(old_email, new_email)
                    step = BALANCE_REQUESTS
                    moved_requests = self._move_requests(old_email, new_email)
                except Exception:
                    logger.error("rebind_partial_failure", user_id=user_id, step=step)
                    raise
                user.email = new_email
                logger.info(
                    "email_rebound",
                    user_id=user_id,
                    old_email=old_email,
                    new_email=new_email,
                    orders=moved_orders,
                    balance_requests=moved_requests,
                )

            if password_hash:
                user.password_hash = password_hash
                logger.info("password_changed", user_id=user_id)

            try:
                self.ledger.save_users(users)
            except Exception:
                logger.error("rebind_partial_failure", user_id=user_id, step=USERS)
                raise

        return user.public()

    def _move_orders(self, old_email: str, new_email: str) -> int:
        orders = self.orders.load_orders()
        moved = 0
        for order in orders:
            if order.email == old_email:
                order.email = new_email
                moved += 1
        if moved:
            self.orders.save_orders(orders)
        return moved

    def _move_requests(self, old_email: str, new_email: str) -> int:
        requests = self.topups.load_requests()
        moved = 0
        for request in requests:
            if request.email == old_email:
                request.email = new_email
                moved += 1
        if moved:
            self.topups.save_requests(requests)
        return moved
