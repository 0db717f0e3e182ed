"""
Top-up workflow.

A balance request starts ``pending`` and is approved or rejected by an admin.
Approval credits the requester exactly once: the credit is applied first and
the request is marked approved only after it succeeds, both under the locks of
the two collections involved.
"""

from typing import Any, Optional

from .accounts import AccountLedger, positive_amount
from .errors import InvalidStatus, TopupNotFound, ValidationFailed
from .log import get_logger
from .models import ApprovalResult, BalanceRequest, ReceiptRef, TopupStatus, new_id, utcnow
from .store import BALANCE_REQUESTS, USERS, RecordStore

logger = get_logger(__name__)


class TopupWorkflow:
    def __init__(self, store: RecordStore, ledger: AccountLedger):
        self.store = store
        self.ledger = ledger

    def load_requests(self) -> list[BalanceRequest]:
        return [BalanceRequest.model_validate(r) for r in self.store.load(BALANCE_REQUESTS)]

    def save_requests(self, requests: list[BalanceRequest]) -> None:
        self.store.save(BALANCE_REQUESTS, [r.to_record() for r in requests])

    def submit(
        self,
        email: str,
        amount: Any,
        method: str,
        receipt: Optional[ReceiptRef],
        gamify_id: Optional[str] = None,
    ) -> BalanceRequest:
        if not email or amount in (None, "") or not method:
            raise ValidationFailed("Email, amount and method are required")
        value = positive_amount(amount)
        if receipt is None:
            raise ValidationFailed("A receipt image is required")

        request = BalanceRequest(
            id=new_id(),
            email=email,
            gamify_id=gamify_id or None,
            amount=value,
            method=method,
            status=TopupStatus.PENDING,
            receipt_filename=receipt.filename,
            receipt_url=receipt.url,
        )
        with self.store.locked(BALANCE_REQUESTS):
            requests = self.load_requests()
            requests.append(request)
            self.save_requests(requests)

        logger.info("topup_submitted", request_id=request.id, email=email, amount=str(value))
        return request

    def approve(self, request_id: str) -> ApprovalResult:
        with self.store.locked(BALANCE_REQUESTS, USERS):
            requests = self.load_requests()
            request = _find(requests, request_id)

            if request.status == TopupStatus.APPROVED:
                logger.info("topup_already_approved", request_id=request_id)
                return ApprovalResult(request=request)
            if not request.can_move_to(TopupStatus.APPROVED):
                raise InvalidStatus(f"Balance request {request_id} is {request.status.value} and cannot be approved")

            balance = self.ledger.credit(request.email, request.amount)
            request.status = TopupStatus.APPROVED
            request.updated_at = utcnow()
            try:
                self.save_requests(requests)
            except Exception:
                # Credit is already durable; the request still reads as unapproved.
                logger.error(
                    "topup_mark_failed_after_credit",
                    request_id=request_id,
                    email=request.email,
                    amount=str(request.amount),
                )
                raise

        logger.info(
            "topup_approved",
            request_id=request_id,
            email=request.email,
            amount=str(request.amount),
            balance=str(balance),
        )
        return ApprovalResult(request=request, balance=balance)

    def reject(self, request_id: str) -> BalanceRequest:
        with self.store.locked(BALANCE_REQUESTS):
            requests = self.load_requests()
            request = _find(requests, request_id)
            if request.status == TopupStatus.REJECTED:
                return request
            if not request.can_move_to(TopupStatus.REJECTED):
                raise InvalidStatus(
                    f"Balance request {request_id} is {request.status.value} and cannot be rejected; "
                    "the credit has already been applied"
                )
            request.status = TopupStatus.REJECTED
            request.updated_at = utcnow()
            self.save_requests(requests)

        logger.info("topup_rejected", request_id=request_id, email=request.email)
        return request

    def list_for_user(self, email: str) -> list[BalanceRequest]:
        return [r for r in self.load_requests() if r.email == email]

    def list_all(self) -> list[BalanceRequest]:
        return self.load_requests()


def _find(requests: list[BalanceRequest], request_id: str) -> BalanceRequest:
    for request in requests:
        if request.id == request_id:
            return request
    raise TopupNotFound(request_id)
