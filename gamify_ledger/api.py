from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .config import settings
from .errors import ErrorKind
from .log import get_logger, log_context, setup_logging
from .models import (
    CheckoutRequest,
    ContactRequest,
    Failure,
    LoginRequest,
    OrderStatusUpdate,
    Outcome,
    RegisterRequest,
    UserUpdateRequest,
)
from .service import LedgerService

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EMAIL_TAKEN: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATUS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORAGE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class FailedOutcome(Exception):
    def __init__(self, failure: Failure):
        self.failure = failure
        super().__init__(failure.message)


def unwrap(outcome: Outcome) -> Any:
    if not outcome.ok:
        raise FailedOutcome(outcome.error)
    return outcome.value


def dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [dump(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    return value


def require_email(email: Optional[str]) -> str:
    if not email:
        raise FailedOutcome(Failure(kind=ErrorKind.VALIDATION, code="email_required", message="Email is required"))
    return email


def create_app(service: Optional[LedgerService] = None) -> FastAPI:
    setup_logging()
    ledger_service = service or LedgerService()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
    )
    app.state.ledger_service = ledger_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FailedOutcome)
    async def failed_outcome_handler(request: Request, exc: FailedOutcome) -> JSONResponse:
        failure = exc.failure
        code = STATUS_BY_KIND[failure.kind]
        log = logger.error if code >= 500 else logger.info
        log("request_failed", path=request.url.path, kind=failure.kind.value, code=failure.code)
        return JSONResponse(
            status_code=code,
            content={"ok": False, "kind": failure.kind.value, "code": failure.code, "message": failure.message},
        )

    @app.get("/api/health", tags=["System"])
    def health_check():
        return {"ok": True, "message": "Gamify API is running"}

    # Auth

    @app.post("/api/auth/register", tags=["Auth"])
    def register(body: RegisterRequest):
        user = unwrap(ledger_service.register_user(body.name, body.email, body.password))
        return {"ok": True, "user": dump(user)}

    @app.post("/api/auth/login", tags=["Auth"])
    def login(body: LoginRequest):
        user = unwrap(ledger_service.login(body.email, body.password))
        return {"ok": True, "user": dump(user)}

    @app.get("/api/me", tags=["Auth"])
    def me(email: Optional[str] = None):
        user = unwrap(ledger_service.get_user(require_email(email)))
        return {"ok": True, "user": dump(user)}

    @app.post("/api/contact", tags=["Contact"])
    def contact(body: ContactRequest):
        unwrap(ledger_service.submit_contact(body.name, body.email, body.message))
        return {"ok": True}

    # Orders

    @app.post("/api/orders", tags=["Orders"])
    def checkout(body: CheckoutRequest):
        with log_context(customer=body.customer):
            result = unwrap(ledger_service.checkout(body.customer or "", body.items))
        return {
            "ok": True,
            "orderId": result.order.id,
            "order": dump(result.order),
            "balance": dump(result.balance),
        }

    @app.get("/api/my-orders", tags=["Orders"])
    def my_orders(email: Optional[str] = None):
        orders = unwrap(ledger_service.list_orders_for_user(require_email(email)))
        return {"ok": True, "orders": dump(orders)}

    # Balance top-ups

    @app.post("/api/balance-topup", tags=["Top-ups"])
    def balance_topup(
        email: str = Form(""),
        amount: str = Form(""),
        method: str = Form(""),
        gamifyId: Optional[str] = Form(None),
        receipt: Optional[UploadFile] = File(None),
    ):
        stored = None
        if receipt is not None and receipt.filename:
            stored = unwrap(ledger_service.store_receipt(receipt.filename, receipt.file))

        outcome = ledger_service.submit_topup(email, amount, method, stored, gamify_id=gamifyId)
        if not outcome.ok and stored is not None:
            ledger_service.discard_receipt(stored)
        request = unwrap(outcome)
        return {"ok": True, "request": dump(request)}

    @app.get("/api/my-balance-requests", tags=["Top-ups"])
    def my_balance_requests(email: Optional[str] = None):
        requests = unwrap(ledger_service.list_topups_for_user(require_email(email)))
        return {"ok": True, "requests": dump(requests)}

    # Admin

    @app.get("/api/admin/orders", tags=["Admin"])
    def admin_orders():
        return {"ok": True, "orders": dump(unwrap(ledger_service.list_all_orders()))}

    @app.patch("/api/admin/orders/{order_id}/status", tags=["Admin"])
    def admin_order_status(order_id: str, body: OrderStatusUpdate):
        order = unwrap(ledger_service.set_order_status(order_id, body.status))
        return {"ok": True, "order": dump(order)}

    @app.get("/api/admin/contacts", tags=["Admin"])
    def admin_contacts():
        return {"ok": True, "messages": dump(unwrap(ledger_service.list_contacts()))}

    @app.get("/api/admin/balance-requests", tags=["Admin"])
    def admin_balance_requests():
        return {"ok": True, "requests": dump(unwrap(ledger_service.list_all_topups()))}

    @app.patch("/api/admin/balance-requests/{request_id}/approve", tags=["Admin"])
    def admin_approve(request_id: str):
        result = unwrap(ledger_service.approve_topup(request_id))
        body = {"ok": True, "request": dump(result.request)}
        if result.balance is not None:
            body["balance"] = dump(result.balance)
        return body

    @app.patch("/api/admin/balance-requests/{request_id}/reject", tags=["Admin"])
    def admin_reject(request_id: str):
        request = unwrap(ledger_service.reject_topup(request_id))
        return {"ok": True, "request": dump(request)}

    @app.get("/api/admin/users", tags=["Admin"])
    def admin_users():
        return {"ok": True, "users": dump(unwrap(ledger_service.list_users()))}

    @app.patch("/api/admin/users/{user_id}", tags=["Admin"])
    def admin_update_user(user_id: str, body: UserUpdateRequest):
        user = unwrap(ledger_service.rebind_user_email(user_id, new_email=body.email, new_password=body.password))
        return {"ok": True, "user": dump(user)}

    app.mount("/uploads", StaticFiles(directory=ledger_service.receipts.upload_dir), name="uploads")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
