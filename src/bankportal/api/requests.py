"""
bankportal/api/requests.py — Депозиты, выводы и статус заявок клиента.

Квитанция загружается телом запроса как есть (``Content-Type: image/*``).
"""

from fastapi import APIRouter, Depends, Request, status

from bankportal.context import PortalContext
from bankportal.dependencies import get_context, get_current_customer, idempotency_key
from bankportal.models.requests import (
    CustomerRequests,
    DepositRequestCreate,
    DepositRequestRead,
    PrepaidDepositCreate,
    RequestStatusRead,
    WithdrawalRequestCreate,
    WithdrawalRequestRead,
)
from bankportal.services import deposit_service, ledger, withdrawal_service

router = APIRouter(tags=["requests"])


@router.post(
    "/deposits",
    response_model=DepositRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Заявка на пополнение",
)
async def create_deposit(
    body: DepositRequestCreate,
    customer: dict = Depends(get_current_customer),
    key: str | None = Depends(idempotency_key),
    ctx: PortalContext = Depends(get_context),
):
    return await deposit_service.create_deposit(ctx, customer, body.amount, body.payment_method, key)


@router.post(
    "/deposits/prepaid",
    response_model=DepositRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Пополнение предоплаченной картой",
)
async def submit_prepaid_card(
    body: PrepaidDepositCreate,
    customer: dict = Depends(get_current_customer),
    key: str | None = Depends(idempotency_key),
    ctx: PortalContext = Depends(get_context),
):
    return await deposit_service.submit_prepaid_card(ctx, customer, body.amount, body.card_pin, key)


@router.post(
    "/deposits/{request_id}/receipt",
    response_model=DepositRequestRead,
    summary="Загрузить квитанцию об оплате",
)
async def upload_receipt(
    request_id: str,
    request: Request,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    image = await deposit_service.read_receipt(
        request.stream(), ctx.settings.receipt_max_bytes, request.headers.get("content-length"),
    )
    content_type = request.headers.get("content-type", "")
    return await deposit_service.upload_receipt(ctx, customer["id"], request_id, image, content_type)


@router.post(
    "/withdrawals",
    response_model=WithdrawalRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Заявка на вывод",
)
async def create_withdrawal(
    body: WithdrawalRequestCreate,
    customer: dict = Depends(get_current_customer),
    key: str | None = Depends(idempotency_key),
    ctx: PortalContext = Depends(get_context),
):
    return await withdrawal_service.create_withdrawal(
        ctx, customer, body.amount, body.withdrawal_account_id, key,
    )


@router.get("/requests", response_model=CustomerRequests, summary="Мои заявки")
async def list_requests(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await ledger.list_customer_requests(ctx, customer["id"])


@router.get("/requests/{request_id}", response_model=RequestStatusRead, summary="Статус заявки")
async def get_request_status(
    request_id: str,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await ledger.get_request_status(ctx, request_id, customer["id"])
