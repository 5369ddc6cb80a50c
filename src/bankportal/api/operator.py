"""
bankportal/api/operator.py — Операторский API (бот / бэк-офис).

Все эндпоинты требуют заголовок ``X-Operator-Key``. Оператор ведёт
заявки по графу статусов, управляет статусом клиентов, заводит
специальные теги и фиксирует проводки.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from bankportal.context import PortalContext
from bankportal.dependencies import get_context, require_operator
from bankportal.models.activity import TransactionCreate, TransactionRead
from bankportal.models.customer import CustomerRead, CustomerStatusUpdate
from bankportal.models.enums import RequestKind
from bankportal.models.requests import (
    BankDetailsAttach,
    DepositRequestRead,
    P2PRequestRead,
    RequestRejection,
    WithdrawalRequestRead,
)
from bankportal.models.tags import SpecialTagCreate, SpecialTagRead
from bankportal.services import activity_service, customer_service, ledger, tag_directory

router = APIRouter(prefix="/operator", tags=["operator"], dependencies=[Depends(require_operator)])

AnyRequestRead = DepositRequestRead | WithdrawalRequestRead | P2PRequestRead


@router.get("/requests/{kind}", response_model=list[AnyRequestRead], summary="[Operator] Открытые заявки")
async def list_open(kind: RequestKind, ctx: PortalContext = Depends(get_context)):
    return await ledger.list_open_requests(ctx, kind)


@router.post(
    "/requests/{request_id}/bank-details",
    response_model=DepositRequestRead,
    summary="[Operator] Выдать реквизиты для депозита",
)
async def attach_bank_details(
    request_id: str, body: BankDetailsAttach, ctx: PortalContext = Depends(get_context),
):
    return await ledger.attach_bank_details(ctx, request_id, body.bank_details)


@router.post("/requests/{request_id}/approve", response_model=AnyRequestRead, summary="[Operator] Одобрить")
async def approve(request_id: str, ctx: PortalContext = Depends(get_context)):
    return await ledger.approve(ctx, request_id)


@router.post("/requests/{request_id}/reject", response_model=AnyRequestRead, summary="[Operator] Отклонить")
async def reject(request_id: str, body: RequestRejection, ctx: PortalContext = Depends(get_context)):
    return await ledger.reject(ctx, request_id, body.reason)


@router.post(
    "/customers/{customer_id}/status",
    response_model=CustomerRead,
    summary="[Operator] Заморозить / разморозить клиента",
)
async def set_customer_status(
    customer_id: UUID, body: CustomerStatusUpdate, ctx: PortalContext = Depends(get_context),
):
    return await customer_service.set_status(ctx, customer_id, body.status)


@router.post(
    "/customers/{customer_id}/transactions",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="[Operator] Провести операцию по счёту",
)
async def record_transaction(
    customer_id: UUID, body: TransactionCreate, ctx: PortalContext = Depends(get_context),
):
    return await activity_service.record_transaction(ctx, customer_id, body)


@router.get("/special-tags", response_model=list[SpecialTagRead], summary="[Operator] Специальные теги")
async def list_special_tags(ctx: PortalContext = Depends(get_context)):
    rows = await ctx.store.tags.list_special()
    return [SpecialTagRead(**r) for r in rows]


@router.post(
    "/special-tags",
    response_model=SpecialTagRead,
    status_code=status.HTTP_201_CREATED,
    summary="[Operator] Завести специальный тег",
)
async def create_special_tag(body: SpecialTagCreate, ctx: PortalContext = Depends(get_context)):
    return await tag_directory.create_special_tag(ctx, body.tag, body.display_name)
