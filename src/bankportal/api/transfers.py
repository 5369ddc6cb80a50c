"""
bankportal/api/transfers.py — Поиск получателя и P2P-заявки.

Тело P2P-заявки несёт строку получателя, а не результат поиска:
сервер разрешает её заново, поэтому клиент не может подставить
произвольные id или имя стороны.
"""

from fastapi import APIRouter, Depends, Query, status

from bankportal.context import PortalContext
from bankportal.dependencies import get_context, get_current_customer, idempotency_key
from bankportal.models.requests import P2PRequestCreate, P2PRequestRead
from bankportal.models.tags import TagResolution
from bankportal.services import identity_resolver, p2p_service

router = APIRouter(tags=["transfers"])


@router.get("/lookup", response_model=TagResolution, summary="Найти получателя по тегу или email")
async def lookup(
    q: str = Query("", max_length=255),
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await identity_resolver.lookup_for_customer(ctx, q, customer["id"])


@router.post(
    "/p2p",
    response_model=P2PRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать P2P-заявку (send / request)",
)
async def create_p2p(
    body: P2PRequestCreate,
    customer: dict = Depends(get_current_customer),
    key: str | None = Depends(idempotency_key),
    ctx: PortalContext = Depends(get_context),
):
    counterparty = await identity_resolver.lookup_tag(ctx, body.recipient)
    return await p2p_service.create_p2p_request(ctx, customer, body.type, counterparty, body.amount, key)
