"""
bankportal/api/account.py — Личный кабинет: профиль, настройки, счета вывода.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from bankportal.context import PortalContext
from bankportal.dependencies import get_context, get_current_customer
from bankportal.models.customer import (
    CustomerRead,
    PinChange,
    TagAvailability,
    TagChange,
    WithdrawalAccountCreate,
    WithdrawalAccountRead,
)
from bankportal.services import customer_service, tag_directory

router = APIRouter(tags=["account"])


@router.get("/me", response_model=CustomerRead, summary="Профиль текущего клиента")
async def me(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await customer_service.get_profile(ctx, customer["id"])


@router.post("/settings/pin", summary="Смена PIN")
async def change_pin(
    body: PinChange,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    await customer_service.change_pin(ctx, customer, body)
    return {"updated": True}


@router.post("/settings/tag", response_model=CustomerRead, summary="Смена тега")
async def change_tag(
    body: TagChange,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    row = await tag_directory.change_tag(ctx, customer["id"], body.new_tag)
    return customer_service.customer_read(row)


@router.get("/tags/available", response_model=TagAvailability, summary="Свободен ли тег")
async def tag_available(
    tag: str = Query(..., min_length=1),
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    canonical = tag_directory.canonicalize_tag(tag)
    available = await tag_directory.is_tag_available(ctx, canonical, exclude_customer_id=customer["id"])
    return TagAvailability(tag=canonical, available=available)


@router.get(
    "/withdrawal-accounts",
    response_model=list[WithdrawalAccountRead],
    summary="Счета для вывода",
)
async def list_withdrawal_accounts(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await customer_service.list_withdrawal_accounts(ctx, customer["id"])


@router.post(
    "/withdrawal-accounts",
    response_model=WithdrawalAccountRead,
    status_code=status.HTTP_201_CREATED,
    summary="Добавить счёт для вывода",
)
async def add_withdrawal_account(
    body: WithdrawalAccountCreate,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await customer_service.add_withdrawal_account(ctx, customer, body)


@router.delete(
    "/withdrawal-accounts/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Удалить счёт для вывода",
)
async def delete_withdrawal_account(
    account_id: UUID,
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    await customer_service.delete_withdrawal_account(ctx, customer["id"], account_id)
