"""
bankportal/api/activity.py — История операций, расходы по месяцам, уведомления.
"""

from fastapi import APIRouter, Depends, Query

from bankportal.context import PortalContext
from bankportal.dependencies import get_context, get_current_customer
from bankportal.models.activity import MonthlySpending, NotificationSummary, TransactionRead
from bankportal.services import activity_service

router = APIRouter(tags=["activity"])


@router.get("/transactions", response_model=list[TransactionRead], summary="Последние операции")
async def transactions(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await activity_service.list_transactions(ctx, customer["id"])


@router.get("/spending", response_model=list[MonthlySpending], summary="Расходы по месяцам")
async def spending(
    months: int = Query(activity_service.SPENDING_MONTHS, ge=1, le=24),
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await activity_service.monthly_spending(ctx, customer["id"], months)


@router.get("/notifications", response_model=NotificationSummary, summary="Непрочитанные уведомления")
async def notifications(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    return await activity_service.notification_summary(ctx, customer["id"])


@router.post("/notifications/read", summary="Отметить все уведомления прочитанными")
async def mark_read(
    customer: dict = Depends(get_current_customer),
    ctx: PortalContext = Depends(get_context),
):
    count = await activity_service.mark_notifications_read(ctx, customer["id"])
    return {"marked": count}
