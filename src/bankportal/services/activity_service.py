"""
bankportal/services/activity_service.py — Операции по счёту, расходы, уведомления.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from bankportal.context import PortalContext
from bankportal.exceptions import InsufficientFundsError, NotFoundError
from bankportal.models.activity import (
    MonthlySpending,
    NotificationRead,
    NotificationSummary,
    TransactionCreate,
    TransactionRead,
)
from bankportal.models.enums import TransactionType
from bankportal.services.audit_logger import AuditAction
from bankportal.services.ledger import validate_amount

logger = logging.getLogger(__name__)

TRANSACTIONS_LIMIT = 50
NOTIFICATIONS_LIMIT = 10
SPENDING_MONTHS = 7


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


async def list_transactions(ctx: PortalContext, customer_id: UUID, limit: int = TRANSACTIONS_LIMIT) -> list[TransactionRead]:
    rows = await ctx.store.activity.list_transactions(customer_id, limit)
    return [TransactionRead(**r) for r in rows]


async def monthly_spending(
    ctx: PortalContext,
    customer_id: UUID,
    months: int = SPENDING_MONTHS,
    now: datetime | None = None,
) -> list[MonthlySpending]:
    """
    Сумма списаний по календарным месяцам за последние ``months`` месяцев.

    Старые первыми; месяц без списаний — 0. Текущий месяц входит в окно.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    first_year, first_month = _shift_month(now.year, now.month, -(months - 1))
    since = datetime(first_year, first_month, 1, tzinfo=timezone.utc)

    totals = await ctx.store.activity.monthly_debits(customer_id, since)

    result = []
    for offset in range(months):
        year, month = _shift_month(first_year, first_month, offset)
        amount = totals.get((year, month), Decimal("0"))
        result.append(MonthlySpending(month=f"{year:04d}-{month:02d}", amount=amount))
    return result


async def notification_summary(ctx: PortalContext, customer_id: UUID) -> NotificationSummary:
    items = await ctx.store.activity.list_unread_notifications(customer_id, NOTIFICATIONS_LIMIT)
    count = await ctx.store.activity.count_unread_notifications(customer_id)
    return NotificationSummary(unread_count=count, items=[NotificationRead(**n) for n in items])


async def mark_notifications_read(ctx: PortalContext, customer_id: UUID) -> int:
    return await ctx.store.activity.mark_notifications_read(customer_id)


async def record_transaction(ctx: PortalContext, customer_id: UUID, data: TransactionCreate) -> TransactionRead:
    """
    Проводка оператора: баланс меняется той же записью.

    Raises:
        NotFoundError:          клиент не найден.
        InsufficientFundsError: списание больше баланса.
    """
    amount = validate_amount(data.amount)
    customer = await ctx.store.customers.get_by_id(customer_id)
    if customer is None:
        raise NotFoundError("Customer", str(customer_id))

    row = await ctx.store.activity.record_transaction(customer_id, data.type.value, amount, data.description)
    if row is None:
        latest = await ctx.store.customers.get_by_id(customer_id)
        raise InsufficientFundsError(str(amount), str(latest["balance"]) if latest else None)

    logger.info("Recorded %s of %s for customer %s", data.type.value, amount, customer_id)
    await ctx.audit.log(
        AuditAction.TRANSACTION_RECORD, "customer", str(customer_id),
        actor_id="operator",
        details={"type": data.type.value, "amount": str(amount), "description": data.description},
    )
    level = "success" if data.type is TransactionType.CREDIT else "info"
    await ctx.store.activity.create_notification(
        customer_id, f"transaction_{data.type.value}", data.description,
        f"{data.type.value.capitalize()} of {amount} {customer['currency']}", level,
    )
    return TransactionRead(**row)
