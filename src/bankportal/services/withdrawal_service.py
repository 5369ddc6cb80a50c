"""
bankportal/services/withdrawal_service.py — Вывод средств.

Проверка баланса и создание заявки выполняются одной условной записью
(``insert_withdrawal_if_funded``), поэтому два параллельных вывода не
могут оба пройти проверку на одном и том же балансе.
"""

from __future__ import annotations

import logging
from uuid import UUID

from bankportal.context import PortalContext
from bankportal.exceptions import InsufficientFundsError, NotFoundError
from bankportal.models.enums import RequestKind
from bankportal.models.requests import WithdrawalRequestRead
from bankportal.services import ledger, operator_messages

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    "id", "bank_name", "holder_name", "iban", "bic",
    "account_number", "sort_code", "routing_number",
)


def _snapshot(account: dict) -> dict:
    """Копия реквизитов на момент заявки (счёт потом может быть удалён)."""
    snapshot = {name: account.get(name) for name in SNAPSHOT_FIELDS}
    snapshot["id"] = str(snapshot["id"])
    return snapshot


async def create_withdrawal(
    ctx: PortalContext,
    customer: dict,
    amount,
    withdrawal_account_id: UUID,
    idempotency_key: str | None = None,
) -> WithdrawalRequestRead:
    """
    Заявка на вывод на сохранённый счёт клиента.

    Raises:
        ValidationError:        сумма некорректна.
        NotFoundError:          счёт вывода не найден у клиента.
        InsufficientFundsError: сумма больше баланса.
    """
    value = ledger.validate_amount(amount)

    account = await ctx.store.customers.get_withdrawal_account(customer["id"], withdrawal_account_id)
    if account is None:
        raise NotFoundError("Withdrawal account", str(withdrawal_account_id))

    record = {
        "customer_id": customer["id"],
        "customer_name": customer["name"],
        "currency": customer["currency"],
        "amount": value,
        "withdrawal_account": _snapshot(account),
    }
    row, created = await ledger.create_request(
        ctx, RequestKind.WITHDRAWAL, record, idempotency_key,
        insert=ctx.store.requests.insert_withdrawal_if_funded,
    )

    if row is None:
        latest = await ctx.store.customers.get_by_id(customer["id"])
        available = latest["balance"] if latest else customer["balance"]
        logger.info("Withdrawal of %s declined for %s: balance %s", value, customer["id"], available)
        raise InsufficientFundsError(str(value), str(available))

    if created:
        latest = await ctx.store.customers.get_by_id(customer["id"])
        balance = latest["balance"] if latest else customer["balance"]
        await ctx.notifier.notify(operator_messages.withdrawal_created(row, balance))
    return ledger.withdrawal_read(row)
