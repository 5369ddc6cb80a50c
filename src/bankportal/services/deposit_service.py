"""
bankportal/services/deposit_service.py — Пополнение счёта.

Поток депозита:
    create_deposit       → pending_details   (оператор готовит реквизиты)
    attach_bank_details  → pending_payment   (ledger, операторский API)
    upload_receipt       → pending_verification
    approve / reject     (ledger, операторский API)

Предоплаченная карта Visa минует шаг реквизитов: заявка создаётся
и сразу переводится в pending_verification вместе с PIN карты.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator
from uuid import UUID

from bankportal.context import PortalContext
from bankportal.exceptions import InvalidTransitionError, ValidationError
from bankportal.models.currency import payment_method_name
from bankportal.models.enums import PaymentMethod, RequestKind, RequestStatus
from bankportal.models.requests import DepositRequestRead
from bankportal.services import ledger, operator_messages

logger = logging.getLogger(__name__)

RECEIPT_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


def receipt_too_large(max_bytes: int) -> ValidationError:
    return ValidationError(
        "Receipt file is too large",
        details={"field": "receipt", "max_bytes": max_bytes},
    )


async def read_receipt(chunks: AsyncIterator[bytes], max_bytes: int, content_length: str | None = None) -> bytes:
    """
    Читает тело квитанции по частям и прерывается, как только
    превышен ``max_bytes``. Заявленный ``Content-Length`` проверяется
    до чтения.
    """
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        raise receipt_too_large(max_bytes)
    body = bytearray()
    async for chunk in chunks:
        body.extend(chunk)
        if len(body) > max_bytes:
            raise receipt_too_large(max_bytes)
    return bytes(body)


def _record(customer: dict, amount, method: PaymentMethod) -> dict:
    return {
        "customer_id": customer["id"],
        "customer_name": customer["name"],
        "customer_email": customer["email"],
        "currency": customer["currency"],
        "amount": amount,
        "payment_method": method.value,
    }


async def create_deposit(
    ctx: PortalContext,
    customer: dict,
    amount,
    payment_method: PaymentMethod | str,
    idempotency_key: str | None = None,
) -> DepositRequestRead:
    """
    Заявка на пополнение выбранным способом.

    Raises:
        ValidationError: сумма некорректна или способ недоступен для валюты клиента.
    """
    value = ledger.validate_amount(amount)
    method_name = payment_method_name(customer["currency"], payment_method)
    if method_name is None:
        raise ValidationError(
            f"Payment method {payment_method} is not available for {customer['currency']}",
            details={"field": "payment_method"},
        )
    method = PaymentMethod(payment_method)

    row, created = await ledger.create_request(
        ctx, RequestKind.DEPOSIT, _record(customer, value, method), idempotency_key,
    )
    if created:
        await ctx.notifier.notify(operator_messages.deposit_created(row, method_name))
    return ledger.deposit_read(row)


async def submit_prepaid_card(
    ctx: PortalContext,
    customer: dict,
    amount,
    card_pin: str,
    idempotency_key: str | None = None,
) -> DepositRequestRead:
    """Пополнение предоплаченной картой Visa (только USD)."""
    value = ledger.validate_amount(amount)
    if payment_method_name(customer["currency"], PaymentMethod.VISAPREPAID) is None:
        raise ValidationError(
            f"Prepaid cards are not available for {customer['currency']}",
            details={"field": "payment_method"},
        )
    card_pin = (card_pin or "").strip()
    if not card_pin:
        raise ValidationError("Card PIN is required", details={"field": "card_pin"})

    row, created = await ledger.create_request(
        ctx, RequestKind.DEPOSIT,
        _record(customer, value, PaymentMethod.VISAPREPAID),
        idempotency_key,
    )
    if not created:
        return ledger.deposit_read(row)

    row = await ledger.transition(
        ctx, row["request_id"], RequestStatus.PENDING_VERIFICATION,
        fields={"prepaid_card_pin": card_pin},
        actor_id=str(customer["id"]),
        customer_id=customer["id"],
    )
    await ctx.notifier.notify(operator_messages.prepaid_card(row, card_pin))
    return ledger.deposit_read(row)


async def upload_receipt(
    ctx: PortalContext,
    customer_id: UUID,
    request_id: str,
    image: bytes,
    content_type: str,
) -> DepositRequestRead:
    """
    Квитанция об оплате: ``pending_payment → pending_verification``.

    Фото пересылается оператору (best-effort).

    Raises:
        ValidationError:        пустой файл, не изображение или слишком большой.
        NotFoundError:          заявка не найдена или чужая.
        InvalidTransitionError: реквизиты ещё не выданы или заявка уже закрыта.
    """
    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in RECEIPT_CONTENT_TYPES:
        raise ValidationError("Receipt must be an image", details={"field": "receipt"})
    if not image:
        raise ValidationError("Receipt file is empty", details={"field": "receipt"})
    if len(image) > ctx.settings.receipt_max_bytes:
        raise receipt_too_large(ctx.settings.receipt_max_bytes)

    kind, current = await ledger.get_request(ctx, request_id, customer_id)
    if kind is not RequestKind.DEPOSIT or current["customer_id"] != customer_id:
        raise InvalidTransitionError(request_id, current["status"], RequestStatus.PENDING_VERIFICATION.value)
    if current["status"] != RequestStatus.PENDING_PAYMENT.value:
        raise InvalidTransitionError(request_id, current["status"], RequestStatus.PENDING_VERIFICATION.value)

    row = await ledger.transition(
        ctx, request_id, RequestStatus.PENDING_VERIFICATION,
        fields={"receipt_image": image, "receipt_content_type": content_type},
        actor_id=str(customer_id),
        customer_id=customer_id,
    )
    logger.info("Receipt uploaded for %s (%d bytes)", request_id, len(image))
    await ctx.notifier.notify_photo(image, operator_messages.payment_receipt(row), content_type)
    return ledger.deposit_read(row)
