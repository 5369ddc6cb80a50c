"""
bankportal/services/ledger.py — Реестр заявок и их жизненный цикл.

Каждая заявка (депозит, вывод, P2P) — отдельная запись со статусом.
Переходы только вперёд по графу ``TRANSITIONS``; ``approved`` и
``rejected`` терминальны. Переход выполняется условной записью
в хранилище, поэтому два конкурирующих действия оператора не могут
вернуть заявку в пройденный статус.

Формат идентификатора: ``<PREFIX>-<цифры>`` (``DEP-``, ``WD-``, ``P2P-``).
"""

from __future__ import annotations

import logging
import secrets
import time
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable
from uuid import UUID

from bankportal.context import PortalContext
from bankportal.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from bankportal.models.currency import CENT, MAX_AMOUNT
from bankportal.models.enums import RequestKind, RequestStatus
from bankportal.models.requests import (
    CustomerRequests,
    DepositRequestRead,
    P2PParty,
    P2PRequestRead,
    RequestStatusRead,
    WithdrawalRequestRead,
)
from bankportal.services.audit_logger import AuditAction

logger = logging.getLogger(__name__)

S = RequestStatus

PREFIXES: dict[RequestKind, str] = {
    RequestKind.DEPOSIT: "DEP",
    RequestKind.WITHDRAWAL: "WD",
    RequestKind.P2P: "P2P",
}

INITIAL_STATUS: dict[RequestKind, RequestStatus] = {
    RequestKind.DEPOSIT: S.PENDING_DETAILS,
    RequestKind.WITHDRAWAL: S.PENDING,
    RequestKind.P2P: S.PENDING,
}

TRANSITIONS: dict[RequestKind, dict[RequestStatus, frozenset[RequestStatus]]] = {
    RequestKind.DEPOSIT: {
        S.PENDING_DETAILS: frozenset({S.PENDING_PAYMENT, S.PENDING_VERIFICATION, S.REJECTED}),
        S.PENDING_PAYMENT: frozenset({S.PENDING_VERIFICATION, S.REJECTED}),
        S.PENDING_VERIFICATION: frozenset({S.APPROVED, S.REJECTED}),
    },
    RequestKind.WITHDRAWAL: {
        S.PENDING: frozenset({S.APPROVED, S.REJECTED}),
    },
    RequestKind.P2P: {
        S.PENDING: frozenset({S.APPROVED, S.REJECTED}),
    },
}

TERMINAL_STATUSES = frozenset({S.APPROVED, S.REJECTED})


# ═══════════════════════════════════════════════════════════════════════════
# ГРАФ ПЕРЕХОДОВ
# ═══════════════════════════════════════════════════════════════════════════


def can_transition(kind: RequestKind, current: RequestStatus | str, target: RequestStatus | str) -> bool:
    return RequestStatus(target) in TRANSITIONS[kind].get(RequestStatus(current), frozenset())


def allowed_sources(kind: RequestKind, target: RequestStatus) -> list[str]:
    """Статусы, из которых допустим переход в ``target``."""
    return [src.value for src, targets in TRANSITIONS[kind].items() if target in targets]


def open_statuses(kind: RequestKind) -> list[str]:
    """Нетерминальные статусы вида заявки (очередь оператора)."""
    return [status.value for status in TRANSITIONS[kind]]


# ═══════════════════════════════════════════════════════════════════════════
# ИДЕНТИФИКАТОРЫ И СУММЫ
# ═══════════════════════════════════════════════════════════════════════════


def generate_request_id(kind: RequestKind) -> str:
    """``P2P-4821930571234``: 8 цифр времени в мс + 4 случайные цифры."""
    millis = int(time.time() * 1000) % 10**8
    return f"{PREFIXES[kind]}-{millis:08d}{secrets.randbelow(10_000):04d}"


def kind_of(request_id: str) -> RequestKind | None:
    """Вид заявки по префиксу идентификатора."""
    prefix, sep, suffix = (request_id or "").partition("-")
    if not sep or not suffix.isdigit():
        return None
    for kind, known in PREFIXES.items():
        if prefix == known:
            return kind
    return None


def validate_amount(amount) -> Decimal:
    """
    Сумма заявки: конечное число > 0 и < ``MAX_AMOUNT``,
    не больше двух знаков после запятой.

    Raises:
        ValidationError: сумма некорректна.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number", details={"field": "amount"})
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero", details={"field": "amount"})
    if value >= MAX_AMOUNT:
        raise ValidationError(
            "Amount is too large", details={"field": "amount", "max": str(MAX_AMOUNT)},
        )
    try:
        quantized = value.quantize(CENT)
    except InvalidOperation:
        raise ValidationError("Amount must be a number", details={"field": "amount"})
    if value != quantized:
        raise ValidationError("Amount must have at most two decimal places", details={"field": "amount"})
    return quantized


# ═══════════════════════════════════════════════════════════════════════════
# МАППИНГ СТРОКИ → Pydantic-МОДЕЛЬ
# ═══════════════════════════════════════════════════════════════════════════


def deposit_read(row: dict) -> DepositRequestRead:
    return DepositRequestRead(
        request_id=row["request_id"],
        customer_id=row["customer_id"],
        customer_name=row["customer_name"],
        currency=row["currency"],
        amount=row["amount"],
        payment_method=row["payment_method"],
        status=row["status"],
        bank_details=row.get("bank_details"),
        has_receipt=row.get("receipt_image") is not None,
        rejection_reason=row.get("rejection_reason"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def withdrawal_read(row: dict) -> WithdrawalRequestRead:
    return WithdrawalRequestRead(
        request_id=row["request_id"],
        customer_id=row["customer_id"],
        customer_name=row["customer_name"],
        currency=row["currency"],
        amount=row["amount"],
        withdrawal_account=row["withdrawal_account"],
        status=row["status"],
        rejection_reason=row.get("rejection_reason"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def p2p_read(row: dict) -> P2PRequestRead:
    special = row["is_special_tag"]
    return P2PRequestRead(
        request_id=row["request_id"],
        type=row["type"],
        from_party=P2PParty(
            tag=row["from_tag"],
            name=row["from_name"],
            customer_id=row["from_customer_id"],
            is_special_tag=special and row["from_customer_id"] is None,
        ),
        to_party=P2PParty(
            tag=row["to_tag"],
            name=row["to_name"],
            customer_id=row["to_customer_id"],
            is_special_tag=special and row["to_customer_id"] is None,
        ),
        amount=row["amount"],
        currency=row["currency"],
        is_special_tag=special,
        special_tag_id=row.get("special_tag_id"),
        status=row["status"],
        rejection_reason=row.get("rejection_reason"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


READERS = {
    RequestKind.DEPOSIT: deposit_read,
    RequestKind.WITHDRAWAL: withdrawal_read,
    RequestKind.P2P: p2p_read,
}


# ═══════════════════════════════════════════════════════════════════════════
# СОЗДАНИЕ
# ═══════════════════════════════════════════════════════════════════════════


async def create_request(
    ctx: PortalContext,
    kind: RequestKind,
    record: dict,
    idempotency_key: str | None = None,
    insert: Callable[[dict], Awaitable[dict | None]] | None = None,
) -> tuple[dict | None, bool]:
    """
    Find-or-create заявки.

    ``record`` содержит поля заявки без request_id/status. При наличии
    ``idempotency_key`` повтор с тем же ключом возвращает уже созданную
    заявку. ``insert`` позволяет подменить вставку условной
    (например, с проверкой баланса).

    Returns:
        ``(row, created)``; ``(None, False)``, если условная вставка
        отклонила запись.
    """
    repo = ctx.store.requests
    customer_id = record["customer_id"]

    if idempotency_key:
        existing = await repo.get_by_idempotency_key(kind, customer_id, idempotency_key)
        if existing is not None:
            logger.info("Idempotent replay of %s for customer %s", existing["request_id"], customer_id)
            return existing, False

    if insert is None:
        async def insert(candidate: dict) -> dict | None:
            return await repo.insert(kind, candidate)

    for attempt in range(1, ctx.settings.request_id_attempts + 1):
        candidate = {
            **record,
            "request_id": generate_request_id(kind),
            "status": INITIAL_STATUS[kind].value,
            "idempotency_key": idempotency_key,
        }
        try:
            row = await insert(candidate)
        except ConflictError as exc:
            if exc.details.get("field") != "request_id":
                raise
            logger.warning("Request id collision on %s (attempt %d)", candidate["request_id"], attempt)
            continue

        if row is None:
            if idempotency_key:
                existing = await repo.get_by_idempotency_key(kind, customer_id, idempotency_key)
                if existing is not None:
                    return existing, False
            return None, False

        logger.info("Created %s request %s (%s)", kind.value, row["request_id"], row["status"])
        await ctx.audit.log(
            AuditAction.REQUEST_CREATE, kind.value, row["request_id"],
            actor_id=str(customer_id),
            details={"amount": str(row["amount"]), "currency": row["currency"]},
        )
        await ctx.events.emit_request_created(kind.value, row["request_id"], row["status"])
        return row, True

    raise ConflictError("Could not allocate a unique request id", details={"field": "request_id"})


# ═══════════════════════════════════════════════════════════════════════════
# ПЕРЕХОДЫ
# ═══════════════════════════════════════════════════════════════════════════


def _owned_by(kind: RequestKind, row: dict, customer_id: UUID) -> bool:
    if row["customer_id"] == customer_id:
        return True
    return kind is RequestKind.P2P and customer_id in (row["from_customer_id"], row["to_customer_id"])


async def get_request(
    ctx: PortalContext, request_id: str, customer_id: UUID | None = None,
) -> tuple[RequestKind, dict]:
    """Заявка по идентификатору; для клиента — только своя."""
    kind = kind_of(request_id)
    if kind is None:
        raise NotFoundError("Request", request_id)
    row = await ctx.store.requests.get(kind, request_id)
    if row is None or (customer_id is not None and not _owned_by(kind, row, customer_id)):
        raise NotFoundError("Request", request_id)
    return kind, row


async def transition(
    ctx: PortalContext,
    request_id: str,
    target: RequestStatus,
    fields: dict | None = None,
    actor_id: str = "operator",
    customer_id: UUID | None = None,
    expected_kind: RequestKind | None = None,
) -> dict:
    """
    Перевести заявку в ``target``.

    Raises:
        NotFoundError:          заявки нет (или она чужая для ``customer_id``).
        InvalidTransitionError: переход не предусмотрен графом из текущего статуса.
    """
    kind, current = await get_request(ctx, request_id, customer_id)
    if expected_kind is not None and kind is not expected_kind:
        raise InvalidTransitionError(request_id, current["status"], target.value)

    sources = allowed_sources(kind, target)
    row = await ctx.store.requests.transition(kind, request_id, sources, target.value, fields)
    if row is None:
        latest = await ctx.store.requests.get(kind, request_id)
        status = latest["status"] if latest else current["status"]
        raise InvalidTransitionError(request_id, status, target.value)

    previous = current["status"]
    logger.info("Request %s: %s → %s (by %s)", request_id, previous, row["status"], actor_id)
    details = {"from": previous, "to": row["status"]}
    if row.get("rejection_reason"):
        details["reason"] = row["rejection_reason"]
    await ctx.audit.log(
        AuditAction.REQUEST_TRANSITION, kind.value, request_id, actor_id=actor_id, details=details,
    )
    await ctx.events.emit_request_transitioned(kind.value, request_id, previous, row["status"])
    return row


async def _notify_customer(ctx: PortalContext, customer_id: UUID, type_: str, title: str, message: str, level: str) -> None:
    try:
        await ctx.store.activity.create_notification(customer_id, type_, title, message, level)
    except Exception as exc:
        logger.warning("In-app notification failed for customer %s: %s", customer_id, exc)


async def attach_bank_details(ctx: PortalContext, request_id: str, bank_details: dict) -> DepositRequestRead:
    """Оператор прислал реквизиты: депозит ``pending_details → pending_payment``."""
    if not bank_details:
        raise ValidationError("Bank details must not be empty", details={"field": "bank_details"})
    row = await transition(
        ctx, request_id, S.PENDING_PAYMENT,
        fields={"bank_details": dict(bank_details)},
        expected_kind=RequestKind.DEPOSIT,
    )
    await _notify_customer(
        ctx, row["customer_id"], "deposit_details",
        "Payment details ready", f"Payment instructions for {request_id} are available.", "info",
    )
    return deposit_read(row)


async def approve(ctx: PortalContext, request_id: str):
    row = await transition(ctx, request_id, S.APPROVED)
    kind = kind_of(request_id)
    await _notify_customer(
        ctx, row["customer_id"], f"{kind.value}_approved",
        "Request approved", f"Your request {request_id} has been approved.", "success",
    )
    return READERS[kind](row)


async def reject(ctx: PortalContext, request_id: str, reason: str | None = None):
    row = await transition(ctx, request_id, S.REJECTED, fields={"rejection_reason": reason})
    kind = kind_of(request_id)
    message = f"Your request {request_id} has been rejected."
    if reason:
        message += f" Reason: {reason}"
    await _notify_customer(
        ctx, row["customer_id"], f"{kind.value}_rejected", "Request rejected", message, "warning",
    )
    return READERS[kind](row)


# ═══════════════════════════════════════════════════════════════════════════
# ЧТЕНИЕ
# ═══════════════════════════════════════════════════════════════════════════


async def get_request_status(
    ctx: PortalContext, request_id: str, customer_id: UUID | None = None,
) -> RequestStatusRead:
    """Статус для поллинга. Безопасно вызывать многократно."""
    kind, row = await get_request(ctx, request_id, customer_id)
    return RequestStatusRead(
        request_id=row["request_id"],
        kind=kind,
        status=row["status"],
        bank_details=row.get("bank_details"),
        rejection_reason=row.get("rejection_reason"),
        updated_at=row.get("updated_at"),
    )


async def list_customer_requests(ctx: PortalContext, customer_id: UUID, limit: int = 20) -> CustomerRequests:
    repo = ctx.store.requests
    return CustomerRequests(
        deposits=[deposit_read(r) for r in await repo.list_for_customer(RequestKind.DEPOSIT, customer_id, limit)],
        withdrawals=[withdrawal_read(r) for r in await repo.list_for_customer(RequestKind.WITHDRAWAL, customer_id, limit)],
        p2p=[p2p_read(r) for r in await repo.list_for_customer(RequestKind.P2P, customer_id, limit)],
    )


async def list_open_requests(ctx: PortalContext, kind: RequestKind, limit: int = 100) -> list:
    """Очередь оператора: незавершённые заявки вида ``kind``."""
    rows = await ctx.store.requests.list_by_status(kind, open_statuses(kind), limit)
    return [READERS[kind](r) for r in rows]
