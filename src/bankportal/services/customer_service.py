"""
bankportal/services/customer_service.py — Клиенты: регистрация, вход, профиль.

PIN хранится только в виде bcrypt-хеша. Сессия — подписанный JWT
(claim ``sub`` = id клиента), который API кладёт в HTTP-only cookie.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from bankportal.config import PortalSettings
from bankportal.context import PortalContext
from bankportal.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from bankportal.models.currency import account_fields
from bankportal.models.customer import (
    PIN_PATTERN,
    CustomerCreate,
    CustomerRead,
    PinChange,
    WithdrawalAccountCreate,
    WithdrawalAccountRead,
)
from bankportal.models.enums import Currency, CustomerStatus
from bankportal.services import operator_messages
from bankportal.services.audit_logger import AuditAction
from bankportal.services.tag_directory import (
    generate_tag,
    is_tag_available,
    validate_handle,
)

logger = logging.getLogger(__name__)

EUR_BANK_CODE = "37040044"
EUR_BIC = "DEUTDEDBFRA"
USD_ROUTING_NUMBER = "021000021"


# ═══════════════════════════════════════════════════════════════════════════
# PIN
# ═══════════════════════════════════════════════════════════════════════════


def hash_pin(pin: str) -> str:
    """Хеширует PIN с помощью bcrypt."""
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(plain: str, hashed: str) -> bool:
    """Сравнивает введённый PIN с хешем из БД."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ═══════════════════════════════════════════════════════════════════════════
# СЕССИЯ
# ═══════════════════════════════════════════════════════════════════════════


def create_session_token(settings: PortalSettings, customer_id: UUID) -> str:
    """Подписанный токен сессии клиента."""
    exp = datetime.now(timezone.utc) + timedelta(minutes=settings.session_expire_minutes)
    payload = {"sub": str(customer_id), "exp": exp, "type": "session"}
    return jwt.encode(payload, settings.session_secret_key, algorithm=settings.session_algorithm)


def decode_session_token(settings: PortalSettings, token: str) -> UUID:
    """
    Проверяет подпись и срок токена.

    Returns:
        id клиента из claim ``sub``.

    Raises:
        AuthenticationError: токен невалиден или просрочен.
    """
    try:
        payload = jwt.decode(token, settings.session_secret_key, algorithms=[settings.session_algorithm])
        return UUID(payload["sub"])
    except (JWTError, KeyError, ValueError) as exc:
        raise AuthenticationError(f"Invalid session: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════════
# РЕКВИЗИТЫ
# ═══════════════════════════════════════════════════════════════════════════


def _digits(count: int) -> str:
    """Случайное число из ``count`` цифр без ведущего нуля."""
    return str(10 ** (count - 1) + secrets.randbelow(9 * 10 ** (count - 1)))


def generate_account_number() -> str:
    """Внутренний номер счёта: 8 цифр времени + 3 случайные."""
    return f"{int(time.time() * 1000) % 10**8:08d}{secrets.randbelow(1000):03d}"


def generate_account_details(currency: Currency | str) -> dict:
    """Банковские координаты клиента в его валюте."""
    currency = Currency(currency)
    if currency is Currency.EUR:
        return {"iban": f"DE{_digits(2)}{EUR_BANK_CODE}{_digits(10)}", "bic": EUR_BIC}
    if currency is Currency.GBP:
        code = _digits(6)
        return {"sort_code": f"{code[0:2]}-{code[2:4]}-{code[4:6]}", "account_number": _digits(8)}
    return {"routing_number": USD_ROUTING_NUMBER, "account_number": _digits(10)}


def customer_read(customer: dict, withdrawal_accounts: list[dict] | None = None) -> CustomerRead:
    return CustomerRead(
        id=customer["id"],
        name=customer["name"],
        email=customer["email"],
        phone=customer.get("phone", ""),
        address=customer.get("address", ""),
        tag=customer["tag"],
        currency=customer["currency"],
        balance=customer["balance"],
        status=customer["status"],
        account_number=customer["account_number"],
        account_details=customer.get("account_details") or {},
        withdrawal_accounts=[WithdrawalAccountRead(**a) for a in withdrawal_accounts or []],
        tag_updated_at=customer.get("tag_updated_at"),
        created_at=customer.get("created_at"),
    )


# ═══════════════════════════════════════════════════════════════════════════
# РЕГИСТРАЦИЯ
# ═══════════════════════════════════════════════════════════════════════════


async def _pick_generated_tag(ctx: PortalContext, name: str) -> str:
    for _ in range(ctx.settings.tag_generation_attempts):
        tag = generate_tag(name)
        if await is_tag_available(ctx, tag):
            return tag
        logger.info("Generated tag %s is taken, retrying", tag)
    raise ConflictError("Could not generate a unique tag, please choose one", details={"field": "tag"})


async def register(ctx: PortalContext, data: CustomerCreate) -> dict:
    """
    Регистрирует клиента.

    Тег: указанный клиентом (проверка формата и занятости) или
    сгенерированный из имени с ограниченным числом повторов. Гонку
    между проверкой и записью закрывает уникальность в хранилище:
    для сгенерированного тега запись повторяется с новым тегом.

    Raises:
        ConflictError:   email или тег заняты.
        ValidationError: неверный формат тега.
    """
    email = data.email.lower()
    if await ctx.store.customers.get_by_email(email) is not None:
        raise ConflictError(f"Customer with email '{email}' already exists", details={"field": "email"})

    chosen = validate_handle(data.tag) if data.tag else None
    if chosen and not await is_tag_available(ctx, chosen):
        raise ConflictError(f"Tag {chosen} is already taken", details={"field": "tag", "tag": chosen})

    record = {
        "name": data.name,
        "email": email,
        "phone": data.phone,
        "address": data.address,
        "currency": data.currency.value,
        "account_details": generate_account_details(data.currency),
        "pin_hash": hash_pin(data.pin),
    }

    row = None
    for attempt in range(1, ctx.settings.tag_generation_attempts + 1):
        record["tag"] = chosen or await _pick_generated_tag(ctx, data.name)
        record["account_number"] = generate_account_number()
        try:
            row = await ctx.store.customers.create(record)
            break
        except ConflictError as exc:
            field = exc.details.get("field")
            if field == "account_number" or (field == "tag" and chosen is None):
                logger.warning("Registration retry %d: %s collision", attempt, field)
                continue
            raise
    if row is None:
        raise ConflictError("Could not complete registration, please retry", details={"field": "tag"})

    logger.info("Registered customer %s (%s, %s)", row["id"], row["tag"], row["currency"])

    await ctx.store.activity.create_notification(
        row["id"], "welcome", "Welcome to Our Bank!", "Your account has been created successfully.", "info",
    )
    await ctx.audit.log(
        AuditAction.CUSTOMER_REGISTER, "customer", str(row["id"]),
        actor_id=str(row["id"]), details={"tag": row["tag"], "currency": row["currency"]},
    )
    await ctx.events.emit_customer_registered(str(row["id"]), row["tag"], row["currency"])
    await ctx.notifier.notify(operator_messages.new_customer(row))
    return row


# ═══════════════════════════════════════════════════════════════════════════
# ВХОД
# ═══════════════════════════════════════════════════════════════════════════


async def authenticate(ctx: PortalContext, email: str, pin: str) -> dict:
    """Вход по email + PIN. Замороженный счёт не пускается."""
    customer = await ctx.store.customers.get_by_email((email or "").strip())
    if customer is None or not verify_pin(pin or "", customer["pin_hash"]):
        raise AuthenticationError("Invalid email or PIN")

    if customer["status"] == CustomerStatus.FROZEN.value:
        raise AuthorizationError("Your account has been frozen. Please contact support.", details={"status": "frozen"})

    await ctx.audit.log(
        AuditAction.CUSTOMER_LOGIN, "customer", str(customer["id"]), actor_id=str(customer["id"]),
    )
    return customer


async def load_active_customer(ctx: PortalContext, customer_id: UUID) -> dict:
    """Клиент текущей сессии."""
    customer = await ctx.store.customers.get_by_id(customer_id)
    if customer is None:
        raise AuthenticationError("Session customer not found")
    if customer["status"] == CustomerStatus.FROZEN.value:
        raise AuthorizationError("Your account has been frozen. Please contact support.", details={"status": "frozen"})
    return customer


# ═══════════════════════════════════════════════════════════════════════════
# ПРОФИЛЬ И НАСТРОЙКИ
# ═══════════════════════════════════════════════════════════════════════════


async def get_profile(ctx: PortalContext, customer_id: UUID) -> CustomerRead:
    customer = await ctx.store.customers.get_by_id(customer_id)
    if customer is None:
        raise NotFoundError("Customer", str(customer_id))
    accounts = await ctx.store.customers.list_withdrawal_accounts(customer_id)
    return customer_read(customer, accounts)


async def change_pin(ctx: PortalContext, customer: dict, data: PinChange) -> None:
    """
    Смена PIN клиентом.

    Raises:
        AuthenticationError: текущий PIN неверен.
        ValidationError:     новый PIN не 4-6 цифр или не совпадает с подтверждением.
    """
    if not verify_pin(data.current_pin, customer["pin_hash"]):
        raise AuthenticationError("Current PIN is incorrect")
    if not re.fullmatch(PIN_PATTERN, data.new_pin):
        raise ValidationError("PIN must be 4-6 digits", details={"field": "new_pin"})
    if data.new_pin != data.confirm_pin:
        raise ValidationError("New PINs do not match", details={"field": "confirm_pin"})

    await ctx.store.customers.update_pin(customer["id"], hash_pin(data.new_pin), updated_by="customer")
    logger.info("Customer %s changed PIN", customer["id"])
    await ctx.audit.log(
        AuditAction.CUSTOMER_PIN_CHANGE, "customer", str(customer["id"]), actor_id=str(customer["id"]),
    )


async def set_status(ctx: PortalContext, customer_id: UUID, status: CustomerStatus) -> CustomerRead:
    """Заморозка / разморозка клиента оператором."""
    row = await ctx.store.customers.update_status(customer_id, CustomerStatus(status).value)
    if row is None:
        raise NotFoundError("Customer", str(customer_id))
    logger.info("Customer %s status set to %s", customer_id, row["status"])
    await ctx.audit.log(
        AuditAction.CUSTOMER_STATUS_CHANGE, "customer", str(customer_id),
        actor_id="operator", details={"status": row["status"]},
    )
    return customer_read(row)


# ═══════════════════════════════════════════════════════════════════════════
# СЧЕТА ВЫВОДА
# ═══════════════════════════════════════════════════════════════════════════


async def add_withdrawal_account(
    ctx: PortalContext, customer: dict, data: WithdrawalAccountCreate,
) -> WithdrawalAccountRead:
    """Сохраняет только реквизиты, относящиеся к валюте клиента."""
    required = account_fields(customer["currency"])
    account = {"bank_name": data.bank_name, "holder_name": data.holder_name}
    for name in required:
        value = (getattr(data, name) or "").strip()
        if not value:
            raise ValidationError(
                f"{name} is required for {customer['currency']} accounts", details={"field": name},
            )
        account[name] = value

    row = await ctx.store.customers.add_withdrawal_account(customer["id"], account)
    logger.info("Customer %s added withdrawal account %s", customer["id"], row["id"])
    return WithdrawalAccountRead(**row)


async def list_withdrawal_accounts(ctx: PortalContext, customer_id: UUID) -> list[WithdrawalAccountRead]:
    rows = await ctx.store.customers.list_withdrawal_accounts(customer_id)
    return [WithdrawalAccountRead(**r) for r in rows]


async def delete_withdrawal_account(ctx: PortalContext, customer_id: UUID, account_id: UUID) -> None:
    if not await ctx.store.customers.delete_withdrawal_account(customer_id, account_id):
        raise NotFoundError("Withdrawal account", str(account_id))
    logger.info("Customer %s deleted withdrawal account %s", customer_id, account_id)
