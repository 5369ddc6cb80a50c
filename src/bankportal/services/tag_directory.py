"""
bankportal/services/tag_directory.py — Каталог тегов.

Тег — публичный адрес клиента или специального тега вида ``@handle``.
Каноническая форма: нижний регистр, ведущий ``@``. Только она хранится
и сравнивается. Теги клиентов и специальные теги живут в одном
пространстве имён; уникальность обеспечивает хранилище
(``tag_directory``), проверка доступности нужна для понятного ответа UI.
"""

from __future__ import annotations

import logging
import re
import secrets
from uuid import UUID

from bankportal.context import PortalContext
from bankportal.exceptions import ConflictError, NotFoundError, ValidationError
from bankportal.models.tags import SpecialTagRead
from bankportal.services.audit_logger import AuditAction

logger = logging.getLogger(__name__)

HANDLE_RE = re.compile(r"^[a-zA-Z0-9]{3,}$")


def canonicalize_tag(raw: str | None) -> str:
    """``"Foo123"`` / ``"@foo123"`` → ``"@foo123"``. Пустой ввод → ``""``."""
    if not raw:
        return ""
    tag = raw.strip().lower()
    if not tag:
        return ""
    return tag if tag.startswith("@") else f"@{tag}"


def generate_tag(name: str) -> str:
    """Тег из имени: только буквы и цифры + случайный 4-значный суффикс."""
    clean = re.sub(r"[^a-z0-9]", "", name.lower())
    return f"@{clean}{secrets.randbelow(10_000):04d}"


def validate_handle(raw: str) -> str:
    """
    Проверяет тег, введённый клиентом (с ``@`` или без).

    Returns:
        Каноническую форму.

    Raises:
        ValidationError: меньше 3 символов или есть что-то кроме букв и цифр.
    """
    handle = (raw or "").strip()
    if handle.startswith("@"):
        handle = handle[1:]
    if not HANDLE_RE.match(handle):
        raise ValidationError(
            "Tag must be at least 3 characters (letters and numbers only)",
            details={"field": "tag"},
        )
    return canonicalize_tag(handle)


async def is_tag_available(
    ctx: PortalContext, tag: str, exclude_customer_id: UUID | None = None,
) -> bool:
    """
    Свободен ли тег.

    Проверяются оба пространства (клиенты и специальные теги) на каждом
    вызове. Тег самого ``exclude_customer_id`` считается свободным.
    """
    canonical = canonicalize_tag(tag)
    if not canonical:
        return False

    customer = await ctx.store.customers.get_by_tag(canonical)
    if customer is not None and customer["id"] != exclude_customer_id:
        return False

    special = await ctx.store.tags.get_special_by_tag(canonical)
    if special is not None:
        return False

    return True


async def change_tag(ctx: PortalContext, customer_id: UUID, raw_tag: str) -> dict:
    """
    Смена тега клиента в настройках.

    Raises:
        ValidationError: неверный формат.
        ConflictError:   тег занят (при проверке или при записи).
        NotFoundError:   клиент не найден.
    """
    tag = validate_handle(raw_tag)

    if not await is_tag_available(ctx, tag, exclude_customer_id=customer_id):
        raise ConflictError(f"Tag {tag} is already taken", details={"field": "tag", "tag": tag})

    row = await ctx.store.customers.update_tag(customer_id, tag)
    if row is None:
        raise NotFoundError("Customer", str(customer_id))

    logger.info("Customer %s changed tag to %s", customer_id, tag)
    await ctx.audit.log(
        AuditAction.CUSTOMER_TAG_CHANGE, "customer", str(customer_id),
        actor_id=str(customer_id), details={"tag": tag},
    )
    return row


async def create_special_tag(ctx: PortalContext, raw_tag: str, display_name: str) -> SpecialTagRead:
    """Провизия специального тега (операторский поток)."""
    tag = canonicalize_tag(raw_tag)
    if len(tag) < 2:
        raise ValidationError("Tag must not be empty", details={"field": "tag"})

    row = await ctx.store.tags.create_special(tag, display_name)
    logger.info("Special tag %s provisioned (%s)", tag, display_name)
    await ctx.audit.log(
        AuditAction.SPECIAL_TAG_CREATE, "special_tag", str(row["id"]),
        actor_id="operator", details={"tag": tag},
    )
    return SpecialTagRead(**row)
