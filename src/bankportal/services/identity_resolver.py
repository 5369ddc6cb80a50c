"""
bankportal/services/identity_resolver.py — Разрешение адресата по тегу или email.

Порядок поиска фиксирован:
    1. Строка похожа на email (есть ``@`` и ``.``) → клиент по email.
       Найденный email имеет приоритет над совпадением по тегу.
    2. Клиент по каноническому тегу.
    3. Специальный тег по тому же каноническому тегу (без валюты).
    4. Иначе ``TagNotFound``.

Резолвер не знает о текущем клиенте: защита от перевода самому себе
выполняется вызывающим кодом (``lookup_for_customer``, P2P-сервис).
"""

from __future__ import annotations

from uuid import UUID

from bankportal.context import PortalContext
from bankportal.models.tags import (
    CustomerResolution,
    SpecialTagResolution,
    TagNotFound,
    TagResolution,
)
from bankportal.services.tag_directory import canonicalize_tag


def _looks_like_email(query: str) -> bool:
    return "@" in query and "." in query


def _customer_resolution(customer: dict) -> CustomerResolution:
    return CustomerResolution(
        id=customer["id"],
        tag=customer["tag"],
        name=customer["name"],
        currency=customer["currency"],
    )


async def lookup_tag(ctx: PortalContext, query: str | None) -> TagResolution:
    """Разрешает тег или email в клиента, специальный тег или ``TagNotFound``."""
    query = (query or "").strip()
    if not query:
        return TagNotFound()

    if _looks_like_email(query):
        customer = await ctx.store.customers.get_by_email(query)
        if customer is not None:
            return _customer_resolution(customer)

    tag = canonicalize_tag(query)

    customer = await ctx.store.customers.get_by_tag(tag)
    if customer is not None:
        return _customer_resolution(customer)

    special = await ctx.store.tags.get_special_by_tag(tag)
    if special is not None:
        return SpecialTagResolution(
            id=special["id"],
            tag=special["tag"],
            name=special["display_name"],
        )

    return TagNotFound()


def is_self(resolution: TagResolution, customer_id: UUID) -> bool:
    """Разрешение указывает на самого клиента."""
    return isinstance(resolution, CustomerResolution) and resolution.id == customer_id


async def lookup_for_customer(ctx: PortalContext, query: str | None, customer_id: UUID) -> TagResolution:
    """Поиск для экрана P2P: сам клиент в выдачу не попадает."""
    resolution = await lookup_tag(ctx, query)
    if is_self(resolution, customer_id):
        return TagNotFound()
    return resolution
