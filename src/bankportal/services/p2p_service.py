"""
bankportal/services/p2p_service.py — Протокол P2P-заявок.

Заявка всегда хранит пару сторон ``from → to`` (куда и откуда движутся
деньги), независимо от намерения:

    send     инициатор → контрагент
    request  контрагент → инициатор

Поле ``type`` сообщает оператору намерение, пары ``from/to`` достаточно
для исполнения. Сторона-специальный тег не имеет customer_id; вместо него
заполняется ``special_tag_id`` и ``is_special_tag``.

Запись — источник истины. Уведомление оператора выполняется после
записи, один раз на заявку, и его ошибка не отменяет создание.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from bankportal.context import PortalContext
from bankportal.exceptions import ValidationError
from bankportal.models.enums import P2PType, RequestKind
from bankportal.models.requests import P2PParty, P2PRequestRead
from bankportal.models.tags import (
    CustomerResolution,
    SpecialTagResolution,
    TagNotFound,
    TagResolution,
)
from bankportal.services import ledger, operator_messages
from bankportal.services.identity_resolver import is_self

logger = logging.getLogger(__name__)


def initiator_party(customer: dict) -> P2PParty:
    return P2PParty(tag=customer["tag"], name=customer["name"], customer_id=customer["id"])


def counterparty_party(resolution: CustomerResolution | SpecialTagResolution) -> P2PParty:
    if isinstance(resolution, SpecialTagResolution):
        return P2PParty(tag=resolution.tag, name=resolution.name, is_special_tag=True)
    return P2PParty(tag=resolution.tag, name=resolution.name, customer_id=resolution.id)


def build_parties(direction: P2PType, initiator: P2PParty, counterparty: P2PParty) -> tuple[P2PParty, P2PParty]:
    """Возвращает ``(from, to)`` по направлению заявки."""
    if P2PType(direction) is P2PType.SEND:
        return initiator, counterparty
    return counterparty, initiator


async def create_p2p_request(
    ctx: PortalContext,
    initiator: dict,
    direction: P2PType,
    counterparty: TagResolution,
    amount,
    idempotency_key: str | None = None,
) -> P2PRequestRead:
    """
    Создать P2P-заявку в статусе ``pending``.

    Валюта заявки — валюта инициатора. Достаточность баланса для ``send``
    не проверяется: это решение оператора при подтверждении.

    Raises:
        ValidationError: сумма <= 0, контрагент не найден или это сам инициатор.
    """
    value: Decimal = ledger.validate_amount(amount)

    if isinstance(counterparty, TagNotFound) or not counterparty.found:
        raise ValidationError("Recipient not found", details={"field": "recipient"})
    if is_self(counterparty, initiator["id"]):
        raise ValidationError("You cannot send a request to yourself", details={"field": "recipient"})

    direction = P2PType(direction)
    from_party, to_party = build_parties(direction, initiator_party(initiator), counterparty_party(counterparty))
    special = isinstance(counterparty, SpecialTagResolution)

    record = {
        "customer_id": initiator["id"],
        "type": direction.value,
        "from_customer_id": from_party.customer_id,
        "from_tag": from_party.tag,
        "from_name": from_party.name,
        "to_customer_id": to_party.customer_id,
        "to_tag": to_party.tag,
        "to_name": to_party.name,
        "amount": value,
        "currency": initiator["currency"],
        "is_special_tag": special,
        "special_tag_id": counterparty.id if special else None,
    }
    row, created = await ledger.create_request(ctx, RequestKind.P2P, record, idempotency_key)

    if created:
        await ctx.notifier.notify(operator_messages.p2p_created(row))
    return ledger.p2p_read(row)
