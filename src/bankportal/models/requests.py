"""
bankportal/models/requests.py — Модели заявок реестра (депозит, вывод, P2P).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from bankportal.models.common import PortalBase
from bankportal.models.enums import (
    Currency,
    P2PType,
    PaymentMethod,
    RequestKind,
    RequestStatus,
)


# ── P2P ───────────────────────────────────────────────────────────────────

class P2PParty(PortalBase):
    """Сторона P2P-заявки: клиент (customer_id задан) или специальный тег."""
    tag: str
    name: str
    customer_id: UUID | None = None
    is_special_tag: bool = False


class P2PRequestCreate(PortalBase):
    """Тело запроса: recipient — тег или email, повторно разрешается на сервере."""
    type: P2PType
    recipient: str = Field(..., min_length=1, max_length=255)
    amount: Decimal


class P2PRequestRead(PortalBase):
    request_id: str
    type: P2PType
    from_party: P2PParty
    to_party: P2PParty
    amount: Decimal
    currency: Currency
    is_special_tag: bool = False
    special_tag_id: UUID | None = None
    status: RequestStatus
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Депозиты ──────────────────────────────────────────────────────────────

class DepositRequestCreate(PortalBase):
    amount: Decimal
    payment_method: PaymentMethod


class PrepaidDepositCreate(PortalBase):
    amount: Decimal
    card_pin: str = Field(..., min_length=4, max_length=32)


class DepositRequestRead(PortalBase):
    request_id: str
    customer_id: UUID
    customer_name: str
    currency: Currency
    amount: Decimal
    payment_method: PaymentMethod
    status: RequestStatus
    bank_details: dict | None = None
    has_receipt: bool = False
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Выводы ────────────────────────────────────────────────────────────────

class WithdrawalRequestCreate(PortalBase):
    amount: Decimal
    withdrawal_account_id: UUID


class WithdrawalRequestRead(PortalBase):
    request_id: str
    customer_id: UUID
    customer_name: str
    currency: Currency
    amount: Decimal
    withdrawal_account: dict
    status: RequestStatus
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Статус и действия оператора ───────────────────────────────────────────

class RequestStatusRead(PortalBase):
    """Ответ для поллинга статуса заявки."""
    request_id: str
    kind: RequestKind
    status: RequestStatus
    bank_details: dict | None = None
    rejection_reason: str | None = None
    updated_at: datetime | None = None


class BankDetailsAttach(PortalBase):
    bank_details: dict[str, str] = Field(..., min_length=1)


class RequestRejection(PortalBase):
    reason: str | None = Field(default=None, max_length=1000)


class CustomerRequests(PortalBase):
    deposits: list[DepositRequestRead] = Field(default_factory=list)
    withdrawals: list[WithdrawalRequestRead] = Field(default_factory=list)
    p2p: list[P2PRequestRead] = Field(default_factory=list)
