"""
bankportal/models/enums.py — Перечисления домена портала.

Содержит enum'ы клиентов и заявок:
    • Currency — валюта счёта клиента
    • CustomerStatus — статус клиента (frozen блокирует вход)
    • PaymentMethod — способ пополнения
    • P2PType — направление P2P-заявки (send / request)
    • RequestKind — вид заявки в реестре
    • RequestStatus — статус заявки
    • TransactionType — движение по счёту
"""

from enum import Enum


class Currency(str, Enum):
    """Валюта счёта. Фиксируется при регистрации."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class CustomerStatus(str, Enum):
    """Статус клиента."""
    ACTIVE = "active"
    FROZEN = "frozen"


class PaymentMethod(str, Enum):
    """Способ пополнения счёта."""
    CHIME = "chime"
    APPLEPAY = "applepay"
    VISAPREPAID = "visaprepaid"
    SEPA = "sepa"
    BANKTRANSFER = "banktransfer"


class P2PType(str, Enum):
    """Намерение клиента: отправить деньги или запросить их."""
    SEND = "send"
    REQUEST = "request"


class RequestKind(str, Enum):
    """Вид заявки в реестре."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    P2P = "p2p"


class RequestStatus(str, Enum):
    """Статус заявки. Депозиты проходят дополнительные pending_* шаги."""
    PENDING = "pending"
    PENDING_DETAILS = "pending_details"
    PENDING_PAYMENT = "pending_payment"
    PENDING_VERIFICATION = "pending_verification"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
