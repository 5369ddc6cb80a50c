"""
bankportal/models/customer.py — Модели клиента и счетов вывода.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, field_validator

from bankportal.models.common import PortalBase
from bankportal.models.enums import Currency, CustomerStatus

PIN_PATTERN = r"^\d{4,6}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class CustomerCreate(PortalBase):
    """Схема регистрации нового клиента."""
    name: str = Field(..., min_length=3, max_length=255, examples=["Alice Martin"])
    email: str = Field(..., pattern=EMAIL_PATTERN, examples=["alice@example.com"])
    phone: str = Field(..., min_length=10, max_length=32, examples=["+49 151 2345 6789"])
    address: str = Field(default="", max_length=512)
    currency: Currency = Field(default=Currency.EUR)
    pin: str = Field(..., pattern=PIN_PATTERN)
    tag: str | None = Field(default=None, description="Desired handle without @; generated when omitted")

    @field_validator("name")
    @classmethod
    def _full_name(cls, v: str) -> str:
        parts = v.split()
        if len(parts) < 2 or len(parts[0]) < 2:
            raise ValueError("Name must contain first and last name")
        return v

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, v: str) -> str:
        digits = "".join(ch for ch in v if ch.isdigit() or ch == "+")
        if len(digits) < 10:
            raise ValueError("Phone number must contain at least 10 digits")
        return v


class LoginRequest(PortalBase):
    email: str
    pin: str


class PinChange(PortalBase):
    current_pin: str
    new_pin: str
    confirm_pin: str


class TagChange(PortalBase):
    new_tag: str = Field(..., description="New handle without @")


class CustomerStatusUpdate(PortalBase):
    status: CustomerStatus


class WithdrawalAccountCreate(PortalBase):
    """Реквизиты счёта для вывода. Набор обязательных полей зависит от валюты."""
    bank_name: str = Field(..., min_length=2, max_length=255)
    holder_name: str = Field(..., min_length=2, max_length=255)
    iban: str | None = None
    bic: str | None = None
    account_number: str | None = None
    sort_code: str | None = None
    routing_number: str | None = None


class WithdrawalAccountRead(PortalBase):
    id: UUID
    bank_name: str
    holder_name: str
    iban: str | None = None
    bic: str | None = None
    account_number: str | None = None
    sort_code: str | None = None
    routing_number: str | None = None
    created_at: datetime | None = None


class CustomerRead(PortalBase):
    """Данные клиента для личного кабинета (без PIN)."""
    id: UUID
    name: str
    email: str
    phone: str = ""
    address: str = ""
    tag: str
    currency: Currency
    balance: Decimal = Decimal("0")
    status: CustomerStatus = CustomerStatus.ACTIVE
    account_number: str
    account_details: dict = Field(default_factory=dict)
    withdrawal_accounts: list[WithdrawalAccountRead] = Field(default_factory=list)
    tag_updated_at: datetime | None = None
    created_at: datetime | None = None


class TagAvailability(PortalBase):
    tag: str
    available: bool


class SessionRead(PortalBase):
    """Ответ регистрации/входа. Токен также выставляется в cookie."""
    token: str
    customer: CustomerRead
