"""
bankportal/models/activity.py — Операции по счёту и in-app уведомления.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from bankportal.models.common import PortalBase
from bankportal.models.enums import TransactionType


class TransactionCreate(PortalBase):
    """Проводка, которую оператор фиксирует после исполнения заявки."""
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=255)


class TransactionRead(PortalBase):
    id: UUID
    customer_id: UUID
    type: TransactionType
    amount: Decimal
    description: str
    created_at: datetime | None = None


class MonthlySpending(PortalBase):
    month: str
    amount: Decimal


class NotificationRead(PortalBase):
    id: UUID
    type: str
    title: str
    message: str
    level: str = "info"
    read: bool = False
    created_at: datetime | None = None


class NotificationSummary(PortalBase):
    unread_count: int
    items: list[NotificationRead] = Field(default_factory=list)
