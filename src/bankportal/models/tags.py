"""
bankportal/models/tags.py — Специальные теги и результат разрешения адресата.

Результат ``lookup`` — закрытый набор вариантов:
    • TagNotFound            — {found: false}
    • CustomerResolution     — тег/email клиента (валюта клиента)
    • SpecialTagResolution   — специальный тег (без валюты)
"""

from datetime import datetime
from typing import Literal, Union
from uuid import UUID

from pydantic import Field

from bankportal.models.common import PortalBase
from bankportal.models.enums import Currency


class SpecialTagCreate(PortalBase):
    """Провизия специального тега оператором."""
    tag: str = Field(..., min_length=1, max_length=64, examples=["merchant"])
    display_name: str = Field(..., min_length=1, max_length=255, examples=["Merchant Support"])


class SpecialTagRead(PortalBase):
    id: UUID
    tag: str
    display_name: str
    created_at: datetime | None = None


class TagNotFound(PortalBase):
    found: Literal[False] = False


class CustomerResolution(PortalBase):
    found: Literal[True] = True
    kind: Literal["customer"] = "customer"
    id: UUID
    tag: str
    name: str
    currency: Currency


class SpecialTagResolution(PortalBase):
    found: Literal[True] = True
    kind: Literal["special"] = "special"
    id: UUID
    tag: str
    name: str
    currency: None = None


TagResolution = Union[CustomerResolution, SpecialTagResolution, TagNotFound]
