"""
bankportal/models/common.py — Базовые типы домена портала.
"""

from pydantic import BaseModel


class PortalBase(BaseModel):
    """Базовая Pydantic-модель для схем портала."""

    model_config = {"str_strip_whitespace": True}
