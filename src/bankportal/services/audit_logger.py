"""
bankportal/services/audit_logger.py — Аудит-лог портала.

Действия:
    • customer.register, customer.login, customer.tag_change,
      customer.pin_change, customer.status_change
    • request.create, request.transition
    • special_tag.create, transaction.record

Пишет в ``audit_log`` хранилища; при ошибке записи событие
буферизуется в памяти и может быть дописано через ``flush_buffer``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Типы аудируемых действий."""

    # Клиенты
    CUSTOMER_REGISTER = "customer.register"
    CUSTOMER_LOGIN = "customer.login"
    CUSTOMER_TAG_CHANGE = "customer.tag_change"
    CUSTOMER_PIN_CHANGE = "customer.pin_change"
    CUSTOMER_STATUS_CHANGE = "customer.status_change"

    # Заявки
    REQUEST_CREATE = "request.create"
    REQUEST_TRANSITION = "request.transition"

    # Оператор
    SPECIAL_TAG_CREATE = "special_tag.create"
    TRANSACTION_RECORD = "transaction.record"


class AuditLogger:
    """
    Аудит-логгер портала.

    Поддерживает:
    - запись через хранилище (``store.write_audit``)
    - In-memory буфер (fallback)
    """

    def __init__(self, store, max_buffer_size: int = 10000) -> None:
        self._store = store
        self._buffer: list[dict[str, Any]] = []
        self._max_buffer = max_buffer_size

    async def log(
        self,
        action: AuditAction | str,
        entity_type: str,
        entity_id: str,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Записать аудит-событие."""
        action_str = action.value if isinstance(action, AuditAction) else action
        record = {
            "action": action_str,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "actor_id": str(actor_id) if actor_id is not None else None,
            "details": details or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            await self._store.write_audit(record)
        except Exception as e:
            logger.warning("Audit DB write failed, buffering: %s", e)
            self._write_to_buffer(record)

    def _write_to_buffer(self, record: dict[str, Any]) -> None:
        """Fallback в in-memory буфер."""
        if len(self._buffer) >= self._max_buffer:
            self._buffer.pop(0)
        self._buffer.append(record)

    async def flush_buffer(self) -> int:
        """Попытаться записать буферизованные события в БД."""
        if not self._buffer:
            return 0
        flushed = 0
        remaining: list[dict[str, Any]] = []
        for record in self._buffer:
            try:
                await self._store.write_audit(record)
                flushed += 1
            except Exception:
                remaining.append(record)
        self._buffer = remaining
        if flushed:
            logger.info("Flushed %d audit records from buffer", flushed)
        return flushed

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)
