"""
bankportal/events.py — NATS Event Publisher.

Публикует доменные события портала в NATS:
    • ``bank.customer.registered``    — новый клиент зарегистрирован
    • ``bank.request.created``        — создана заявка (депозит / вывод / P2P)
    • ``bank.request.transitioned``   — заявка сменила статус

Graceful degradation: если NATS не настроен или недоступен — событие
пропускается с записью в лог (не ломает основной бизнес-процесс).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient

logger = logging.getLogger(__name__)


class EventPublisher:
    """Публикация JSON-событий в NATS."""

    def __init__(self, url: str = "") -> None:
        self._url = url
        self._nc: NATSClient | None = None

    @property
    def connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    async def connect(self) -> NATSClient | None:
        """Подключается к NATS (если задан URL и ещё не подключён)."""
        if not self._url:
            return None
        if self.connected:
            return self._nc
        try:
            self._nc = await nats.connect(self._url, max_reconnect_attempts=3)
            logger.info("NATS publisher connected: %s", self._url)
            return self._nc
        except Exception as exc:
            logger.warning("NATS connect failed (events will be skipped): %s", exc)
            self._nc = None
            return None

    async def disconnect(self) -> None:
        """Закрывает соединение с NATS."""
        if self.connected:
            await self._nc.drain()
            logger.info("NATS publisher disconnected")
        self._nc = None

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        """
        Публикует JSON-событие в NATS.

        Args:
            subject: Тема сообщения (e.g. ``bank.request.created``).
            data: Payload (сериализуется в JSON).
        """
        if not self.connected:
            logger.debug("NATS unavailable — skipping event %s", subject)
            return
        try:
            payload = json.dumps(data, default=str).encode("utf-8")
            await self._nc.publish(subject, payload)
            logger.info("NATS event published: %s", subject)
        except Exception as exc:
            logger.warning("NATS publish failed for %s: %s", subject, exc)

    # ── Удобные функции для домена портала ───────────────────────────────

    async def emit_customer_registered(self, customer_id: str, tag: str, currency: str) -> None:
        await self.publish("bank.customer.registered", {
            "event": "customer.registered",
            "customer_id": customer_id,
            "tag": tag,
            "currency": currency,
        })

    async def emit_request_created(self, kind: str, request_id: str, status: str) -> None:
        await self.publish("bank.request.created", {
            "event": "request.created",
            "kind": kind,
            "request_id": request_id,
            "status": status,
        })

    async def emit_request_transitioned(self, kind: str, request_id: str, previous: str, status: str) -> None:
        await self.publish("bank.request.transitioned", {
            "event": "request.transitioned",
            "kind": kind,
            "request_id": request_id,
            "previous": previous,
            "status": status,
        })
