"""
bankportal/context.py — Контейнер зависимостей сервисного слоя.

Создаётся в lifespan приложения и передаётся сервисам явно:
хранилище, канал оператора, публикатор событий, аудит и настройки.
"""

from __future__ import annotations

from bankportal.adapters.telegram_client import TelegramNotifier
from bankportal.config import PortalSettings
from bankportal.events import EventPublisher
from bankportal.services.audit_logger import AuditLogger


class PortalContext:

    def __init__(
        self,
        settings: PortalSettings,
        store,
        notifier: TelegramNotifier,
        events: EventPublisher | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.notifier = notifier
        self.events = events or EventPublisher()
        self.audit = audit or AuditLogger(store)

    async def open(self) -> None:
        await self.store.open()
        await self.notifier.open()
        await self.events.connect()

    async def close(self) -> None:
        await self.events.disconnect()
        await self.notifier.close()
        await self.store.close()
