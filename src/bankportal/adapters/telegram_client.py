"""
bankportal/adapters/telegram_client.py — Канал уведомлений оператора (Telegram Bot API).

Оператор получает сообщения о новых клиентах и заявках в чат бота
и одобряет движение денег вне этого сервиса. Доставка best-effort:
``notify`` / ``notify_photo`` логируют ошибку и возвращают False,
исключение наружу не выходит.
"""

from __future__ import annotations

import logging

import httpx

from bankportal.config import PortalSettings

logger = logging.getLogger(__name__)


class TelegramError(Exception):
    """Telegram API вернул ошибку или недоступен."""


class TelegramNotifier:
    """Отправка сообщений и фото в чат оператора."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: PortalSettings) -> "TelegramNotifier":
        return cls(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_admin_chat_id,
            api_url=settings.telegram_api_url,
            timeout=settings.telegram_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        if not self.enabled:
            logger.warning("⚠️  Telegram not configured — operator notifications will be skipped")

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._bot_token}/{method}"

    async def _call(self, method: str, **kwargs) -> dict:
        if self._client is None:
            await self.open()
        try:
            response = await self._client.post(self._url(method), **kwargs)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TelegramError(f"{method} failed: {exc}") from exc
        if not body.get("ok", False):
            raise TelegramError(f"{method} rejected: {body.get('description', 'unknown error')}")
        return body

    async def send_message(self, text: str) -> dict:
        """sendMessage в чат оператора (Markdown)."""
        return await self._call(
            "sendMessage",
            json={
                "chat_id": self._chat_id,
                "text": text,
                "parse_mode": "Markdown",
                "disable_notification": False,
            },
        )

    async def send_photo(
        self,
        photo: bytes,
        caption: str,
        filename: str = "receipt.jpg",
        content_type: str = "image/jpeg",
    ) -> dict:
        """sendPhoto (multipart) с подписью."""
        return await self._call(
            "sendPhoto",
            data={
                "chat_id": self._chat_id,
                "caption": caption,
                "parse_mode": "Markdown",
                "disable_notification": "false",
            },
            files={"photo": (filename, photo, content_type)},
        )

    async def notify(self, text: str) -> bool:
        """Best-effort текстовое уведомление оператора."""
        if not self.enabled:
            logger.info("Telegram disabled — skipping operator message")
            return False
        try:
            await self.send_message(text)
            return True
        except Exception as exc:
            logger.warning("Telegram error (message dropped): %s", exc)
            return False

    async def notify_photo(self, photo: bytes, caption: str, content_type: str = "image/jpeg") -> bool:
        """Best-effort фото с подписью (чек об оплате)."""
        if not self.enabled:
            logger.info("Telegram disabled — skipping operator photo")
            return False
        try:
            await self.send_photo(photo, caption, content_type=content_type)
            return True
        except Exception as exc:
            logger.warning("Telegram photo error (photo dropped): %s", exc)
            return False
