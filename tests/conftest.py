"""
Общие фикстуры: контекст портала поверх memory store и фейковый канал оператора.
"""

import pytest
import pytest_asyncio

from bankportal.config import PortalSettings
from bankportal.context import PortalContext
from bankportal.memory_store import MemoryStore
from bankportal.models.customer import CustomerCreate
from bankportal.models.enums import Currency
from bankportal.services import customer_service

OPERATOR_KEY = "test-operator-key"


class FakeNotifier:
    """Записывает сообщения оператору вместо отправки в Telegram."""

    enabled = True

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.photos: list[tuple[bytes, str, str]] = []

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def notify(self, text: str) -> bool:
        self.messages.append(text)
        return True

    async def notify_photo(self, photo: bytes, caption: str, content_type: str = "image/jpeg") -> bool:
        self.photos.append((photo, caption, content_type))
        return True


def make_settings(**overrides) -> PortalSettings:
    values = {
        "app_env": "test",
        "session_secret_key": "test-session-secret",
        "operator_api_key": OPERATOR_KEY,
        "telegram_bot_token": "",
        "telegram_admin_chat_id": "",
        "nats_url": "",
    }
    values.update(overrides)
    return PortalSettings(_env_file=None, **values)


def make_context(**overrides) -> PortalContext:
    return PortalContext(settings=make_settings(**overrides), store=MemoryStore(), notifier=FakeNotifier())


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def ctx():
    return make_context()


async def register_customer(ctx, name, email, tag=None, currency=Currency.EUR, pin="1234"):
    data = CustomerCreate(
        name=name,
        email=email,
        phone="+49 151 2345 6789",
        address="Main Street 1",
        currency=currency,
        pin=pin,
        tag=tag,
    )
    return await customer_service.register(ctx, data)


@pytest_asyncio.fixture
async def alice(ctx):
    return await register_customer(ctx, "Alice Martin", "alice@example.com", tag="alice1234")


@pytest_asyncio.fixture
async def bob(ctx):
    return await register_customer(ctx, "Bob Stone", "bob@example.com", tag="bob5678")
