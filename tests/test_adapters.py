"""
Тесты внешних каналов: Telegram (через httpx.MockTransport), NATS без сервера, аудит.
"""

import json

import httpx
import pytest

from bankportal.adapters.telegram_client import TelegramError, TelegramNotifier
from bankportal.events import EventPublisher
from bankportal.services.audit_logger import AuditAction, AuditLogger
from bankportal.services.operator_messages import escape_markdown, new_customer, p2p_created, withdrawal_created


def _notifier(handler, token="123:ABC", chat_id="42"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramNotifier(token, chat_id, api_url="https://telegram.test", client=client), client


class TestTelegramNotifier:

    @pytest.mark.asyncio
    async def test_send_message_payload(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        notifier, client = _notifier(handler)
        assert await notifier.notify("*hello*") is True

        request = seen[0]
        assert request.url.host == "telegram.test"
        assert request.url.path == "/bot123:ABC/sendMessage"
        body = json.loads(request.content)
        assert body == {"chat_id": "42", "text": "*hello*", "parse_mode": "Markdown", "disable_notification": False}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_send_photo_is_multipart(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        notifier, client = _notifier(handler)
        assert await notifier.notify_photo(b"\x89PNG", "receipt", "image/png") is True
        assert seen[0].url.path.endswith("/sendPhoto")
        assert seen[0].headers["content-type"].startswith("multipart/form-data")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_api_error_raises_on_direct_call(self):
        notifier, client = _notifier(lambda r: httpx.Response(200, json={"ok": False, "description": "chat not found"}))
        with pytest.raises(TelegramError):
            await notifier.send_message("x")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failures_swallowed_by_notify(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        notifier, client = _notifier(handler)
        assert await notifier.notify("x") is False
        assert await notifier.notify_photo(b"img", "x") is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_disabled_without_credentials(self):
        calls = []
        notifier, client = _notifier(lambda r: calls.append(r), token="", chat_id="")
        assert notifier.enabled is False
        assert await notifier.notify("x") is False
        assert calls == []
        await client.aclose()


class TestEventPublisher:

    @pytest.mark.asyncio
    async def test_no_url_disables_publishing(self):
        events = EventPublisher("")
        assert await events.connect() is None
        assert events.connected is False
        await events.emit_request_created("p2p", "P2P-1", "pending")
        await events.disconnect()


class TestAuditLogger:

    @pytest.mark.asyncio
    async def test_buffers_when_store_fails(self):
        class BrokenStore:
            def __init__(self):
                self.records = []
                self.fail = True

            async def write_audit(self, record):
                if self.fail:
                    raise RuntimeError("db down")
                self.records.append(record)

        store = BrokenStore()
        audit = AuditLogger(store)
        await audit.log(AuditAction.REQUEST_CREATE, "p2p", "P2P-1", actor_id="x")
        assert audit.buffer_size == 1

        store.fail = False
        assert await audit.flush_buffer() == 1
        assert audit.buffer_size == 0
        assert store.records[0]["action"] == "request.create"


def test_withdrawal_message_destination_per_currency():
    request = {
        "request_id": "WD-1",
        "customer_name": "Carol King",
        "currency": "GBP",
        "amount": "25",
        "withdrawal_account": {
            "bank_name": "Monzo", "holder_name": "Carol King",
            "account_number": "12345678", "sort_code": "04-00-04",
        },
    }
    text = withdrawal_created(request, "100")
    assert "Sort Code: 04-00-04" in text
    assert "£25.00" in text and "£100.00" in text


def test_user_fields_escaped_for_markdown():
    customer = {
        "name": "Ann_Marie *Star*",
        "tag": "@annmarie1234",
        "email": "first_last@x.com",
        "phone": "+4915123456789",
        "address": "[Flat 2] Main St",
        "currency": "EUR",
        "account_number": "4821930571",
    }
    text = new_customer(customer)
    assert "first\\_last@x.com" in text
    assert "Ann\\_Marie \\*Star\\*" in text
    assert "\\[Flat 2] Main St" in text
    assert text.startswith("🆕 *NEW CUSTOMER REGISTERED*")


def test_special_tag_label_escaped():
    request = {
        "request_id": "P2P-482193057123",
        "type": "request",
        "is_special_tag": True,
        "from_name": "Shop",
        "from_tag": "@shop_support@merchant.com",
        "to_name": "Alice Martin",
        "to_tag": "@alice1234",
        "amount": "10",
        "currency": "EUR",
    }
    text = p2p_created(request)
    assert "(@shop\\_support@merchant.com)" in text
    assert "`P2P-482193057123`" in text


def test_escape_markdown_plain_text_untouched():
    assert escape_markdown("Alice Martin") == "Alice Martin"
    assert escape_markdown(None) == ""
    assert escape_markdown("a`b") == "a\\`b"
