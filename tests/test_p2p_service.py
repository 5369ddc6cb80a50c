"""
Тесты протокола P2P: направление, специальные теги, идемпотентность, уведомления.
"""

from decimal import Decimal

import httpx
import pytest

from bankportal.adapters.telegram_client import TelegramNotifier
from bankportal.exceptions import ValidationError
from bankportal.models.enums import P2PType, RequestKind
from bankportal.models.tags import TagNotFound
from bankportal.services import tag_directory
from bankportal.services.identity_resolver import lookup_tag
from bankportal.services.p2p_service import build_parties, create_p2p_request, initiator_party


@pytest.mark.asyncio
async def test_scenario_send_to_customer(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    request = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, "50.00")

    assert request.request_id.startswith("P2P-")
    assert request.from_party.customer_id == alice["id"]
    assert request.to_party.customer_id == bob["id"]
    assert request.amount == Decimal("50.00")
    assert request.currency.value == "EUR"
    assert request.status.value == "pending"
    assert request.is_special_tag is False
    assert request.special_tag_id is None


@pytest.mark.asyncio
async def test_scenario_request_from_special_tag(ctx, alice):
    special = await tag_directory.create_special_tag(ctx, "support@merchant.com", "Merchant Support")
    merchant = await lookup_tag(ctx, "support@merchant.com")

    request = await create_p2p_request(ctx, alice, P2PType.REQUEST, merchant, Decimal("10.00"))

    assert request.to_party.customer_id == alice["id"]
    assert request.from_party.tag == "@support@merchant.com"
    assert request.from_party.customer_id is None
    assert request.from_party.is_special_tag is True
    assert request.is_special_tag is True
    assert request.special_tag_id == special.id
    assert request.status.value == "pending"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, "0", "-5", Decimal("-0.01"), "abc", "NaN", "Infinity", "1.001"])
async def test_scenario_bad_amount_writes_nothing(ctx, alice, bob, amount):
    bob_res = await lookup_tag(ctx, "@bob5678")
    before = len(ctx.notifier.messages)
    with pytest.raises(ValidationError):
        await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, amount)
    assert await ctx.store.requests.list_for_customer(RequestKind.P2P, alice["id"]) == []
    assert len(ctx.notifier.messages) == before


@pytest.mark.asyncio
async def test_direction_swaps_parties(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    sent = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 5)
    requested = await create_p2p_request(ctx, alice, P2PType.REQUEST, bob_res, 5)

    assert (sent.from_party.customer_id, sent.to_party.customer_id) == (alice["id"], bob["id"])
    assert (requested.from_party.customer_id, requested.to_party.customer_id) == (bob["id"], alice["id"])


def test_build_parties_is_pure_swap():
    a = initiator_party({"id": None, "tag": "@a", "name": "A"})
    b = initiator_party({"id": None, "tag": "@b", "name": "B"})
    assert build_parties(P2PType.SEND, a, b) == (a, b)
    assert build_parties(P2PType.REQUEST, a, b) == (b, a)


@pytest.mark.asyncio
async def test_unresolved_counterparty_rejected(ctx, alice):
    with pytest.raises(ValidationError):
        await create_p2p_request(ctx, alice, P2PType.SEND, TagNotFound(), 5)
    assert await ctx.store.requests.list_for_customer(RequestKind.P2P, alice["id"]) == []


@pytest.mark.asyncio
async def test_self_addressing_rejected(ctx, alice):
    me = await lookup_tag(ctx, "@alice1234")
    with pytest.raises(ValidationError):
        await create_p2p_request(ctx, alice, P2PType.SEND, me, 5)


@pytest.mark.asyncio
async def test_no_balance_check_on_send(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    request = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, "1000000.00")
    assert request.status.value == "pending"


@pytest.mark.asyncio
async def test_operator_notified_once_per_request(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    before = len(ctx.notifier.messages)
    request = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50)

    new = ctx.notifier.messages[before:]
    assert len(new) == 1
    assert request.request_id in new[0]
    assert "@alice1234" in new[0] and "@bob5678" in new[0]
    assert "€50.00" in new[0]


@pytest.mark.asyncio
async def test_idempotency_key_finds_existing(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    before = len(ctx.notifier.messages)

    first = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50, idempotency_key="click-1")
    second = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50, idempotency_key="click-1")
    third = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50, idempotency_key="click-2")

    assert first.request_id == second.request_id
    assert third.request_id != first.request_id
    assert len(ctx.notifier.messages) - before == 2
    rows = await ctx.store.requests.list_for_customer(RequestKind.P2P, alice["id"])
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_without_key_each_call_creates(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    a = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50)
    b = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 50)
    assert a.request_id != b.request_id


@pytest.mark.asyncio
async def test_request_visible_to_counterparty(ctx, alice, bob):
    bob_res = await lookup_tag(ctx, "@bob5678")
    request = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 5)
    rows = await ctx.store.requests.list_for_customer(RequestKind.P2P, bob["id"])
    assert [r["request_id"] for r in rows] == [request.request_id]


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_creation(ctx, alice, bob):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"ok": False, "description": "Bad Gateway"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    ctx.notifier = TelegramNotifier("token", "42", client=client)

    bob_res = await lookup_tag(ctx, "@bob5678")
    request = await create_p2p_request(ctx, alice, P2PType.SEND, bob_res, 5)

    stored = await ctx.store.requests.get(RequestKind.P2P, request.request_id)
    assert stored["status"] == "pending"
    await client.aclose()
