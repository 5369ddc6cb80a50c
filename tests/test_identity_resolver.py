"""
Тесты разрешения адресата: приоритет email, тег клиента, специальный тег.
"""

from typing import get_args

import pytest

from bankportal.models.tags import CustomerResolution, SpecialTagResolution, TagNotFound, TagResolution
from bankportal.services import tag_directory
from bankportal.services.identity_resolver import is_self, lookup_for_customer, lookup_tag

from conftest import register_customer


@pytest.mark.asyncio
async def test_resolves_customer_by_tag(ctx, alice, bob):
    result = await lookup_tag(ctx, "@bob5678")
    assert isinstance(result, CustomerResolution)
    assert result.id == bob["id"]
    assert result.currency.value == "EUR"


@pytest.mark.asyncio
async def test_tag_lookup_is_case_insensitive(ctx, bob):
    result = await lookup_tag(ctx, "BOB5678")
    assert isinstance(result, CustomerResolution)
    assert result.tag == "@bob5678"


@pytest.mark.asyncio
async def test_resolves_customer_by_email(ctx, bob):
    result = await lookup_tag(ctx, "Bob@Example.com")
    assert isinstance(result, CustomerResolution)
    assert result.id == bob["id"]


@pytest.mark.asyncio
async def test_email_match_wins_over_tag_match(ctx, bob):
    # специальный тег с тем же написанием, что и email Боба
    await tag_directory.create_special_tag(ctx, "bob@example.com", "Shadow")
    result = await lookup_tag(ctx, "bob@example.com")
    assert isinstance(result, CustomerResolution)
    assert result.id == bob["id"]


@pytest.mark.asyncio
async def test_email_shaped_falls_through_to_special_tag(ctx):
    special = await tag_directory.create_special_tag(ctx, "support@merchant.com", "Merchant Support")
    result = await lookup_tag(ctx, "support@merchant.com")
    assert isinstance(result, SpecialTagResolution)
    assert result.id == special.id
    assert result.name == "Merchant Support"
    assert result.currency is None


@pytest.mark.asyncio
async def test_customer_tag_checked_before_special(ctx, bob):
    await tag_directory.create_special_tag(ctx, "merchant", "Merchant Support")
    assert isinstance(await lookup_tag(ctx, "merchant"), SpecialTagResolution)
    assert isinstance(await lookup_tag(ctx, "bob5678"), CustomerResolution)


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None, "@", "@@@", "nobody", "x@y.z", "💸", "a" * 300, "'; DROP TABLE"])
async def test_never_throws(ctx, alice, query):
    result = await lookup_tag(ctx, query)
    assert isinstance(result, (TagNotFound, CustomerResolution, SpecialTagResolution))


@pytest.mark.asyncio
async def test_not_found_shape(ctx):
    result = await lookup_tag(ctx, "@ghost")
    assert result.model_dump() == {"found": False}


@pytest.mark.asyncio
async def test_self_is_hidden_for_customer_lookup(ctx, alice):
    direct = await lookup_tag(ctx, "@alice1234")
    assert is_self(direct, alice["id"])
    assert isinstance(await lookup_for_customer(ctx, "@alice1234", alice["id"]), TagNotFound)
    assert isinstance(await lookup_for_customer(ctx, "alice@example.com", alice["id"]), TagNotFound)


@pytest.mark.asyncio
async def test_other_currency_customer_resolves_with_currency(ctx):
    carol = await register_customer(ctx, "Carol King", "carol@example.com", tag="carol", currency="GBP")
    result = await lookup_tag(ctx, "@carol")
    assert result.id == carol["id"]
    assert result.currency.value == "GBP"


def test_resolution_variants_are_closed():
    assert set(get_args(TagResolution)) == {CustomerResolution, SpecialTagResolution, TagNotFound}
    assert CustomerResolution.model_fields["kind"].default == "customer"
    assert SpecialTagResolution.model_fields["kind"].default == "special"
