"""
Тесты каталога тегов: каноническая форма, генерация, занятость, смена тега.
"""

import re

import pytest

from bankportal.exceptions import ConflictError, ValidationError
from bankportal.services import tag_directory
from bankportal.services.tag_directory import canonicalize_tag, generate_tag, validate_handle

from conftest import register_customer


class TestCanonicalize:

    @pytest.mark.parametrize("raw", ["Foo123", "@foo123", "@FOO123", "  foo123 ", "@", "", "a b", "x@y.z"])
    def test_idempotent(self, raw):
        once = canonicalize_tag(raw)
        assert canonicalize_tag(once) == once

    def test_equivalent_forms(self):
        assert canonicalize_tag("Foo123") == canonicalize_tag("@foo123") == "@foo123"

    def test_empty_input(self):
        assert canonicalize_tag("") == ""
        assert canonicalize_tag(None) == ""
        assert canonicalize_tag("   ") == ""


class TestGenerateTag:

    def test_shape(self):
        tag = generate_tag("Jean-Luc O'Neil")
        assert re.fullmatch(r"@jeanluconeil\d{4}", tag)

    def test_is_canonical(self):
        tag = generate_tag("Alice Martin")
        assert canonicalize_tag(tag) == tag


class TestValidateHandle:

    def test_accepts_with_or_without_at(self):
        assert validate_handle("Alice99") == "@alice99"
        assert validate_handle("@Alice99") == "@alice99"

    @pytest.mark.parametrize("raw", ["ab", "@ab", "bad tag", "no-dash", "x.y.z", ""])
    def test_rejects_bad_format(self, raw):
        with pytest.raises(ValidationError):
            validate_handle(raw)


class TestAvailability:

    @pytest.mark.asyncio
    async def test_customer_tag_taken(self, ctx, alice):
        assert await tag_directory.is_tag_available(ctx, "@alice1234") is False
        assert await tag_directory.is_tag_available(ctx, "ALICE1234") is False
        assert await tag_directory.is_tag_available(ctx, "@someoneelse") is True

    @pytest.mark.asyncio
    async def test_own_tag_is_available_when_excluded(self, ctx, alice):
        assert await tag_directory.is_tag_available(ctx, "@alice1234", exclude_customer_id=alice["id"]) is True

    @pytest.mark.asyncio
    async def test_special_tag_taken_for_everyone(self, ctx, alice):
        await tag_directory.create_special_tag(ctx, "merchant", "Merchant Support")
        assert await tag_directory.is_tag_available(ctx, "@merchant") is False
        assert await tag_directory.is_tag_available(ctx, "@merchant", exclude_customer_id=alice["id"]) is False

    @pytest.mark.asyncio
    async def test_empty_tag_never_available(self, ctx):
        assert await tag_directory.is_tag_available(ctx, "") is False


class TestNamespaceExclusivity:

    @pytest.mark.asyncio
    async def test_special_tag_cannot_take_customer_tag(self, ctx, alice):
        with pytest.raises(ConflictError):
            await tag_directory.create_special_tag(ctx, "@alice1234", "Impostor")

    @pytest.mark.asyncio
    async def test_customer_cannot_register_special_tag(self, ctx):
        await tag_directory.create_special_tag(ctx, "merchant", "Merchant Support")
        with pytest.raises(ConflictError):
            await register_customer(ctx, "Mallory Jones", "mallory@example.com", tag="merchant")

    @pytest.mark.asyncio
    async def test_store_rejects_duplicate_even_without_check(self, ctx, alice, bob):
        # запись в обход проверки доступности упирается в уникальность хранилища
        with pytest.raises(ConflictError):
            await ctx.store.customers.update_tag(bob["id"], "@alice1234")
        owner = await ctx.store.tags.get_owner("@alice1234")
        assert owner["owner_id"] == alice["id"]


class TestChangeTag:

    @pytest.mark.asyncio
    async def test_change_updates_directory(self, ctx, alice):
        row = await tag_directory.change_tag(ctx, alice["id"], "AliceNew")
        assert row["tag"] == "@alicenew"
        assert await ctx.store.tags.get_owner("@alice1234") is None
        assert (await ctx.store.tags.get_owner("@alicenew"))["owner_id"] == alice["id"]
        assert any(r["action"] == "customer.tag_change" for r in ctx.store.audit_log)

    @pytest.mark.asyncio
    async def test_taken_by_customer(self, ctx, alice, bob):
        with pytest.raises(ConflictError):
            await tag_directory.change_tag(ctx, alice["id"], "bob5678")

    @pytest.mark.asyncio
    async def test_taken_by_special_tag(self, ctx, alice):
        await tag_directory.create_special_tag(ctx, "merchant", "Merchant Support")
        with pytest.raises(ConflictError):
            await tag_directory.change_tag(ctx, alice["id"], "merchant")

    @pytest.mark.asyncio
    async def test_malformed_is_validation_not_conflict(self, ctx, alice):
        with pytest.raises(ValidationError):
            await tag_directory.change_tag(ctx, alice["id"], "a!")

    @pytest.mark.asyncio
    async def test_keep_own_tag(self, ctx, alice):
        row = await tag_directory.change_tag(ctx, alice["id"], "alice1234")
        assert row["tag"] == "@alice1234"
