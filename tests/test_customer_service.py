"""
Тесты клиентских сценариев: регистрация, вход, PIN, счета вывода, активность.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from bankportal.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InsufficientFundsError,
    ValidationError,
)
from bankportal.models.activity import TransactionCreate
from bankportal.models.customer import PinChange, WithdrawalAccountCreate
from bankportal.models.enums import CustomerStatus
from bankportal.services import activity_service, customer_service, tag_directory

from conftest import make_context, make_settings, register_customer


class TestRegistration:

    @pytest.mark.asyncio
    async def test_generated_tag_and_defaults(self, ctx):
        row = await register_customer(ctx, "Eve Adams", "EVE@Example.com")
        assert re.fullmatch(r"@eveadams\d{4}", row["tag"])
        assert row["email"] == "eve@example.com"
        assert row["balance"] == Decimal("0")
        assert row["status"] == "active"
        assert row["pin_hash"] != "1234"
        assert set(row["account_details"]) == {"iban", "bic"}
        assert row["account_details"]["iban"].startswith("DE")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("currency, fields", [
        ("GBP", {"sort_code", "account_number"}),
        ("USD", {"routing_number", "account_number"}),
    ])
    async def test_account_details_per_currency(self, ctx, currency, fields):
        row = await register_customer(ctx, "Frank Ocean", "frank@example.com", currency=currency)
        assert set(row["account_details"]) == fields

    @pytest.mark.asyncio
    async def test_side_effects(self, ctx):
        row = await register_customer(ctx, "Eve Adams", "eve@example.com", tag="eve")
        summary = await activity_service.notification_summary(ctx, row["id"])
        assert summary.unread_count == 1
        assert summary.items[0].type == "welcome"
        assert "NEW CUSTOMER" in ctx.notifier.messages[-1]
        assert ctx.store.audit_log[-1]["action"] == "customer.register"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, ctx, alice):
        with pytest.raises(ConflictError) as exc:
            await register_customer(ctx, "Alice Other", "ALICE@example.com")
        assert exc.value.details["field"] == "email"

    @pytest.mark.asyncio
    async def test_supplied_tag_taken(self, ctx, alice):
        with pytest.raises(ConflictError):
            await register_customer(ctx, "Alice Other", "other@example.com", tag="Alice1234")

    @pytest.mark.asyncio
    async def test_supplied_tag_malformed(self, ctx):
        with pytest.raises(ValidationError):
            await register_customer(ctx, "Alice Other", "other@example.com", tag="a!")

    @pytest.mark.asyncio
    async def test_generation_retries_on_taken_tag(self, ctx, monkeypatch):
        await tag_directory.create_special_tag(ctx, "@eveadams0001", "Taken")
        candidates = iter(["@eveadams0001", "@eveadams0002"])
        monkeypatch.setattr(customer_service, "generate_tag", lambda name: next(candidates))
        row = await register_customer(ctx, "Eve Adams", "eve@example.com")
        assert row["tag"] == "@eveadams0002"

    @pytest.mark.asyncio
    async def test_generation_gives_up(self, monkeypatch):
        ctx = make_context(tag_generation_attempts=2)
        await tag_directory.create_special_tag(ctx, "@eveadams0001", "Taken")
        monkeypatch.setattr(customer_service, "generate_tag", lambda name: "@eveadams0001")
        with pytest.raises(ConflictError):
            await register_customer(ctx, "Eve Adams", "eve@example.com")


class TestLogin:

    @pytest.mark.asyncio
    async def test_success(self, ctx, alice):
        customer = await customer_service.authenticate(ctx, "Alice@Example.com", "1234")
        assert customer["id"] == alice["id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email, pin", [("alice@example.com", "9999"), ("nobody@example.com", "1234")])
    async def test_bad_credentials(self, ctx, alice, email, pin):
        with pytest.raises(AuthenticationError):
            await customer_service.authenticate(ctx, email, pin)

    @pytest.mark.asyncio
    async def test_frozen_blocked(self, ctx, alice):
        await customer_service.set_status(ctx, alice["id"], CustomerStatus.FROZEN)
        with pytest.raises(AuthorizationError):
            await customer_service.authenticate(ctx, "alice@example.com", "1234")
        with pytest.raises(AuthorizationError):
            await customer_service.load_active_customer(ctx, alice["id"])

        await customer_service.set_status(ctx, alice["id"], CustomerStatus.ACTIVE)
        assert (await customer_service.authenticate(ctx, "alice@example.com", "1234"))["id"] == alice["id"]


class TestSessionToken:

    def test_round_trip(self, settings):
        customer_id = uuid4()
        token = customer_service.create_session_token(settings, customer_id)
        assert customer_service.decode_session_token(settings, token) == customer_id

    def test_foreign_signature_rejected(self, settings):
        other = make_settings(session_secret_key="another-secret")
        token = customer_service.create_session_token(other, uuid4())
        with pytest.raises(AuthenticationError):
            customer_service.decode_session_token(settings, token)

    def test_garbage_rejected(self, settings):
        with pytest.raises(AuthenticationError):
            customer_service.decode_session_token(settings, "not-a-token")


class TestChangePin:

    @pytest.mark.asyncio
    async def test_success(self, ctx, alice):
        await customer_service.change_pin(ctx, alice, PinChange(current_pin="1234", new_pin="567890", confirm_pin="567890"))
        assert (await customer_service.authenticate(ctx, "alice@example.com", "567890"))["id"] == alice["id"]
        stored = await ctx.store.customers.get_by_id(alice["id"])
        assert stored["pin_updated_by"] == "customer"

    @pytest.mark.asyncio
    async def test_wrong_current(self, ctx, alice):
        with pytest.raises(AuthenticationError):
            await customer_service.change_pin(ctx, alice, PinChange(current_pin="0000", new_pin="5678", confirm_pin="5678"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new, confirm", [("12", "12"), ("abcd", "abcd"), ("5678", "5679")])
    async def test_invalid_new(self, ctx, alice, new, confirm):
        with pytest.raises(ValidationError):
            await customer_service.change_pin(ctx, alice, PinChange(current_pin="1234", new_pin=new, confirm_pin=confirm))


class TestWithdrawalAccounts:

    @pytest.mark.asyncio
    async def test_eur_requires_iban_and_bic(self, ctx, alice):
        with pytest.raises(ValidationError):
            await customer_service.add_withdrawal_account(
                ctx, alice, WithdrawalAccountCreate(bank_name="N26", holder_name="Alice Martin", iban="DE89"),
            )

    @pytest.mark.asyncio
    async def test_only_currency_fields_kept(self, ctx, alice):
        account = await customer_service.add_withdrawal_account(
            ctx, alice,
            WithdrawalAccountCreate(bank_name="N26", holder_name="Alice Martin", iban="DE89", bic="NTSB", sort_code="11-22-33"),
        )
        assert account.sort_code is None
        profile = await customer_service.get_profile(ctx, alice["id"])
        assert [a.id for a in profile.withdrawal_accounts] == [account.id]

        await customer_service.delete_withdrawal_account(ctx, alice["id"], account.id)
        assert await customer_service.list_withdrawal_accounts(ctx, alice["id"]) == []


class TestActivity:

    @pytest.mark.asyncio
    async def test_overdraft_refused(self, ctx, alice):
        with pytest.raises(InsufficientFundsError):
            await activity_service.record_transaction(
                ctx, alice["id"], TransactionCreate(type="debit", amount=Decimal("1"), description="Card"),
            )

    @pytest.mark.asyncio
    async def test_balance_and_history(self, ctx, alice):
        await activity_service.record_transaction(
            ctx, alice["id"], TransactionCreate(type="credit", amount=Decimal("100"), description="Deposit"),
        )
        await activity_service.record_transaction(
            ctx, alice["id"], TransactionCreate(type="debit", amount=Decimal("30"), description="Groceries"),
        )
        profile = await customer_service.get_profile(ctx, alice["id"])
        assert profile.balance == Decimal("70.00")
        history = await activity_service.list_transactions(ctx, alice["id"])
        assert [t.description for t in history] == ["Groceries", "Deposit"]

    @pytest.mark.asyncio
    async def test_monthly_spending(self, ctx, alice):
        await activity_service.record_transaction(
            ctx, alice["id"], TransactionCreate(type="credit", amount=Decimal("100"), description="Deposit"),
        )
        for amount in ("30", "20"):
            await activity_service.record_transaction(
                ctx, alice["id"], TransactionCreate(type="debit", amount=Decimal(amount), description="Shop"),
            )

        now = datetime.now(timezone.utc)
        months = await activity_service.monthly_spending(ctx, alice["id"], now=now)
        assert len(months) == 7
        assert months[-1].month == now.strftime("%Y-%m")
        assert months[-1].amount == Decimal("50")
        assert all(m.amount == 0 for m in months[:-1])
        assert [m.month for m in months] == sorted(m.month for m in months)

    @pytest.mark.asyncio
    async def test_monthly_spending_window_crosses_year(self, ctx, alice):
        months = await activity_service.monthly_spending(
            ctx, alice["id"], now=datetime(2024, 3, 15, tzinfo=timezone.utc),
        )
        assert [m.month for m in months] == [
            "2023-09", "2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03",
        ]

    @pytest.mark.asyncio
    async def test_mark_notifications_read(self, ctx, alice):
        assert await activity_service.mark_notifications_read(ctx, alice["id"]) == 1
        summary = await activity_service.notification_summary(ctx, alice["id"])
        assert summary.unread_count == 0 and summary.items == []
