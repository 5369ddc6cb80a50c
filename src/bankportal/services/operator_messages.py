"""
bankportal/services/operator_messages.py — Тексты уведомлений оператора (Markdown).
"""

from __future__ import annotations

from datetime import datetime, timezone

from bankportal.models.currency import CURRENCIES, format_amount
from bankportal.models.enums import Currency

SEPARATOR = "━━━━━━━━━━━━━━━━━━━━━━━━━"

# Спецсимволы legacy Markdown в Telegram вне сущностей
MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(value) -> str:
    """Экранирует пользовательский текст для ``parse_mode: Markdown``."""
    text = "" if value is None else str(value)
    for ch in MARKDOWN_SPECIAL:
        text = text.replace(ch, "\\" + ch)
    return text


def _timestamp(when: datetime | None = None) -> str:
    return (when or datetime.now(timezone.utc)).strftime("%d %b %Y, %H:%M UTC")


def new_customer(customer: dict) -> str:
    currency = CURRENCIES[Currency(customer["currency"])]
    return "\n".join([
        "🆕 *NEW CUSTOMER REGISTERED*",
        SEPARATOR,
        f"👤 Name: {escape_markdown(customer['name'])}",
        f"🏷️ Tag: {escape_markdown(customer['tag'])}",
        f"📧 Email: {escape_markdown(customer['email'])}",
        f"📱 Phone: {escape_markdown(customer['phone'])}",
        f"📍 Address: {escape_markdown(customer['address'])}",
        f"{currency['flag']} Currency: {customer['currency']}",
        f"🔢 Account: {customer['account_number']}",
        SEPARATOR,
    ])


def p2p_created(request: dict) -> str:
    type_text = "MONEY REQUEST" if request["type"] == "request" else "SEND MONEY"
    lines = [
        f"📲 *NEW P2P {type_text}*",
        SEPARATOR,
        f"🔖 Request ID: `{request['request_id']}`",
    ]
    if request["is_special_tag"]:
        lines.append("⭐ _Special Tag Request_")
    lines += [
        "",
        f"📤 From: {escape_markdown(request['from_name'])} ({escape_markdown(request['from_tag'])})",
        f"📥 To: {escape_markdown(request['to_name'])} ({escape_markdown(request['to_tag'])})",
        "",
        f"💰 Amount: {format_amount(request['amount'], request['currency'])}",
        f"📅 Time: {_timestamp(request.get('created_at'))}",
        SEPARATOR,
        "⏳ *Action Required:* Approve or Reject",
    ]
    return "\n".join(lines)


def deposit_created(request: dict, method_name: str) -> str:
    return "\n".join([
        "💰 *NEW DEPOSIT REQUEST*",
        SEPARATOR,
        f"🔖 Request ID: `{request['request_id']}`",
        f"👤 Customer: {escape_markdown(request['customer_name'])}",
        f"📧 Email: {escape_markdown(request['customer_email'])}",
        f"💵 Amount: {format_amount(request['amount'], request['currency'])}",
        f"💳 Method: {method_name}",
        SEPARATOR,
        "⏳ *Action Required:* Send payment details",
    ])


def prepaid_card(request: dict, card_pin: str) -> str:
    return "\n".join([
        "💳 *PREPAID CARD ACTIVATION*",
        SEPARATOR,
        f"🔖 Request ID: `{request['request_id']}`",
        f"👤 Customer: {escape_markdown(request['customer_name'])}",
        f"💵 Amount: {format_amount(request['amount'], request['currency'])}",
        f"🔐 Card PIN: `{card_pin}`",
        SEPARATOR,
        "⏳ *Action Required:* Verify and approve",
    ])


def payment_receipt(request: dict) -> str:
    return "\n".join([
        "🧾 *PAYMENT RECEIPT*",
        SEPARATOR,
        f"🔖 Request ID: `{request['request_id']}`",
        f"👤 Customer: {escape_markdown(request['customer_name'])}",
        f"💵 Amount: {format_amount(request['amount'], request['currency'])}",
        SEPARATOR,
        "⏳ *Action Required:* Verify and approve",
    ])


def _destination(account: dict, currency: str) -> list[str]:
    if currency == Currency.EUR.value:
        fields = [("IBAN", "iban"), ("BIC", "bic")]
    elif currency == Currency.GBP.value:
        fields = [("Account", "account_number"), ("Sort Code", "sort_code")]
    else:
        fields = [("Account", "account_number"), ("Routing", "routing_number")]
    fields = [("Bank", "bank_name"), ("Holder", "holder_name")] + fields
    return [f"{label}: {escape_markdown(account.get(key))}" for label, key in fields]


def withdrawal_created(request: dict, balance) -> str:
    return "\n".join([
        "💸 *NEW WITHDRAWAL REQUEST*",
        SEPARATOR,
        f"🔖 Request ID: `{request['request_id']}`",
        f"👤 Customer: {escape_markdown(request['customer_name'])}",
        f"💰 Balance: {format_amount(balance, request['currency'])}",
        f"💵 Amount: {format_amount(request['amount'], request['currency'])}",
        SEPARATOR,
        "📤 *Sending To:*",
        *_destination(request["withdrawal_account"], request["currency"]),
        SEPARATOR,
        "⏳ *Action Required:* Approve or reject",
    ])
