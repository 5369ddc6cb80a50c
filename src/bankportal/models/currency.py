"""
bankportal/models/currency.py — Справочник валют портала.

Для каждой валюты: символ, флаг, доступные способы пополнения
и поля банковских реквизитов для счетов вывода.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from bankportal.models.enums import Currency, PaymentMethod

CURRENCIES: dict[Currency, dict] = {
    Currency.USD: {
        "symbol": "$",
        "name": "US Dollar",
        "flag": "🇺🇸",
        "payment_methods": {
            PaymentMethod.CHIME: "Chime",
            PaymentMethod.APPLEPAY: "Apple Pay",
            PaymentMethod.VISAPREPAID: "Visa Prepaid Card",
        },
        "account_fields": ("account_number", "routing_number"),
    },
    Currency.EUR: {
        "symbol": "€",
        "name": "Euro",
        "flag": "🇪🇺",
        "payment_methods": {
            PaymentMethod.SEPA: "Instant SEPA Credit Transfer",
        },
        "account_fields": ("iban", "bic"),
    },
    Currency.GBP: {
        "symbol": "£",
        "name": "British Pound",
        "flag": "🇬🇧",
        "payment_methods": {
            PaymentMethod.BANKTRANSFER: "Bank Transfer",
        },
        "account_fields": ("account_number", "sort_code"),
    },
}

CENT = Decimal("0.01")
# NUMERIC(18, 2): не больше 16 цифр до запятой
MAX_AMOUNT = Decimal("1E+16")


def format_amount(amount: Decimal | int | str | None, currency: Currency | str) -> str:
    """``Decimal("1234.5"), EUR`` → ``€1,234.50``."""
    config = CURRENCIES.get(Currency(currency), CURRENCIES[Currency.EUR])
    value = Decimal(str(amount or 0)).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{config['symbol']}{value:,.2f}"


def payment_method_name(currency: Currency | str, method: PaymentMethod | str) -> str | None:
    """Название способа пополнения или None, если он недоступен для валюты."""
    methods = CURRENCIES[Currency(currency)]["payment_methods"]
    try:
        return methods.get(PaymentMethod(method))
    except ValueError:
        return None


def account_fields(currency: Currency | str) -> tuple[str, ...]:
    """Обязательные реквизиты счёта вывода для валюты."""
    return CURRENCIES[Currency(currency)]["account_fields"]
