"""
bankportal/db/repositories/customer_repo.py — Репозиторий клиентов.

Тег клиента пишется одновременно в ``customers`` и ``tag_directory``
в одной транзакции: первичный ключ ``tag_directory`` гарантирует
уникальность тега среди клиентов и специальных тегов.
"""

from __future__ import annotations

from uuid import UUID

import asyncpg

from bankportal.database import Database
from bankportal.exceptions import ConflictError

_CONSTRAINT_FIELDS = {
    "customers_email_key": "email",
    "customers_tag_key": "tag",
    "tag_directory_pkey": "tag",
    "customers_account_number_key": "account_number",
}


def _conflict(exc: asyncpg.UniqueViolationError) -> ConflictError:
    field = _CONSTRAINT_FIELDS.get(exc.constraint_name or "", "unknown")
    return ConflictError(f"Customer {field} already exists", details={"field": field})


class CustomerRepository:
    """Доступ к таблицам ``customers`` и ``withdrawal_accounts``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, customer: dict) -> dict:
        """Создать клиента и зарезервировать его тег."""
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO customers (
                        name, email, phone, address, account_number,
                        account_details, tag, currency, pin_hash
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING *
                    """,
                    customer["name"],
                    customer["email"],
                    customer["phone"],
                    customer["address"],
                    customer["account_number"],
                    customer["account_details"],
                    customer["tag"],
                    customer["currency"],
                    customer["pin_hash"],
                )
                await conn.execute(
                    "INSERT INTO tag_directory (tag, owner_kind, owner_id) VALUES ($1, 'customer', $2)",
                    row["tag"], row["id"],
                )
                return dict(row)
        except asyncpg.UniqueViolationError as exc:
            raise _conflict(exc) from exc

    async def get_by_id(self, customer_id: UUID) -> dict | None:
        """Найти клиента по UUID."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM customers WHERE id = $1", customer_id)
            return dict(row) if row else None

    async def get_by_email(self, email: str) -> dict | None:
        """Найти клиента по email (без учёта регистра)."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM customers WHERE email = $1", email.lower()
            )
            return dict(row) if row else None

    async def get_by_tag(self, tag: str) -> dict | None:
        """Найти клиента по каноническому тегу."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM customers WHERE tag = $1", tag)
            return dict(row) if row else None

    async def update_tag(self, customer_id: UUID, tag: str) -> dict | None:
        """Сменить тег клиента; старый тег освобождается в той же транзакции."""
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE customers
                    SET tag = $1, tag_updated_at = NOW(), updated_at = NOW()
                    WHERE id = $2
                    RETURNING *
                    """,
                    tag, customer_id,
                )
                if row is None:
                    return None
                await conn.execute(
                    "DELETE FROM tag_directory WHERE owner_kind = 'customer' AND owner_id = $1",
                    customer_id,
                )
                await conn.execute(
                    "INSERT INTO tag_directory (tag, owner_kind, owner_id) VALUES ($1, 'customer', $2)",
                    tag, customer_id,
                )
                return dict(row)
        except asyncpg.UniqueViolationError as exc:
            raise _conflict(exc) from exc

    async def update_pin(self, customer_id: UUID, pin_hash: str, updated_by: str = "customer") -> None:
        """Обновить PIN клиента."""
        async with self._db.connection() as conn:
            await conn.execute(
                """
                UPDATE customers
                SET pin_hash = $1, pin_updated_at = NOW(), pin_updated_by = $2, updated_at = NOW()
                WHERE id = $3
                """,
                pin_hash, updated_by, customer_id,
            )

    async def update_status(self, customer_id: UUID, status: str) -> dict | None:
        """Обновить статус клиента (active / frozen)."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "UPDATE customers SET status = $1, updated_at = NOW() WHERE id = $2 RETURNING *",
                status, customer_id,
            )
            return dict(row) if row else None

    # ── Счета вывода ─────────────────────────────────────────────────────

    async def add_withdrawal_account(self, customer_id: UUID, account: dict) -> dict:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO withdrawal_accounts (
                    customer_id, bank_name, holder_name, iban, bic,
                    account_number, sort_code, routing_number
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
                """,
                customer_id,
                account["bank_name"],
                account["holder_name"],
                account.get("iban"),
                account.get("bic"),
                account.get("account_number"),
                account.get("sort_code"),
                account.get("routing_number"),
            )
            return dict(row)

    async def list_withdrawal_accounts(self, customer_id: UUID) -> list[dict]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM withdrawal_accounts WHERE customer_id = $1 ORDER BY created_at",
                customer_id,
            )
            return [dict(r) for r in rows]

    async def get_withdrawal_account(self, customer_id: UUID, account_id: UUID) -> dict | None:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM withdrawal_accounts WHERE id = $1 AND customer_id = $2",
                account_id, customer_id,
            )
            return dict(row) if row else None

    async def delete_withdrawal_account(self, customer_id: UUID, account_id: UUID) -> bool:
        async with self._db.connection() as conn:
            result = await conn.execute(
                "DELETE FROM withdrawal_accounts WHERE id = $1 AND customer_id = $2",
                account_id, customer_id,
            )
            return result.endswith(" 1")
