"""
bankportal/db/repositories/activity_repo.py — Операции по счёту и in-app уведомления.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from bankportal.database import Database


class ActivityRepository:
    """Доступ к ``transactions`` и ``notifications``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def record_transaction(
        self, customer_id: UUID, type_: str, amount: Decimal, description: str,
    ) -> dict | None:
        """
        Записать проводку и изменить баланс в одной транзакции.

        Returns None, если списание сделало бы баланс отрицательным.
        """
        async with self._db.transaction() as conn:
            balance = await conn.fetchval(
                """
                UPDATE customers
                SET balance = CASE WHEN $2 = 'credit' THEN balance + $3 ELSE balance - $3 END,
                    updated_at = NOW()
                WHERE id = $1 AND ($2 = 'credit' OR balance >= $3)
                RETURNING balance
                """,
                customer_id, type_, amount,
            )
            if balance is None:
                return None
            row = await conn.fetchrow(
                """
                INSERT INTO transactions (customer_id, type, amount, description)
                VALUES ($1, $2, $3, $4)
                RETURNING *
                """,
                customer_id, type_, amount, description,
            )
            return dict(row)

    async def list_transactions(self, customer_id: UUID, limit: int = 50) -> list[dict]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM transactions
                WHERE customer_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                customer_id, limit,
            )
            return [dict(r) for r in rows]

    async def monthly_debits(self, customer_id: UUID, since: datetime) -> dict[tuple[int, int], Decimal]:
        """Сумма списаний по календарным месяцам (UTC) начиная с ``since``."""
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT date_trunc('month', created_at AT TIME ZONE 'UTC') AS month,
                       SUM(amount) AS total
                FROM transactions
                WHERE customer_id = $1 AND type = 'debit' AND created_at >= $2
                GROUP BY 1
                """,
                customer_id, since,
            )
            return {(r["month"].year, r["month"].month): r["total"] for r in rows}

    # ── Уведомления ──────────────────────────────────────────────────────

    async def create_notification(
        self, customer_id: UUID, type_: str, title: str, message: str, level: str = "info",
    ) -> dict:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO notifications (customer_id, type, title, message, level)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                customer_id, type_, title, message, level,
            )
            return dict(row)

    async def list_unread_notifications(self, customer_id: UUID, limit: int = 10) -> list[dict]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM notifications
                WHERE customer_id = $1 AND read = FALSE
                ORDER BY created_at DESC
                LIMIT $2
                """,
                customer_id, limit,
            )
            return [dict(r) for r in rows]

    async def count_unread_notifications(self, customer_id: UUID) -> int:
        async with self._db.connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM notifications WHERE customer_id = $1 AND read = FALSE",
                customer_id,
            )

    async def mark_notifications_read(self, customer_id: UUID) -> int:
        async with self._db.connection() as conn:
            result = await conn.execute(
                "UPDATE notifications SET read = TRUE WHERE customer_id = $1 AND read = FALSE",
                customer_id,
            )
            return int(result.split()[-1])
