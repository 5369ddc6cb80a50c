"""
bankportal/db/repositories/request_repo.py — Репозиторий заявок реестра.

Депозиты, выводы и P2P-заявки хранятся в отдельных таблицах с общей
формой (request_id, customer_id, status, amount, currency, timestamps).
Переход статуса — условный UPDATE: строка меняется, только если её
текущий статус входит в список допустимых исходных.
"""

from __future__ import annotations

from uuid import UUID

import asyncpg

from bankportal.database import Database
from bankportal.exceptions import ConflictError
from bankportal.models.enums import RequestKind

TABLES: dict[RequestKind, str] = {
    RequestKind.DEPOSIT: "deposit_requests",
    RequestKind.WITHDRAWAL: "withdrawal_requests",
    RequestKind.P2P: "p2p_requests",
}

# Поля, которые может менять переход статуса
TRANSITION_FIELDS = frozenset({
    "bank_details",
    "receipt_image",
    "receipt_content_type",
    "prepaid_card_pin",
    "rejection_reason",
})


def _request_id_conflict(exc: asyncpg.UniqueViolationError) -> ConflictError:
    return ConflictError(
        "Request id collision",
        details={"field": "request_id", "constraint": exc.constraint_name},
    )


class RequestRepository:
    """Доступ к таблицам заявок."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert(self, kind: RequestKind, record: dict) -> dict | None:
        """
        Создать заявку.

        Returns:
            Созданную строку или None, если заявка с тем же
            ``(customer_id, idempotency_key)`` уже существует.
        """
        table = TABLES[kind]
        columns = list(record)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        try:
            async with self._db.connection() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO {table} ({", ".join(columns)})
                    VALUES ({placeholders})
                    ON CONFLICT (customer_id, idempotency_key) DO NOTHING
                    RETURNING *
                    """,
                    *record.values(),
                )
                return dict(row) if row else None
        except asyncpg.UniqueViolationError as exc:
            raise _request_id_conflict(exc) from exc

    async def insert_withdrawal_if_funded(self, record: dict) -> dict | None:
        """
        Создать заявку на вывод, только если баланс клиента покрывает сумму.

        Проверка баланса и вставка выполняются одним выражением.
        Returns None при нехватке средств или повторном ключе идемпотентности.
        """
        try:
            async with self._db.connection() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO withdrawal_requests (
                        request_id, customer_id, customer_name, currency,
                        amount, withdrawal_account, status, idempotency_key
                    )
                    SELECT $1::text, c.id, $3::text, $4::text,
                           $5::numeric, $6::jsonb, $7::text, $8::text
                    FROM customers c
                    WHERE c.id = $2::uuid AND c.balance >= $5::numeric
                    ON CONFLICT (customer_id, idempotency_key) DO NOTHING
                    RETURNING *
                    """,
                    record["request_id"],
                    record["customer_id"],
                    record["customer_name"],
                    record["currency"],
                    record["amount"],
                    record["withdrawal_account"],
                    record["status"],
                    record.get("idempotency_key"),
                )
                return dict(row) if row else None
        except asyncpg.UniqueViolationError as exc:
            raise _request_id_conflict(exc) from exc

    async def get(self, kind: RequestKind, request_id: str) -> dict | None:
        """Найти заявку по request_id."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {TABLES[kind]} WHERE request_id = $1", request_id
            )
            return dict(row) if row else None

    async def get_by_idempotency_key(
        self, kind: RequestKind, customer_id: UUID, key: str,
    ) -> dict | None:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {TABLES[kind]} WHERE customer_id = $1 AND idempotency_key = $2",
                customer_id, key,
            )
            return dict(row) if row else None

    async def list_for_customer(
        self, kind: RequestKind, customer_id: UUID, limit: int = 20,
    ) -> list[dict]:
        """Заявки клиента, новые первыми. Для P2P — также входящие."""
        condition = "customer_id = $1"
        if kind is RequestKind.P2P:
            condition = "(customer_id = $1 OR from_customer_id = $1 OR to_customer_id = $1)"
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {TABLES[kind]}
                WHERE {condition}
                ORDER BY created_at DESC
                LIMIT $2
                """,
                customer_id, limit,
            )
            return [dict(r) for r in rows]

    async def list_by_status(
        self, kind: RequestKind, statuses: list[str], limit: int = 100,
    ) -> list[dict]:
        """Очередь оператора: заявки в указанных статусах, старые первыми."""
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {TABLES[kind]}
                WHERE status = ANY($1::text[])
                ORDER BY created_at
                LIMIT $2
                """,
                statuses, limit,
            )
            return [dict(r) for r in rows]

    async def transition(
        self,
        kind: RequestKind,
        request_id: str,
        from_statuses: list[str],
        to_status: str,
        fields: dict | None = None,
    ) -> dict | None:
        """
        Условный переход статуса.

        Returns:
            Обновлённую строку или None, если заявка не найдена
            либо её статус не входит в ``from_statuses``.
        """
        fields = dict(fields or {})
        unknown = set(fields) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable on transition: {sorted(unknown)}")

        assignments = ["status = $1", "updated_at = NOW()"]
        values: list = [to_status]
        for name, value in fields.items():
            values.append(value)
            assignments.append(f"{name} = ${len(values)}")
        values.extend([request_id, from_statuses])

        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {TABLES[kind]}
                SET {", ".join(assignments)}
                WHERE request_id = ${len(values) - 1} AND status = ANY(${len(values)}::text[])
                RETURNING *
                """,
                *values,
            )
            return dict(row) if row else None
