"""
bankportal/db/store.py — Хранилище портала на PostgreSQL.

``PostgresStore`` объединяет репозитории поверх одного ``Database``.
Тот же набор атрибутов (customers, tags, requests, activity) и методов
(open, close, check, write_audit) реализует ``bankportal.memory_store.MemoryStore``.
"""

from __future__ import annotations

from typing import Any

from bankportal.database import Database
from bankportal.db.repositories.activity_repo import ActivityRepository
from bankportal.db.repositories.customer_repo import CustomerRepository
from bankportal.db.repositories.request_repo import RequestRepository
from bankportal.db.repositories.tag_repo import TagRepository


class PostgresStore:
    backend = "postgres"

    def __init__(self, database: Database) -> None:
        self.database = database
        self.customers = CustomerRepository(database)
        self.tags = TagRepository(database)
        self.requests = RequestRepository(database)
        self.activity = ActivityRepository(database)

    async def open(self) -> None:
        await self.database.open()

    async def close(self) -> None:
        await self.database.close()

    async def check(self) -> bool:
        return await self.database.check()

    async def write_audit(self, record: dict[str, Any]) -> None:
        """Записать аудит-событие в ``audit_log``."""
        async with self.database.connection() as conn:
            await conn.execute(
                """
                INSERT INTO audit_log (action, entity_type, entity_id, actor_id, details)
                VALUES ($1, $2, $3, $4, $5)
                """,
                record["action"],
                record["entity_type"],
                record["entity_id"],
                record["actor_id"],
                record["details"],
            )
