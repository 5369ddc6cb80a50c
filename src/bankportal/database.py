"""
═══════════════════════════════════════════════════════════════════════════════
Bank Portal — Пул соединений к базе данных (Database Connection Pool)
═══════════════════════════════════════════════════════════════════════════════

Объект ``Database`` владеет пулом asyncpg. Создаётся явно в lifespan
приложения (``open`` при старте, ``close`` при остановке) и передаётся
репозиториям через конструктор, без глобального состояния модуля.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg

from bankportal.config import PortalSettings

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """JSON/JSONB-колонки читаются и пишутся как dict."""
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(
            typename,
            encoder=lambda v: json.dumps(v, default=str),
            decoder=json.loads,
            schema="pg_catalog",
        )


class Database:
    """Пул соединений к PostgreSQL с явным жизненным циклом."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_settings(cls, settings: PortalSettings) -> "Database":
        return cls(
            dsn=settings.database_url,
            min_size=settings.database_pool_min,
            max_size=settings.database_pool_max,
        )

    async def open(self) -> asyncpg.Pool:
        """Создаёт пул при первом вызове."""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=60,
                init=_init_connection,
            )
            logger.info(
                f"DB pool created (min={self._min_size}, max={self._max_size})"
            )
        return self._pool

    async def close(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("DB pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database is not open")
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """
        Выдаёт соединение из пула и возвращает его обратно.

        Использование::

            async with database.connection() as conn:
                row = await conn.fetchrow("SELECT * FROM customers WHERE id = $1", cid)
        """
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Соединение внутри транзакции: всё или ничего."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def check(self) -> bool:
        """Проверяет доступность PostgreSQL (health check)."""
        try:
            async with self.connection() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False
