"""
bankportal/db/repositories/tag_repo.py — Репозиторий специальных тегов.
"""

from __future__ import annotations

import asyncpg

from bankportal.database import Database
from bankportal.exceptions import ConflictError


class TagRepository:
    """Доступ к ``special_tags`` и общему каталогу ``tag_directory``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_special(self, tag: str, display_name: str) -> dict:
        """Создать специальный тег и зарезервировать его в каталоге."""
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow(
                    "INSERT INTO special_tags (tag, display_name) VALUES ($1, $2) RETURNING *",
                    tag, display_name,
                )
                await conn.execute(
                    "INSERT INTO tag_directory (tag, owner_kind, owner_id) VALUES ($1, 'special', $2)",
                    tag, row["id"],
                )
                return dict(row)
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(f"Tag {tag} is already taken", details={"field": "tag"}) from exc

    async def get_special_by_tag(self, tag: str) -> dict | None:
        """Найти специальный тег по каноническому тегу."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM special_tags WHERE tag = $1", tag)
            return dict(row) if row else None

    async def list_special(self) -> list[dict]:
        async with self._db.connection() as conn:
            rows = await conn.fetch("SELECT * FROM special_tags ORDER BY tag")
            return [dict(r) for r in rows]

    async def get_owner(self, tag: str) -> dict | None:
        """Запись каталога: кто владеет тегом."""
        async with self._db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM tag_directory WHERE tag = $1", tag)
            return dict(row) if row else None
