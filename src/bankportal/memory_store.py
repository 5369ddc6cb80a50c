"""
═══════════════════════════════════════════════════════════════════════════════
Bank Portal — In-Memory хранилище (замена PostgreSQL для локальной разработки)
═══════════════════════════════════════════════════════════════════════════════

``MemoryStore`` повторяет интерфейс ``bankportal.db.store.PostgresStore``.
Используется в lifespan при недоступности БД и в тестах.

Ограничения уникальности (email, тег, request_id, ключ идемпотентности)
проверяются и записываются без ``await`` между проверкой и записью,
поэтому внутри одного event loop они атомарны.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from bankportal.exceptions import ConflictError
from bankportal.models.enums import RequestKind

logger = logging.getLogger(__name__)

_now = lambda: datetime.now(timezone.utc)  # noqa: E731


def _copy(row: dict | None) -> dict | None:
    return dict(row) if row is not None else None


class _State:
    """Все таблицы in-memory хранилища."""

    def __init__(self) -> None:
        self.customers: dict[UUID, dict] = {}
        self.withdrawal_accounts: dict[UUID, dict] = {}
        self.special_tags: dict[UUID, dict] = {}
        self.tag_directory: dict[str, dict] = {}
        self.requests: dict[RequestKind, dict[str, dict]] = {kind: {} for kind in RequestKind}
        self.transactions: list[dict] = []
        self.notifications: list[dict] = []
        self.audit_log: list[dict] = []


# ═══════════════════════════════════════════════════════════════════════════════
# Клиенты
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryCustomerRepository:

    def __init__(self, state: _State) -> None:
        self._s = state

    async def create(self, customer: dict) -> dict:
        """Создаёт клиента в памяти."""
        email = customer["email"].lower()
        if any(c["email"] == email for c in self._s.customers.values()):
            raise ConflictError("Customer email already exists", details={"field": "email"})
        if customer["tag"] in self._s.tag_directory:
            raise ConflictError("Customer tag already exists", details={"field": "tag"})
        if any(c["account_number"] == customer["account_number"] for c in self._s.customers.values()):
            raise ConflictError(
                "Customer account_number already exists", details={"field": "account_number"},
            )

        cid = uuid4()
        now = _now()
        row = {
            "id": cid,
            "name": customer["name"],
            "email": email,
            "phone": customer["phone"],
            "address": customer["address"],
            "account_number": customer["account_number"],
            "account_details": dict(customer["account_details"]),
            "tag": customer["tag"],
            "tag_updated_at": now,
            "currency": customer["currency"],
            "balance": Decimal("0.00"),
            "pin_hash": customer["pin_hash"],
            "pin_updated_at": now,
            "pin_updated_by": "customer",
            "status": "active",
            "created_at": now,
            "updated_at": now,
        }
        self._s.customers[cid] = row
        self._s.tag_directory[row["tag"]] = {
            "tag": row["tag"], "owner_kind": "customer", "owner_id": cid, "created_at": now,
        }
        logger.info("Memory store: created customer %s (%s)", row["name"], row["tag"])
        return dict(row)

    async def get_by_id(self, customer_id: UUID) -> dict | None:
        return _copy(self._s.customers.get(customer_id))

    async def get_by_email(self, email: str) -> dict | None:
        email = email.lower()
        for c in self._s.customers.values():
            if c["email"] == email:
                return dict(c)
        return None

    async def get_by_tag(self, tag: str) -> dict | None:
        for c in self._s.customers.values():
            if c["tag"] == tag:
                return dict(c)
        return None

    async def update_tag(self, customer_id: UUID, tag: str) -> dict | None:
        row = self._s.customers.get(customer_id)
        if row is None:
            return None
        owner = self._s.tag_directory.get(tag)
        if owner is not None and not (owner["owner_kind"] == "customer" and owner["owner_id"] == customer_id):
            raise ConflictError("Customer tag already exists", details={"field": "tag"})

        self._s.tag_directory.pop(row["tag"], None)
        now = _now()
        self._s.tag_directory[tag] = {
            "tag": tag, "owner_kind": "customer", "owner_id": customer_id, "created_at": now,
        }
        row.update(tag=tag, tag_updated_at=now, updated_at=now)
        return dict(row)

    async def update_pin(self, customer_id: UUID, pin_hash: str, updated_by: str = "customer") -> None:
        row = self._s.customers.get(customer_id)
        if row is not None:
            now = _now()
            row.update(pin_hash=pin_hash, pin_updated_at=now, pin_updated_by=updated_by, updated_at=now)

    async def update_status(self, customer_id: UUID, status: str) -> dict | None:
        row = self._s.customers.get(customer_id)
        if row is None:
            return None
        row.update(status=status, updated_at=_now())
        return dict(row)

    async def add_withdrawal_account(self, customer_id: UUID, account: dict) -> dict:
        aid = uuid4()
        row = {
            "id": aid,
            "customer_id": customer_id,
            "bank_name": account["bank_name"],
            "holder_name": account["holder_name"],
            "iban": account.get("iban"),
            "bic": account.get("bic"),
            "account_number": account.get("account_number"),
            "sort_code": account.get("sort_code"),
            "routing_number": account.get("routing_number"),
            "created_at": _now(),
        }
        self._s.withdrawal_accounts[aid] = row
        return dict(row)

    async def list_withdrawal_accounts(self, customer_id: UUID) -> list[dict]:
        rows = [a for a in self._s.withdrawal_accounts.values() if a["customer_id"] == customer_id]
        return [dict(a) for a in sorted(rows, key=lambda a: a["created_at"])]

    async def get_withdrawal_account(self, customer_id: UUID, account_id: UUID) -> dict | None:
        row = self._s.withdrawal_accounts.get(account_id)
        if row is None or row["customer_id"] != customer_id:
            return None
        return dict(row)

    async def delete_withdrawal_account(self, customer_id: UUID, account_id: UUID) -> bool:
        row = self._s.withdrawal_accounts.get(account_id)
        if row is None or row["customer_id"] != customer_id:
            return False
        del self._s.withdrawal_accounts[account_id]
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# Специальные теги
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryTagRepository:

    def __init__(self, state: _State) -> None:
        self._s = state

    async def create_special(self, tag: str, display_name: str) -> dict:
        if tag in self._s.tag_directory:
            raise ConflictError(f"Tag {tag} is already taken", details={"field": "tag"})
        sid = uuid4()
        now = _now()
        row = {"id": sid, "tag": tag, "display_name": display_name, "created_at": now}
        self._s.special_tags[sid] = row
        self._s.tag_directory[tag] = {
            "tag": tag, "owner_kind": "special", "owner_id": sid, "created_at": now,
        }
        logger.info("Memory store: created special tag %s", tag)
        return dict(row)

    async def get_special_by_tag(self, tag: str) -> dict | None:
        for t in self._s.special_tags.values():
            if t["tag"] == tag:
                return dict(t)
        return None

    async def list_special(self) -> list[dict]:
        return [dict(t) for t in sorted(self._s.special_tags.values(), key=lambda t: t["tag"])]

    async def get_owner(self, tag: str) -> dict | None:
        return _copy(self._s.tag_directory.get(tag))


# ═══════════════════════════════════════════════════════════════════════════════
# Заявки
# ═══════════════════════════════════════════════════════════════════════════════

_REQUEST_DEFAULTS: dict[RequestKind, dict[str, Any]] = {
    RequestKind.DEPOSIT: {
        "bank_details": None,
        "receipt_image": None,
        "receipt_content_type": None,
        "prepaid_card_pin": None,
        "rejection_reason": None,
        "idempotency_key": None,
    },
    RequestKind.WITHDRAWAL: {"rejection_reason": None, "idempotency_key": None},
    RequestKind.P2P: {
        "from_customer_id": None,
        "to_customer_id": None,
        "is_special_tag": False,
        "special_tag_id": None,
        "rejection_reason": None,
        "idempotency_key": None,
    },
}


class MemoryRequestRepository:

    def __init__(self, state: _State) -> None:
        self._s = state

    def _find_by_key(self, kind: RequestKind, customer_id: UUID, key: str | None) -> dict | None:
        if key is None:
            return None
        for r in self._s.requests[kind].values():
            if r["customer_id"] == customer_id and r["idempotency_key"] == key:
                return r
        return None

    def _insert(self, kind: RequestKind, record: dict) -> dict | None:
        if self._find_by_key(kind, record["customer_id"], record.get("idempotency_key")):
            return None
        if record["request_id"] in self._s.requests[kind]:
            raise ConflictError("Request id collision", details={"field": "request_id"})
        now = _now()
        row = {"id": uuid4(), **_REQUEST_DEFAULTS[kind], **record, "created_at": now, "updated_at": now}
        self._s.requests[kind][row["request_id"]] = row
        return dict(row)

    async def insert(self, kind: RequestKind, record: dict) -> dict | None:
        return self._insert(kind, record)

    async def insert_withdrawal_if_funded(self, record: dict) -> dict | None:
        customer = self._s.customers.get(record["customer_id"])
        if customer is None or customer["balance"] < record["amount"]:
            return None
        return self._insert(RequestKind.WITHDRAWAL, record)

    async def get(self, kind: RequestKind, request_id: str) -> dict | None:
        return _copy(self._s.requests[kind].get(request_id))

    async def get_by_idempotency_key(self, kind: RequestKind, customer_id: UUID, key: str) -> dict | None:
        return _copy(self._find_by_key(kind, customer_id, key))

    async def list_for_customer(self, kind: RequestKind, customer_id: UUID, limit: int = 20) -> list[dict]:
        def _mine(r: dict) -> bool:
            if r["customer_id"] == customer_id:
                return True
            return kind is RequestKind.P2P and customer_id in (r["from_customer_id"], r["to_customer_id"])

        rows = [r for r in self._s.requests[kind].values() if _mine(r)]
        rows.reverse()  # порядок вставки = порядок создания
        return [dict(r) for r in rows[:limit]]

    async def list_by_status(self, kind: RequestKind, statuses: list[str], limit: int = 100) -> list[dict]:
        rows = [r for r in self._s.requests[kind].values() if r["status"] in statuses]
        rows.sort(key=lambda r: r["created_at"])
        return [dict(r) for r in rows[:limit]]

    async def transition(
        self,
        kind: RequestKind,
        request_id: str,
        from_statuses: list[str],
        to_status: str,
        fields: dict | None = None,
    ) -> dict | None:
        row = self._s.requests[kind].get(request_id)
        if row is None or row["status"] not in from_statuses:
            return None
        row.update(fields or {})
        row.update(status=to_status, updated_at=_now())
        return dict(row)


# ═══════════════════════════════════════════════════════════════════════════════
# Операции и уведомления
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryActivityRepository:

    def __init__(self, state: _State) -> None:
        self._s = state

    async def record_transaction(
        self, customer_id: UUID, type_: str, amount: Decimal, description: str,
    ) -> dict | None:
        customer = self._s.customers.get(customer_id)
        if customer is None:
            return None
        if type_ == "credit":
            customer["balance"] += amount
        elif customer["balance"] >= amount:
            customer["balance"] -= amount
        else:
            return None
        customer["updated_at"] = _now()
        row = {
            "id": uuid4(),
            "customer_id": customer_id,
            "type": type_,
            "amount": amount,
            "description": description,
            "created_at": _now(),
        }
        self._s.transactions.append(row)
        return dict(row)

    async def list_transactions(self, customer_id: UUID, limit: int = 50) -> list[dict]:
        rows = [t for t in self._s.transactions if t["customer_id"] == customer_id]
        rows.reverse()  # порядок вставки = порядок создания
        return [dict(t) for t in rows[:limit]]

    async def monthly_debits(self, customer_id: UUID, since: datetime) -> dict[tuple[int, int], Decimal]:
        totals: dict[tuple[int, int], Decimal] = {}
        for t in self._s.transactions:
            if t["customer_id"] != customer_id or t["type"] != "debit" or t["created_at"] < since:
                continue
            created = t["created_at"].astimezone(timezone.utc)
            key = (created.year, created.month)
            totals[key] = totals.get(key, Decimal("0")) + t["amount"]
        return totals

    async def create_notification(
        self, customer_id: UUID, type_: str, title: str, message: str, level: str = "info",
    ) -> dict:
        row = {
            "id": uuid4(),
            "customer_id": customer_id,
            "type": type_,
            "title": title,
            "message": message,
            "level": level,
            "read": False,
            "created_at": _now(),
        }
        self._s.notifications.append(row)
        return dict(row)

    async def list_unread_notifications(self, customer_id: UUID, limit: int = 10) -> list[dict]:
        rows = [n for n in self._s.notifications if n["customer_id"] == customer_id and not n["read"]]
        rows.reverse()  # порядок вставки = порядок создания
        return [dict(n) for n in rows[:limit]]

    async def count_unread_notifications(self, customer_id: UUID) -> int:
        return sum(1 for n in self._s.notifications if n["customer_id"] == customer_id and not n["read"])

    async def mark_notifications_read(self, customer_id: UUID) -> int:
        count = 0
        for n in self._s.notifications:
            if n["customer_id"] == customer_id and not n["read"]:
                n["read"] = True
                count += 1
        return count


# ═══════════════════════════════════════════════════════════════════════════════
# Хранилище целиком
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryStore:
    """In-memory реализация хранилища (данные теряются при перезапуске)."""

    backend = "memory"

    def __init__(self) -> None:
        self._state = _State()
        self.customers = MemoryCustomerRepository(self._state)
        self.tags = MemoryTagRepository(self._state)
        self.requests = MemoryRequestRepository(self._state)
        self.activity = MemoryActivityRepository(self._state)

    async def open(self) -> None:
        logger.warning(
            "🧠 Memory store ACTIVATED — all data is in-memory (lost on restart)."
        )

    async def close(self) -> None:
        return None

    async def check(self) -> bool:
        return True

    async def write_audit(self, record: dict[str, Any]) -> None:
        self._state.audit_log.append(dict(record))

    @property
    def audit_log(self) -> list[dict]:
        return list(self._state.audit_log)
