"""
═══════════════════════════════════════════════════════════════════════════════
Bank Portal — Зависимости FastAPI (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

``get_context`` отдаёт ``PortalContext`` из ``app.state`` (создаётся
в lifespan). ``get_current_customer`` читает сессию из cookie, а при её
отсутствии — из заголовка ``Authorization: Bearer``.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, Request

from bankportal.context import PortalContext
from bankportal.exceptions import AuthenticationError, AuthorizationError
from bankportal.services.customer_service import decode_session_token, load_active_customer


def get_context(request: Request) -> PortalContext:
    """Контекст сервисов текущего приложения."""
    return request.app.state.ctx


def _session_token(request: Request, ctx: PortalContext, authorization: str | None) -> str | None:
    token = request.cookies.get(ctx.settings.session_cookie_name)
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


async def get_current_customer(
    request: Request,
    authorization: str | None = Header(None),
    ctx: PortalContext = Depends(get_context),
) -> dict:
    """
    Клиент текущей сессии.

    Raises:
        AuthenticationError: сессии нет, токен невалиден или клиент удалён.
        AuthorizationError:  счёт заморожен.
    """
    token = _session_token(request, ctx, authorization)
    if not token:
        raise AuthenticationError("Please log in")
    customer_id = decode_session_token(ctx.settings, token)
    return await load_active_customer(ctx, customer_id)


async def require_operator(
    x_operator_key: str | None = Header(None),
    ctx: PortalContext = Depends(get_context),
) -> str:
    """Проверка ключа операторского API (заголовок ``X-Operator-Key``)."""
    if not x_operator_key or not secrets.compare_digest(
        x_operator_key.encode(), ctx.settings.operator_api_key.encode(),
    ):
        raise AuthorizationError("Invalid operator key")
    return "operator"


def idempotency_key(idempotency_key: str | None = Header(None, max_length=128)) -> str | None:
    """Необязательный заголовок ``Idempotency-Key``."""
    if idempotency_key is None:
        return None
    return idempotency_key.strip() or None
