"""
bankportal/api/health.py — Health check портала.

GET /api/v1/health — доступность хранилища и внешних каналов.
"""

from fastapi import APIRouter, Depends

from bankportal.context import PortalContext
from bankportal.dependencies import get_context

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check портала")
async def health(ctx: PortalContext = Depends(get_context)):
    """Проверяет хранилище; memory store считается деградацией."""
    db_ok = await ctx.store.check()
    healthy = db_ok and ctx.store.backend == "postgres"
    return {
        "status": "healthy" if healthy else "degraded",
        "store": ctx.store.backend,
        "database": "connected" if db_ok else "disconnected",
        "telegram": "enabled" if ctx.notifier.enabled else "disabled",
        "events": "connected" if ctx.events.connected else "disabled",
        "service": "bankportal",
    }
