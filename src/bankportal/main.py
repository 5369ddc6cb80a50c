"""
═══════════════════════════════════════════════════════════════════════════════
Bank Portal — Главная точка входа сервиса (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения (Application Factory Pattern). Хранилище, канал
оператора и публикатор событий собираются в ``PortalContext`` в lifespan
и кладутся в ``app.state.ctx``; обработчики получают его через
``Depends(get_context)``. Тесты передают готовый контекст в ``create_app``.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bankportal import __version__
from bankportal.adapters.telegram_client import TelegramNotifier
from bankportal.api.account import router as account_router
from bankportal.api.activity import router as activity_router
from bankportal.api.auth import router as auth_router
from bankportal.api.health import router as health_router
from bankportal.api.operator import router as operator_router
from bankportal.api.requests import router as requests_router
from bankportal.api.transfers import router as transfers_router
from bankportal.config import PortalSettings, get_settings
from bankportal.context import PortalContext
from bankportal.database import Database
from bankportal.db.store import PostgresStore
from bankportal.events import EventPublisher
from bankportal.exceptions import PortalError
from bankportal.memory_store import MemoryStore

# ═══════════════════════════════════════════════════════════════════════════════
# Настройка логирования
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "db" / "migrations"

STATUS_MAP = {
    "PORTAL_NOT_FOUND": 404,
    "PORTAL_CONFLICT": 409,
    "PORTAL_INVALID_TRANSITION": 409,
    "PORTAL_VALIDATION_ERROR": 422,
    "PORTAL_INSUFFICIENT_FUNDS": 422,
    "PORTAL_AUTH_ERROR": 401,
    "PORTAL_AUTHZ_ERROR": 403,
}


def _error_body(code: str, message: str, details) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Автоматическое применение SQL-миграций
# ═══════════════════════════════════════════════════════════════════════════════

async def _apply_migrations(pool) -> None:
    """Применяет SQL-миграции из ``bankportal/db/migrations/``."""
    sql_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not sql_files:
        logger.info("No SQL migration files found — skipping")
        return

    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS _applied_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
        """)

        rows = await conn.fetch("SELECT filename FROM _applied_migrations")
        applied = {row["filename"] for row in rows}

        for sql_file in sql_files:
            if sql_file.name in applied:
                continue

            logger.info(f"📄 Applying migration: {sql_file.name}")
            async with conn.transaction():
                await conn.execute(sql_file.read_text(encoding="utf-8"))
                await conn.execute(
                    "INSERT INTO _applied_migrations (filename) VALUES ($1)",
                    sql_file.name,
                )
            logger.info(f"✅ Migration applied: {sql_file.name}")

    logger.info(f"✅ All portal migrations up to date ({len(sql_files)} files checked)")


async def _open_store(settings: PortalSettings):
    """PostgreSQL, а при его недоступности — memory store."""
    database = Database.from_settings(settings)
    try:
        pool = await database.open()
        logger.info("✅ Portal database pool initialized")
    except Exception as e:
        logger.warning(f"⚠️  Database not available — activating memory store: {e}")
        return MemoryStore()

    try:
        await _apply_migrations(pool)
    except Exception as e:
        logger.warning(f"⚠️  Migration apply failed (non-fatal): {e}")
    return PostgresStore(database)


def build_context(settings: PortalSettings, store) -> PortalContext:
    return PortalContext(
        settings=settings,
        store=store,
        notifier=TelegramNotifier.from_settings(settings),
        events=EventPublisher(settings.nats_url),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan — управление жизненным циклом
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        1. Хранилище (PostgreSQL + миграции или memory store).
        2. Канал оператора (Telegram) и NATS.

    Shutdown: в обратном порядке.
    """
    settings: PortalSettings = app.state.settings
    logger.info(f"🚀 Bank Portal v{__version__} starting...")
    logger.info(f"   Log level: {settings.log_level}")

    if app.state.ctx is None:
        store = await _open_store(settings)
        app.state.ctx = build_context(settings, store)

    ctx: PortalContext = app.state.ctx
    await ctx.open()
    logger.info(f"   Store: {ctx.store.backend}")

    yield

    try:
        await ctx.close()
    except Exception as e:
        logger.warning(f"⚠️  Shutdown error: {e}")
    logger.info("🛑 Bank Portal stopped")


# ═══════════════════════════════════════════════════════════════════════════════
# Фабрика приложения
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(settings: PortalSettings | None = None, context: PortalContext | None = None) -> FastAPI:
    """Создаёт и конфигурирует FastAPI-приложение портала."""
    settings = settings or (context.settings if context else get_settings())
    _is_production = settings.app_env == "production"

    app = FastAPI(
        redirect_slashes=False,
        title="Bank Portal",
        description=(
            "Online banking portal: registration, tag-based P2P requests, "
            "deposits and withdrawals approved by an operator."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if _is_production else "/docs",
        redoc_url=None if _is_production else "/redoc",
        openapi_url=None if _is_production else "/api/v1/openapi.json",
    )
    app.state.settings = settings
    app.state.ctx = context

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Idempotency-Key", "X-Operator-Key"],
    )

    # ── Подключение API-роутеров ─────────────────────────────────────────
    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(auth_router)
    v1_router.include_router(account_router)
    v1_router.include_router(transfers_router)
    v1_router.include_router(requests_router)
    v1_router.include_router(activity_router)
    v1_router.include_router(operator_router)
    v1_router.include_router(health_router)
    app.include_router(v1_router)

    # ── Глобальный обработчик PortalError ────────────────────────────────
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        """Маппинг кодов портала на HTTP-статусы."""
        status_code = STATUS_MAP.get(exc.code, 500)
        return JSONResponse(status_code=status_code, content=_error_body(exc.code, exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_body("PORTAL_VALIDATION_ERROR", "Request validation failed", {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("PORTAL_INTERNAL_ERROR", "Something went wrong. Please try again.", {}),
        )

    # ── Корневой эндпоинт ────────────────────────────────────────────────
    @app.get("/")
    async def root():
        return {
            "name": "Bank Portal",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "v1": {
                    "health": "/api/v1/health",
                    "register": "/api/v1/register",
                    "login": "/api/v1/login",
                    "lookup": "/api/v1/lookup?q=@tag",
                    "p2p": "/api/v1/p2p",
                    "requests": "/api/v1/requests",
                },
            },
        }

    return app


def main() -> None:
    """Запускает портал через Uvicorn."""
    settings = get_settings()
    logger.info(f"Starting Bank Portal on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "bankportal.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
