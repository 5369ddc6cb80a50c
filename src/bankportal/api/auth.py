"""
bankportal/api/auth.py — Регистрация, вход и выход клиента.
"""

from fastapi import APIRouter, Depends, Response, status

from bankportal.context import PortalContext
from bankportal.dependencies import get_context
from bankportal.models.customer import CustomerCreate, LoginRequest, SessionRead
from bankportal.services import customer_service

router = APIRouter(tags=["auth"])


def _open_session(response: Response, ctx: PortalContext, customer: dict) -> SessionRead:
    token = customer_service.create_session_token(ctx.settings, customer["id"])
    response.set_cookie(
        key=ctx.settings.session_cookie_name,
        value=token,
        max_age=ctx.settings.session_expire_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=ctx.settings.app_env == "production",
    )
    return SessionRead(token=token, customer=customer_service.customer_read(customer))


@router.post(
    "/register",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Регистрация клиента",
)
async def register(body: CustomerCreate, response: Response, ctx: PortalContext = Depends(get_context)):
    customer = await customer_service.register(ctx, body)
    return _open_session(response, ctx, customer)


@router.post("/login", response_model=SessionRead, summary="Вход по email + PIN")
async def login(body: LoginRequest, response: Response, ctx: PortalContext = Depends(get_context)):
    customer = await customer_service.authenticate(ctx, body.email, body.pin)
    return _open_session(response, ctx, customer)


@router.post("/logout", summary="Выход (сброс cookie сессии)")
async def logout(response: Response, ctx: PortalContext = Depends(get_context)):
    response.delete_cookie(ctx.settings.session_cookie_name)
    return {"logged_out": True}
