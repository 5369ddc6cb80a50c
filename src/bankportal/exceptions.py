"""
═══════════════════════════════════════════════════════════════════════════════
Bank Portal — Иерархия доменных ошибок (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Базовый класс ``PortalError``. HTTP-маппинг кодов выполняется
в ``bankportal.main:portal_error_handler``.
"""


class PortalError(Exception):
    """
    Базовое исключение для всех доменных ошибок портала.

    Атрибуты
    ────────
        message (str):  Описание ошибки. Передаётся клиенту в JSON.
        code (str):     Строковый код. Используется для маппинга на HTTP-статус.
        details (dict): Дополнительные данные (entity, field и т.д.).
    """

    def __init__(
        self,
        message: str,
        code: str = "PORTAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(PortalError):
    """Ошибка аутентификации: 401 Unauthorized."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="PORTAL_AUTH_ERROR")


class AuthorizationError(PortalError):
    """Ошибка авторизации (замороженный счёт, неверный ключ оператора): 403."""

    def __init__(self, message: str = "Access denied", details: dict | None = None):
        super().__init__(message, code="PORTAL_AUTHZ_ERROR", details=details)


class NotFoundError(PortalError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="PORTAL_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(PortalError):
    """Конфликт с текущим состоянием: 409 Conflict."""

    def __init__(self, message: str, details: dict | None = None, code: str = "PORTAL_CONFLICT"):
        super().__init__(message, code=code, details=details)


class InvalidTransitionError(ConflictError):
    """Недопустимый переход статуса заявки: 409 Conflict."""

    def __init__(self, request_id: str, current: str, target: str):
        super().__init__(
            f"Request {request_id} cannot move from '{current}' to '{target}'",
            details={"request_id": request_id, "current": current, "target": target},
            code="PORTAL_INVALID_TRANSITION",
        )


class ValidationError(PortalError):
    """Ошибка доменной валидации: 422 Unprocessable Entity."""

    def __init__(self, message: str, details: dict | None = None, code: str = "PORTAL_VALIDATION_ERROR"):
        super().__init__(message, code=code, details=details)


class InsufficientFundsError(ValidationError):
    """Сумма вывода превышает баланс: 422."""

    def __init__(self, requested: str, available: str | None = None):
        details = {"requested": requested}
        if available is not None:
            details["available"] = available
        super().__init__(
            "Insufficient balance for this withdrawal",
            details=details,
            code="PORTAL_INSUFFICIENT_FUNDS",
        )


__all__ = [
    "PortalError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "ValidationError",
    "InsufficientFundsError",
]
