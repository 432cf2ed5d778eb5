# salesflow/utils/errors.py

"""
Ошибки приложения и их отображение в HTTP-ответы.

Каждая ошибка несёт стабильный машиночитаемый `kind` и человекочитаемое
сообщение. Клиент получает JSON вида:

    {"error": "<kind>", "message": "<текст>"}

Трассировки стека и внутренние идентификаторы наружу не выдаются.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Внутренняя ошибка сервера"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(AppError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Некорректные данные"


class InvalidCredentials(AppError):
    kind = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Неверный логин или пароль"


class Unauthenticated(AppError):
    kind = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Не авторизован"


class Forbidden(AppError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Доступ запрещён"


class DuplicateAccount(AppError):
    kind = "duplicate_account"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Пользователь уже существует"


class SelfDeletion(AppError):
    kind = "self_deletion"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Нельзя удалить собственную учётную запись"


class UpstreamError(AppError):
    """Ошибка CRM: статус и тело ответа сохраняются для диагностики."""

    kind = "upstream_error"

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        super().__init__(message or f"CRM API Error: {status_code}")
        self.status_code = status_code
        self.body = body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["details"] = self.body
        return payload


class UpstreamTimeout(AppError):
    kind = "upstream_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    message = "CRM не ответила вовремя"


# ────────────── Обработчики ──────────────
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError()
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log = getattr(request.app.state, "log", None)
    if log:
        await log.log_error("app", f"Необработанная ошибка: {type(exc).__name__}", {"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=AppError().to_payload(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
