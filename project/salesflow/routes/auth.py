# salesflow/routes/auth.py

from fastapi import APIRouter, Depends, Request, Response

from salesflow.middleware.authorization import current_user, session_token
from salesflow.schemas.user import LoginRequest, SessionUser, Success, UserEnvelope
from salesflow.services.accounts import AccountStore

router = APIRouter()


# ────────────── LOGIN ──────────────
@router.post(
    "/login",
    response_model=UserEnvelope,
    summary="Вход по логину и паролю",
    responses={
        200: {"description": "Сессия создана, cookie установлена. Возвращает снимок пользователя."},
        400: {"description": "Пустой логин или пароль (validation_error)"},
        401: {"description": "Неверный логин или пароль (invalid_credentials)"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def login(body: LoginRequest, request: Request, response: Response):
    """
    Проверяет логин и пароль и создаёт новую сессию.

    **Выходные данные:**
    - cookie сессии (httpOnly, SameSite=Lax, срок SESSION_TTL_SECONDS)
    - `user`: `id`, `username`, `name`, `role`, `staffId`

    Неизвестный логин и неверный пароль дают одинаковый ответ `401`.
    """
    auth = request.app.state.auth
    accounts = AccountStore(request.state.db, request.app.state.log)

    record = await auth.login(accounts, body.username, body.password)

    settings = auth.settings
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=auth.sign_token(record.token, record.expires_at),
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return {"user": record.user}


# ────────────── LOGOUT ──────────────
@router.post(
    "/logout",
    response_model=Success,
    summary="Выход (завершение сессии)",
    responses={200: {"description": "Сессия удалена или уже отсутствовала"}},
)
async def logout(request: Request, response: Response):
    """Удаляет сессию и cookie. Повторный вызов не ошибка."""
    auth = request.app.state.auth
    await auth.logout(session_token(request))
    response.delete_cookie(
        key=auth.settings.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=auth.settings.SESSION_COOKIE_SECURE,
    )
    return {"success": True}


# ────────────── ME ──────────────
@router.get(
    "/me",
    response_model=UserEnvelope,
    summary="Текущий пользователь",
    responses={
        200: {"description": "Снимок пользователя из сессии"},
        401: {"description": "Нет сессии или она истекла (unauthenticated)"},
    },
)
async def me(user: SessionUser = Depends(current_user)):
    return {"user": user}
