# salesflow/middleware/authorization.py

"""
Проверки доступа перед обработчиками маршрутов.

`require_admin` и `require_authenticated` это чистые функции над
(хранилище сессий, токен) и не зависят от веб-фреймворка. Они не меняют
хранилище: единственный побочный эффект это ленивое истечение внутри `get`.

`current_user` и `admin_user` это зависимости FastAPI поверх них: достают
токен из cookie сессии (или заголовка `Authorization: Bearer`) и кладут
снимок пользователя в `request.state.user`.
"""

from typing import Optional

from fastapi import Request

from salesflow.models.account import Role
from salesflow.schemas.user import SessionUser
from salesflow.services.sessions import SessionStore
from salesflow.utils.errors import Forbidden, Unauthenticated


async def require_authenticated(store: SessionStore, token: Optional[str]) -> SessionUser:
    record = await store.get(token) if token else None
    if record is None:
        raise Unauthenticated()
    return record.user


async def require_admin(store: SessionStore, token: Optional[str]) -> SessionUser:
    user = await require_authenticated(store, token)
    if user.role != Role.ADMIN:
        raise Forbidden()
    return user


def session_token(request: Request) -> Optional[str]:
    """Токен сессии из подписанной cookie, иначе из заголовка Authorization."""
    auth = request.app.state.auth
    cookie = request.cookies.get(auth.settings.SESSION_COOKIE_NAME)
    if cookie:
        return auth.unsign_token(cookie)

    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return auth.unsign_token(value.strip())
    return None


async def current_user(request: Request) -> SessionUser:
    user = await require_authenticated(request.app.state.sessions, session_token(request))
    request.state.user = user
    return user


async def admin_user(request: Request) -> SessionUser:
    user = await require_admin(request.app.state.sessions, session_token(request))
    request.state.user = user
    return user
