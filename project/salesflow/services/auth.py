# salesflow/services/auth.py

import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from jwt import ExpiredSignatureError, InvalidTokenError, decode, encode

from salesflow.config import Settings
from salesflow.schemas.user import SessionUser
from salesflow.services.accounts import AccountStore
from salesflow.services.sessions import SessionRecord, SessionStore, utcnow
from salesflow.utils.errors import InvalidCredentials, Unauthenticated, ValidationError
from salesflow.utils.log import Log
from salesflow.utils.security import PasswordHasher

ALGORITHM = "HS256"


class AuthService:
    """
    Вход, выход и проверка сессии.

    Ответ на неизвестный логин и на неверный пароль одинаков
    (InvalidCredentials), чтобы по нему нельзя было перебирать логины.
    """

    def __init__(self, store: SessionStore, hasher: PasswordHasher, settings: Settings, log: Optional[Log] = None):
        self.store = store
        self.hasher = hasher
        self.settings = settings
        self.log = log
        self.ttl = timedelta(seconds=settings.SESSION_TTL_SECONDS)
        # хэш-заглушка: неизвестный логин проверяется так же долго, как известный
        self._dummy_hash = hasher.hash(secrets.token_hex(16))

    async def login(self, accounts: AccountStore, username: str, password: str) -> SessionRecord:
        if not username or not password:
            raise ValidationError("Логин и пароль обязательны")

        account = await accounts.get_by_username(username)
        hashed = account.password if account is not None else self._dummy_hash
        verified = await run_in_threadpool(self.hasher.verify, password, hashed)
        if account is None or not verified:
            if self.log:
                await self.log.log_warning("auth", "Неудачная попытка входа", {"username": username})
            raise InvalidCredentials()

        user = SessionUser(
            id=account.id,
            username=account.username,
            name=account.name,
            role=account.role,
            staffId=account.staff_id,
        )
        record = SessionRecord(
            token=secrets.token_urlsafe(32),
            user=user,
            expires_at=utcnow() + self.ttl,
        )
        await self.store.put(record)

        if self.log:
            await self.log.log_info("auth", "Пользователь вошёл", {"id": user.id, "username": user.username})
        return record

    async def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        await self.store.delete(token)
        if self.log:
            await self.log.log_info("auth", "Сессия завершена")

    async def current_session(self, token: Optional[str]) -> SessionUser:
        record = await self.store.get(token) if token else None
        if record is None:
            raise Unauthenticated()
        return record.user

    # ────────────── Подпись cookie ──────────────
    def sign_token(self, token: str, expires_at: datetime) -> str:
        """Значение cookie: JWT {"sid": token, "exp": ...}, подписанный SESSION_SECRET."""
        return encode({"sid": token, "exp": expires_at}, self.settings.SESSION_SECRET, algorithm=ALGORITHM)

    def unsign_token(self, value: Optional[str]) -> Optional[str]:
        """Возвращает токен сессии из cookie или None, если подпись неверна или истекла."""
        if not value:
            return None
        try:
            payload = decode(value, self.settings.SESSION_SECRET, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            return None
        except InvalidTokenError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) else None
