# salesflow/services/sessions.py

"""
Хранилище серверных сессий.

Сессия это запись `token -> (снимок пользователя, expires_at)`. Контракт
хранилища одинаков для всех реализаций:

- `put(record)`     сохраняет запись, перезаписывая запись с тем же токеном;
- `get(token)`      возвращает запись или None; просроченная запись считается
                    отсутствующей ещё до очистки (ленивое истечение);
- `delete(token)`   удаляет запись, отсутствие записи не ошибка;
- `sweep(now)`      удаляет все записи с `expires_at <= now`.

`SessionSweeper` вызывает `sweep` по таймеру независимо от запросов.
"""

import abc
import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select

from salesflow.config import Settings
from salesflow.models.session import SessionRow
from salesflow.schemas.user import SessionUser
from salesflow.utils.database import Database
from salesflow.utils.log import Log


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite и MySQL возвращают naive datetime; храним всегда UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


@dataclass(frozen=True)
class SessionRecord:
    token: str
    user: SessionUser
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expires_at) <= as_utc(now or utcnow())


class SessionStore(abc.ABC):
    @abc.abstractmethod
    async def put(self, record: SessionRecord) -> None:
        ...

    @abc.abstractmethod
    async def get(self, token: str) -> Optional[SessionRecord]:
        ...

    @abc.abstractmethod
    async def delete(self, token: str) -> None:
        ...

    @abc.abstractmethod
    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Удаляет просроченные записи, возвращает их количество."""


class MemorySessionStore(SessionStore):
    """Сессии в памяти процесса; записи неизменяемые, подмена целиком под замком."""

    def __init__(self):
        self._records: dict[str, SessionRecord] = {}
        self._lock = asyncio.Lock()

    async def put(self, record: SessionRecord) -> None:
        async with self._lock:
            self._records[record.token] = record

    async def get(self, token: str) -> Optional[SessionRecord]:
        if not token:
            return None
        record = self._records.get(token)
        if record is None or record.is_expired():
            return None
        return record

    async def delete(self, token: str) -> None:
        async with self._lock:
            self._records.pop(token, None)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        async with self._lock:
            expired = [t for t, r in self._records.items() if r.is_expired(now)]
            for token in expired:
                del self._records[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class DatabaseSessionStore(SessionStore):
    """Сессии в таблице `sessions`; каждая операция в отдельной транзакции."""

    def __init__(self, database: Database):
        self.database = database

    async def put(self, record: SessionRecord) -> None:
        data = record.user.model_dump_json()
        async with self.database.session() as session:
            async with session.begin():
                row = await session.get(SessionRow, record.token)
                if row is None:
                    session.add(SessionRow(
                        token=record.token,
                        data=data,
                        expires_at=as_naive_utc(record.expires_at),
                    ))
                else:
                    row.data = data
                    row.expires_at = as_naive_utc(record.expires_at)

    async def get(self, token: str) -> Optional[SessionRecord]:
        if not token:
            return None
        async with self.database.session() as session:
            row = await session.get(SessionRow, token)
            if row is None:
                return None
            record = SessionRecord(
                token=row.token,
                user=SessionUser.model_validate(json.loads(row.data)),
                expires_at=as_utc(row.expires_at),
            )
        if record.is_expired():
            return None
        return record

    async def delete(self, token: str) -> None:
        async with self.database.session() as session:
            async with session.begin():
                await session.execute(delete(SessionRow).where(SessionRow.token == token))

    async def sweep(self, now: Optional[datetime] = None) -> int:
        cutoff = as_naive_utc(now or utcnow())
        async with self.database.session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(SessionRow).where(SessionRow.expires_at <= cutoff)
                )
        return result.rowcount or 0

    async def count(self) -> int:
        async with self.database.session() as session:
            result = await session.execute(select(SessionRow.token))
            return len(result.all())


def create_session_store(settings: Settings, database: Database) -> SessionStore:
    if settings.SESSION_BACKEND == "memory":
        return MemorySessionStore()
    if settings.SESSION_BACKEND == "database":
        return DatabaseSessionStore(database)
    raise ValueError(f"Неизвестный SESSION_BACKEND: {settings.SESSION_BACKEND}")


class SessionSweeper:
    """
    Периодическая очистка просроченных сессий.
    Ошибка одной очистки пишется в журнал и не останавливает цикл.
    """

    def __init__(self, store: SessionStore, interval: float, log: Optional[Log] = None):
        self.store = store
        self.interval = interval
        self.log = log
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="session-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> int:
        removed = await self.store.sweep(utcnow())
        if removed and self.log:
            await self.log.log_info("session", "Просроченные сессии удалены", {"count": removed})
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                if self.log:
                    await self.log.log_error("session", f"Ошибка очистки сессий: {type(e).__name__}: {e}")
