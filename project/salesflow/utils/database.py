# salesflow/utils/database.py

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from salesflow.config import Settings
from salesflow.utils.security import PasswordHasher

# ────────────── Base для моделей ──────────────
Base = declarative_base()


class Database:
    """
    Асинхронный движок и фабрика сессий для хранилища учётных записей и сессий.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_async_engine(url, echo=echo)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self):
        # модели должны быть импортированы до create_all
        from salesflow.models import account as _account, session as _session  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()


# ────────────── Инициализация базы данных ──────────────
async def init_db(database: Database, settings: Settings, hasher: PasswordHasher) -> bool:
    """
    Создаёт таблицы (если ещё не созданы) и проверяет наличие администратора.
    Если администратора нет, создаёт первого из SEED_ADMIN_*.
    Существующие учётные записи не трогает.

    Возвращает True, если администратор был создан.
    """
    await database.create_all()

    from salesflow.models.account import Role
    from salesflow.services.accounts import AccountStore

    async with database.session() as session:
        accounts = AccountStore(session)
        if await accounts.has_admin():
            return False
        if await accounts.get_by_username(settings.SEED_ADMIN_USERNAME) is not None:
            return False

        await accounts.add(
            username=settings.SEED_ADMIN_USERNAME,
            password_hash=await run_in_threadpool(hasher.hash, settings.SEED_ADMIN_PASSWORD),
            name=settings.SEED_ADMIN_NAME,
            email=settings.SEED_ADMIN_EMAIL,
            role=Role.ADMIN,
        )
        return True
