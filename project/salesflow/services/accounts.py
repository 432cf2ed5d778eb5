# salesflow/services/accounts.py

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.models.account import Account, Role
from salesflow.utils.errors import DuplicateAccount
from salesflow.utils.log import Log


class AccountStore:
    """
    Хранилище учётных записей (таблица users) поверх сессии запроса.
    Хэш пароля не покидает этот класс и сервис аутентификации.
    """

    def __init__(self, db: AsyncSession, log: Optional[Log] = None):
        self.db = db
        self.log = log

    async def get_by_username(self, username: str) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.username == username).limit(1))
        account = result.scalar_one_or_none()
        # MySQL сравнивает строки без учёта регистра; логин сравниваем с учётом
        if account is None or account.username != username:
            return None
        return account

    async def get_by_id(self, account_id: int) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Account]:
        result = await self.db.execute(select(Account).order_by(Account.id))
        return list(result.scalars().all())

    async def has_admin(self) -> bool:
        result = await self.db.execute(select(Account.id).where(Account.role == Role.ADMIN.value).limit(1))
        return result.first() is not None

    async def add(
        self,
        username: str,
        password_hash: str,
        name: str,
        email: Optional[str] = None,
        role: Role = Role.SDR,
        staff_id: Optional[str] = None,
    ) -> Account:
        account = Account(
            username=username,
            password=password_hash,
            name=name,
            email=email,
            role=role.value,
            staff_id=staff_id,
        )
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if self.log:
                await self.log.log_warning("users", "Логин уже занят", {"username": username})
            raise DuplicateAccount()
        await self.db.refresh(account)

        if self.log:
            await self.log.log_info("users", "Учётная запись создана", {"id": account.id, "username": username})
        return account

    async def delete(self, account_id: int) -> None:
        """Удаляет запись; отсутствие записи не ошибка."""
        await self.db.execute(delete(Account).where(Account.id == account_id))
        await self.db.commit()
        if self.log:
            await self.log.log_info("users", "Учётная запись удалена", {"id": account_id})
