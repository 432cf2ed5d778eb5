# salesflow/services/users.py

from typing import Optional

from fastapi.concurrency import run_in_threadpool

from salesflow.models.account import Account, Role
from salesflow.schemas.user import SessionUser, UserCreate, UserResponse
from salesflow.services.accounts import AccountStore
from salesflow.utils.errors import SelfDeletion, ValidationError
from salesflow.utils.log import Log
from salesflow.utils.security import PasswordHasher


class UserAdminService:
    """
    Управление учётными записями (доступ только администратору,
    проверяется зависимостью admin_user на уровне маршрута).
    """

    def __init__(self, hasher: PasswordHasher, log: Optional[Log] = None):
        self.hasher = hasher
        self.log = log

    async def create(self, accounts: AccountStore, payload: UserCreate) -> Account:
        """
        Создание учётной записи.
        - username, password и name обязательны
        - пароль хэшируется до сохранения
        - занятый логин → DuplicateAccount
        """
        if not payload.username or not payload.password or not payload.name:
            raise ValidationError("Логин, пароль и имя обязательны")

        password_hash = await run_in_threadpool(self.hasher.hash, payload.password)
        return await accounts.add(
            username=payload.username,
            password_hash=password_hash,
            name=payload.name,
            email=payload.email or None,
            role=payload.role or Role.SDR,
            staff_id=payload.staffId or None,
        )

    async def list_accounts(self, accounts: AccountStore) -> list[UserResponse]:
        """Все учётные записи без хэша пароля."""
        return [UserResponse.model_validate(a) for a in await accounts.list_all()]

    async def delete(self, accounts: AccountStore, caller: SessionUser, account_id: int) -> None:
        """Удаление учётной записи; удалить самого себя нельзя, отсутствие записи не ошибка."""
        if caller.id == account_id:
            if self.log:
                await self.log.log_warning("users", "Попытка удалить собственную учётную запись", {"id": account_id})
            raise SelfDeletion()
        await accounts.delete(account_id)
