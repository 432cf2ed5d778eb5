# salesflow/schemas/user.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from salesflow.models.account import Role


class LoginRequest(BaseModel):
    """
    Тело запроса POST /auth/login.
    Пустые значения допускаются схемой и отклоняются сервисом как validation_error.
    """
    username: str = ""
    password: str = ""


class SessionUser(BaseModel):
    """
    Снимок учётной записи, сделанный в момент входа.
    Хранится в сессии; последующие изменения учётной записи в нём не отражаются.
    """
    id: int
    username: str
    name: str
    role: Role
    staffId: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserEnvelope(BaseModel):
    user: SessionUser


class UserCreate(BaseModel):
    """
    Схема создания учётной записи (только администратор).
    Обязательность username/password/name проверяет сервис.
    """
    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    staffId: Optional[str] = None


class UserResponse(BaseModel):
    """Учётная запись в ответе API, без хэша пароля."""
    id: int
    username: str
    name: str
    email: Optional[str] = None
    role: Role
    staffId: Optional[str] = Field(default=None, validation_alias="staff_id")
    createdAt: Optional[datetime] = Field(default=None, validation_alias="created_at")

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


class UserCreated(BaseModel):
    success: bool = True
    id: int


class Success(BaseModel):
    success: bool = True
