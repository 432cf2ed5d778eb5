# salesflow/routes/users.py

from typing import List

from fastapi import APIRouter, Depends, Request, status

from salesflow.middleware.authorization import admin_user
from salesflow.schemas.user import SessionUser, Success, UserCreate, UserCreated, UserResponse
from salesflow.services.accounts import AccountStore

router = APIRouter()


def get_accounts(request: Request) -> AccountStore:
    return AccountStore(request.state.db, request.app.state.log)


# ────────────── LIST ──────────────
@router.get(
    "",
    response_model=List[UserResponse],
    summary="Список учётных записей (только администратор)",
    responses={
        200: {"description": "Учётные записи без хэша пароля"},
        401: {"description": "Нет сессии"},
        403: {"description": "Роль не admin"},
    },
)
async def list_users(
    request: Request,
    _: SessionUser = Depends(admin_user),
    accounts: AccountStore = Depends(get_accounts),
):
    return await request.app.state.users.list_accounts(accounts)


# ────────────── CREATE ──────────────
@router.post(
    "",
    response_model=UserCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Создание учётной записи (только администратор)",
    responses={
        201: {"description": "Учётная запись создана"},
        400: {"description": "Не хватает обязательных полей или логин занят"},
        401: {"description": "Нет сессии"},
        403: {"description": "Роль не admin"},
    },
)
async def create_user(
    body: UserCreate,
    request: Request,
    _: SessionUser = Depends(admin_user),
    accounts: AccountStore = Depends(get_accounts),
):
    """
    ## Создание учётной записи

    - `username`, `password`, `name` обязательны
    - `role` по умолчанию `sdr`
    - `staffId` связывает учётную запись с сотрудником CRM
    - Пароль всегда хэшируется перед сохранением
    """
    account = await request.app.state.users.create(accounts, body)
    return {"success": True, "id": account.id}


# ────────────── DELETE ──────────────
@router.delete(
    "/{user_id}",
    response_model=Success,
    summary="Удаление учётной записи (только администратор)",
    responses={
        200: {"description": "Учётная запись удалена (или отсутствовала)"},
        400: {"description": "Нельзя удалить самого себя (self_deletion)"},
        401: {"description": "Нет сессии"},
        403: {"description": "Роль не admin"},
    },
)
async def delete_user(
    user_id: int,
    request: Request,
    caller: SessionUser = Depends(admin_user),
    accounts: AccountStore = Depends(get_accounts),
):
    await request.app.state.users.delete(accounts, caller, user_id)
    return {"success": True}
