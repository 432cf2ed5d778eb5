# salesflow/routes/team.py

from typing import List

from fastapi import APIRouter, Depends, Request

from salesflow.middleware.authorization import current_user
from salesflow.routes.lead import CRM_ERRORS
from salesflow.schemas.crm import TeamMember
from salesflow.schemas.user import SessionUser
from salesflow.services.crm import to_team_member

router = APIRouter()


# ────────────── TEAM ──────────────
@router.get(
    "/team",
    response_model=List[TeamMember],
    summary="Команда продаж из CRM",
    response_description="Сотрудники CRM (id, name, email); без отдельного эндпоинта собираются из лидов",
    responses={200: {"description": "Список сотрудников"}, **CRM_ERRORS},
)
async def read_team(request: Request, _: SessionUser = Depends(current_user)):
    team = await request.app.state.crm.list_team()
    return [to_team_member(staff) for staff in team if isinstance(staff, dict)]


# ────────────── STAFF ──────────────
@router.get(
    "/staff/{staff_id}",
    summary="Сотрудник CRM по ID",
    responses={200: {"description": "Ответ CRM без изменений"}, **CRM_ERRORS},
)
async def read_staff(staff_id: str, request: Request, _: SessionUser = Depends(current_user)):
    return await request.app.state.crm.get_staff(staff_id)
