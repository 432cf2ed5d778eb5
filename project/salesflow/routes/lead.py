# salesflow/routes/lead.py

from fastapi import APIRouter, Depends, Request, status

from salesflow.middleware.authorization import current_user
from salesflow.schemas.user import SessionUser
from salesflow.services.crm import filter_leads_for

router = APIRouter()

CRM_ERRORS = {
    401: {"description": "Нет сессии"},
    502: {"description": "CRM недоступна или вернула ошибку (upstream_error, статус CRM сохраняется)"},
    504: {"description": "CRM не ответила вовремя (upstream_timeout)"},
}


# ────────────── READ ALL ──────────────
@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="Лиды из CRM",
    response_description="admin получает все лиды, sdr только назначенные ему",
    responses={200: {"description": "Список лидов"}, **CRM_ERRORS},
)
async def read_leads(request: Request, user: SessionUser = Depends(current_user)):
    leads = await request.app.state.crm.list_leads()
    visible = filter_leads_for(user, leads)
    await request.app.state.log.log_info("lead", "Список лидов выдан", {
        "user_id": user.id,
        "total": len(leads),
        "visible": len(visible),
    })
    return visible


# ────────────── ACTIVITIES ──────────────
@router.get(
    "/{lead_id}/activities",
    summary="История активности лида",
    responses={200: {"description": "Ответ CRM без изменений"}, **CRM_ERRORS},
)
async def read_lead_activities(lead_id: str, request: Request, _: SessionUser = Depends(current_user)):
    return await request.app.state.crm.lead_activities(lead_id)


# ────────────── REMINDERS ──────────────
@router.get(
    "/{lead_id}/reminders",
    summary="Напоминания по лиду",
    responses={200: {"description": "Ответ CRM без изменений"}, **CRM_ERRORS},
)
async def read_lead_reminders(lead_id: str, request: Request, _: SessionUser = Depends(current_user)):
    return await request.app.state.crm.lead_reminders(lead_id)
