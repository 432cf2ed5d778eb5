# salesflow/services/crm.py

"""
Прокси к внешней CRM (лиды, сотрудники, активности, напоминания).

CRM это внешний сервис: записи лидов и сотрудников для нас бесструктурны.
Слой только нормализует ответы (не-массив → пустой список) и передаёт
ошибки CRM как есть (статус и тело ответа сохраняются в UpstreamError).
Прокси не знает, кто его вызывает: фильтрация лидов по роли делается
функцией `filter_leads_for` в слое, где известна сессия.
"""

import asyncio
from typing import Any, Optional, Protocol

import httpx

from salesflow.models.account import Role
from salesflow.schemas.crm import TeamMember
from salesflow.schemas.user import SessionUser
from salesflow.utils.errors import UpstreamError, UpstreamTimeout
from salesflow.utils.log import Log

# Значения поля assigned, означающие «лид никому не назначен»
UNASSIGNED = {"", "0"}


class CRMGateway(Protocol):
    async def list_leads(self) -> list[dict]: ...

    async def list_team(self) -> list[dict]: ...

    async def get_staff(self, staff_id: str) -> Any: ...

    async def lead_activities(self, lead_id: str) -> Any: ...

    async def lead_reminders(self, lead_id: str) -> Any: ...


def as_list(data: Any) -> list:
    return data if isinstance(data, list) else []


class CRMClient:
    """
    HTTP-клиент CRM поверх httpx.AsyncClient.
    Авторизация: сервисный токен в заголовке `authtoken`, не личность вызывающего.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        team_endpoint: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        log: Optional[Log] = None,
    ):
        self.team_endpoint = team_endpoint
        self.timeout = timeout
        self.log = log
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers={"authtoken": token, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str) -> Any:
        try:
            # timeout httpx ограничивает каждый шаг отдельно; wait_for ограничивает запрос целиком
            response = await asyncio.wait_for(self.client.get(path), timeout=self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            if self.log:
                await self.log.log_error("crm", "Таймаут запроса к CRM", {"path": path})
            raise UpstreamTimeout()
        except httpx.HTTPError as e:
            if self.log:
                await self.log.log_error("crm", f"Ошибка соединения с CRM: {type(e).__name__}", {"path": path})
            raise UpstreamError(502, str(e), message="CRM недоступна")

        if not response.is_success:
            if self.log:
                await self.log.log_error("crm", f"CRM ответила {response.status_code}", {"path": path})
            raise UpstreamError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError:
            raise UpstreamError(502, response.text, message="CRM вернула не JSON")

    # ────────────── Лиды ──────────────
    async def list_leads(self) -> list[dict]:
        leads = as_list(await self._get("leads"))
        if self.log:
            await self.log.log_info("crm", "Лиды получены", {"count": len(leads)})
        return leads

    async def lead_activities(self, lead_id: str) -> Any:
        return await self._get(f"leads/{lead_id}/activities")

    async def lead_reminders(self, lead_id: str) -> Any:
        return await self._get(f"reminders/lead/{lead_id}")

    # ────────────── Сотрудники ──────────────
    async def get_staff(self, staff_id: str) -> Any:
        return await self._get(f"staffs/{staff_id}")

    async def list_team(self) -> list[dict]:
        """
        Команда продаж.
        Если задан отдельный эндпоинт команды, берём его. Иначе собираем
        команду из лидов: уникальные assigned → запрос каждого сотрудника;
        сотрудники, чей запрос не удался, молча отбрасываются.
        """
        if self.team_endpoint:
            return as_list(await self._get(self.team_endpoint))

        leads = await self.list_leads()
        staff_ids = assigned_staff_ids(leads)
        results = await asyncio.gather(
            *(self.get_staff(staff_id) for staff_id in staff_ids),
            return_exceptions=True,
        )
        team = [r for r in results if r is not None and not isinstance(r, BaseException)]

        if self.log:
            await self.log.log_info("crm", "Команда собрана из лидов", {
                "staff_ids": staff_ids,
                "resolved": len(team),
            })
        return team


def assigned_staff_ids(leads: list[dict]) -> list[str]:
    """Уникальные непустые assigned в порядке первого появления."""
    seen: list[str] = []
    for lead in leads:
        if not isinstance(lead, dict):
            continue
        assigned = lead.get("assigned")
        if assigned is None:
            continue
        assigned = str(assigned)
        if assigned in UNASSIGNED or assigned in seen:
            continue
        seen.append(assigned)
    return seen


def filter_leads_for(user: SessionUser, leads: list[dict]) -> list[dict]:
    """
    Построчный доступ к лидам:
    - admin видит все лиды
    - sdr видит только лиды, где assigned совпадает с его staffId
    """
    if user.role == Role.ADMIN:
        return leads
    if not user.staffId:
        return []
    return [
        lead for lead in leads
        if isinstance(lead, dict) and lead.get("assigned") is not None and str(lead["assigned"]) == user.staffId
    ]


def to_team_member(raw: dict) -> TeamMember:
    """staffid|id → id; firstname + lastname|name → name; email."""
    first = str(raw.get("firstname") or "").strip()
    last = str(raw.get("lastname") or "").strip()
    if first and last:
        name = f"{first} {last}"
    else:
        name = str(raw.get("name") or "Без имени")
    return TeamMember(
        id=str(raw.get("staffid") or raw.get("id") or ""),
        name=name,
        email=str(raw.get("email") or ""),
    )
