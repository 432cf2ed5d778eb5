import asyncio
import json

import httpx
import pytest

from conftest import make_user
from salesflow.models.account import Role
from salesflow.services.crm import CRMClient, assigned_staff_ids, filter_leads_for, to_team_member
from salesflow.utils.errors import UpstreamError, UpstreamTimeout

pytestmark = pytest.mark.unit

_BASE = "https://crm.test/api"


def _json(data, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(data).encode(), headers={"Content-Type": "application/json"})


def _client(handler, **kwargs) -> CRMClient:
    return CRMClient(_BASE, "crm-token", timeout=1.0, transport=httpx.MockTransport(handler), **kwargs)


# ---------------------------------------------------------------------------
# Прокси
# ---------------------------------------------------------------------------


async def test_list_leads_sends_service_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["token"] = request.headers.get("authtoken")
        return _json([{"id": "1", "assigned": "A"}])

    client = _client(handler)
    leads = await client.list_leads()
    await client.aclose()

    assert leads == [{"id": "1", "assigned": "A"}]
    assert seen == {"path": "/api/leads", "token": "crm-token"}


@pytest.mark.parametrize("body", [{"status": False}, "text", None, 42])
async def test_list_leads_non_array_becomes_empty(body):
    client = _client(lambda request: _json(body))
    assert await client.list_leads() == []
    await client.aclose()


async def test_upstream_error_keeps_status_and_body():
    client = _client(lambda request: httpx.Response(403, text='{"message":"Token invalid"}'))

    with pytest.raises(UpstreamError) as exc_info:
        await client.list_leads()
    await client.aclose()

    assert exc_info.value.status_code == 403
    assert exc_info.value.body == '{"message":"Token invalid"}'
    assert exc_info.value.to_payload()["details"] == '{"message":"Token invalid"}'


async def test_timeout_becomes_upstream_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler)
    with pytest.raises(UpstreamTimeout) as exc_info:
        await client.lead_activities("10")
    await client.aclose()

    assert exc_info.value.status_code == 504


async def test_connection_error_becomes_bad_gateway():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(UpstreamError) as exc_info:
        await client.list_leads()
    await client.aclose()

    assert exc_info.value.status_code == 502


async def test_redirects_are_followed():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        if request.url.path == "/api/leads":
            return httpx.Response(301, headers={"Location": "https://crm.test/api/leads/"})
        return _json([{"id": "1", "assigned": "A"}])

    client = _client(handler)
    leads = await client.list_leads()
    await client.aclose()

    assert leads == [{"id": "1", "assigned": "A"}]
    assert seen == ["/api/leads", "/api/leads/"]


async def test_slow_response_is_cut_by_overall_timeout():
    async def handler(request):
        await asyncio.sleep(5)
        return _json([])

    client = CRMClient(_BASE, "crm-token", timeout=0.05, transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamTimeout):
        await client.list_leads()
    await client.aclose()


@pytest.mark.parametrize(
    "method,path",
    [
        ("lead_activities", "/api/leads/10/activities"),
        ("lead_reminders", "/api/reminders/lead/10"),
        ("get_staff", "/api/staffs/10"),
    ],
)
async def test_single_resource_paths(method, path):
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return _json({"ok": True})

    client = _client(handler)
    assert await getattr(client, method)("10") == {"ok": True}
    await client.aclose()

    assert seen == [path]


# ---------------------------------------------------------------------------
# Команда
# ---------------------------------------------------------------------------


async def test_team_derived_from_leads_drops_failed_lookups():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/api/leads":
            return _json([{"assigned": "A"}, {"assigned": "A"}, {"assigned": "B"}])
        if request.url.path == "/api/staffs/A":
            return _json({"staffid": "A", "firstname": "Ana", "lastname": "Lima"})
        return httpx.Response(404, text="not found")

    client = _client(handler)
    team = await client.list_team()
    await client.aclose()

    assert team == [{"staffid": "A", "firstname": "Ana", "lastname": "Lima"}]
    assert calls.count("/api/staffs/A") == 1
    assert calls.count("/api/staffs/B") == 1


async def test_team_survives_timeouts_on_single_staff():
    def handler(request):
        if request.url.path == "/api/leads":
            return _json([{"assigned": "A"}, {"assigned": "B"}])
        if request.url.path == "/api/staffs/B":
            raise httpx.ReadTimeout("slow", request=request)
        return _json({"staffid": "A"})

    client = _client(handler)
    assert await client.list_team() == [{"staffid": "A"}]
    await client.aclose()


async def test_team_uses_dedicated_endpoint_when_configured():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return _json([{"staffid": "1"}, {"staffid": "2"}])

    client = _client(handler, team_endpoint="staffs")
    team = await client.list_team()
    await client.aclose()

    assert len(team) == 2
    assert calls == ["/api/staffs"]


async def test_team_propagates_leads_failure():
    client = _client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(UpstreamError):
        await client.list_team()
    await client.aclose()


def test_assigned_staff_ids_skips_empty_values():
    leads = [
        {"assigned": "A"},
        {"assigned": None},
        {"assigned": ""},
        {"assigned": "0"},
        {"assigned": 7},
        {"name": "no assignee"},
        "not-a-dict",
        {"assigned": "A"},
    ]
    assert assigned_staff_ids(leads) == ["A", "7"]


# ---------------------------------------------------------------------------
# Фильтрация и преобразование
# ---------------------------------------------------------------------------

LEADS = [
    {"id": "1", "assigned": "A"},
    {"id": "2", "assigned": "B"},
    {"id": "3", "assigned": "C"},
    {"id": "4", "assigned": "A"},
]


def test_sdr_sees_only_own_leads():
    user = make_user(role=Role.SDR, staff_id="A")
    assert [lead["id"] for lead in filter_leads_for(user, LEADS)] == ["1", "4"]


def test_admin_sees_all_leads():
    user = make_user(role=Role.ADMIN)
    assert filter_leads_for(user, LEADS) == LEADS


def test_sdr_without_staff_link_sees_nothing():
    assert filter_leads_for(make_user(role=Role.SDR), LEADS) == []


def test_numeric_assigned_matches_string_staff_id():
    user = make_user(role=Role.SDR, staff_id="5")
    assert filter_leads_for(user, [{"id": "1", "assigned": 5}]) == [{"id": "1", "assigned": 5}]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ({"staffid": "3", "firstname": "Ana", "lastname": "Lima", "email": "ana@x.com"}, ("3", "Ana Lima", "ana@x.com")),
        ({"id": 4, "name": "Bruno"}, ("4", "Bruno", "")),
        ({"staffid": "5", "firstname": "Caio"}, ("5", "Без имени", "")),
        ({}, ("", "Без имени", "")),
        ({"staffid": 3, "firstname": 7, "lastname": "Lima"}, ("3", "7 Lima", "")),
        ({"staffid": "4", "name": 12345, "email": 0}, ("4", "12345", "")),
        ({"id": 6, "name": "Duda", "email": 42}, ("6", "Duda", "42")),
    ],
)
def test_to_team_member(raw, expected):
    member = to_team_member(raw)
    assert (member.id, member.name, member.email) == expected
