from datetime import timedelta
from typing import Any, Optional

import pytest

from salesflow.config import Settings
from salesflow.models.account import Role
from salesflow.schemas.user import SessionUser
from salesflow.services.accounts import AccountStore
from salesflow.services.sessions import MemorySessionStore, SessionRecord, utcnow
from salesflow.utils.database import Database
from salesflow.utils.errors import UpstreamError
from salesflow.utils.security import PasswordHasher


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'salesflow-test.db'}",
        SESSION_SECRET="test-session-secret-0123456789abcdef",
        SESSION_BACKEND="database",
        PASSWORD_HASH_ROUNDS=1000,
        LOG_DIR=str(tmp_path / "log"),
        LOG_PRINT="0",
        CRM_API_URL="https://crm.test/api",
        CRM_API_TOKEN="crm-token",
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=1000)


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def accounts(database):
    async with database.session() as session:
        yield AccountStore(session)


@pytest.fixture
def memory_store() -> MemorySessionStore:
    return MemorySessionStore()


def make_user(
    *,
    id: int = 1,
    username: str = "user",
    role: Role = Role.SDR,
    staff_id: Optional[str] = None,
) -> SessionUser:
    return SessionUser(id=id, username=username, name=username.title(), role=role, staffId=staff_id)


def make_record(user: SessionUser, token: str = "token-1", ttl: timedelta = timedelta(hours=1)) -> SessionRecord:
    return SessionRecord(token=token, user=user, expires_at=utcnow() + ttl)


class FakeCRM:
    """CRM в памяти для тестов HTTP-слоя."""

    def __init__(
        self,
        leads: Any = None,
        staff: Optional[dict[str, dict]] = None,
        error: Optional[UpstreamError] = None,
    ):
        self.leads = leads if leads is not None else []
        self.staff = staff or {}
        self.error = error
        self.calls: list[str] = []

    async def list_leads(self) -> list[dict]:
        self.calls.append("list_leads")
        if self.error:
            raise self.error
        return self.leads if isinstance(self.leads, list) else []

    async def list_team(self) -> list[dict]:
        self.calls.append("list_team")
        return list(self.staff.values())

    async def get_staff(self, staff_id: str) -> Any:
        self.calls.append(f"get_staff:{staff_id}")
        if staff_id not in self.staff:
            raise UpstreamError(404, '{"message": "not found"}')
        return self.staff[staff_id]

    async def lead_activities(self, lead_id: str) -> Any:
        self.calls.append(f"activities:{lead_id}")
        return [{"lead_id": lead_id, "description": "Called"}]

    async def lead_reminders(self, lead_id: str) -> Any:
        self.calls.append(f"reminders:{lead_id}")
        return [{"lead_id": lead_id, "date": "2026-10-20"}]
