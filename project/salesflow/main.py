# salesflow/main.py

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesflow.config import Settings, get_settings
from salesflow.middleware.db_middleware import DBSessionMiddleware
from salesflow.routes import auth, lead, team, users
from salesflow.services.auth import AuthService
from salesflow.services.crm import CRMClient, CRMGateway
from salesflow.services.sessions import SessionSweeper, create_session_store
from salesflow.services.users import UserAdminService
from salesflow.utils.database import Database, init_db
from salesflow.utils.errors import register_exception_handlers
from salesflow.utils.log import Log
from salesflow.utils.security import PasswordHasher

# --- загрузка переменных окружения ---
load_dotenv()


# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    boot_log = Log(settings.LOG_DIR, settings.log_print)
    boot_log.log_info_sync(target="startup", message="lifespan: startup начат")

    hasher = PasswordHasher(settings.PASSWORD_HASH_ROUNDS)

    # Инициализация БД и первого администратора
    app.state.database = Database(settings.database_url)
    if await init_db(app.state.database, settings, hasher):
        boot_log.log_info_sync(target="startup", message="Создан первый администратор", data={
            "username": settings.SEED_ADMIN_USERNAME,
        })
    boot_log.log_info_sync(target="startup", message="База инициализирована")

    app.state.log = Log(settings.LOG_DIR, settings.log_print)
    await app.state.log.log_info(target="startup", message="Async Log инициализирован")

    # Сессии, аутентификация, учётные записи
    app.state.sessions = create_session_store(settings, app.state.database)
    app.state.auth = AuthService(app.state.sessions, hasher, settings, app.state.log)
    app.state.users = UserAdminService(hasher, app.state.log)

    # CRM
    owns_crm = app.state.crm_override is None
    app.state.crm = app.state.crm_override or CRMClient(
        base_url=settings.CRM_API_URL,
        token=settings.CRM_API_TOKEN,
        timeout=settings.CRM_TIMEOUT_SECONDS,
        team_endpoint=settings.CRM_TEAM_ENDPOINT,
        log=app.state.log,
    )
    await app.state.log.log_info(target="startup", message="CRM настроена", data={
        "url": settings.CRM_API_URL,
        "token_loaded": bool(settings.CRM_API_TOKEN),
    })

    sweeper = SessionSweeper(app.state.sessions, settings.SESSION_SWEEP_INTERVAL_SECONDS, app.state.log)
    sweeper.start()

    yield

    # shutdown
    await sweeper.stop()
    if owns_crm:
        await app.state.crm.aclose()
    await app.state.database.dispose()
    await app.state.log.log_info(target="shutdown", message="Остановка приложения")
    await app.state.log.shutdown()
    boot_log.log_info_sync(target="shutdown", message="Log корректно завершён")


# ────────────── Создаём FastAPI приложение ──────────────
def create_app(settings: Optional[Settings] = None, crm: Optional[CRMGateway] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="SalesFlow API", lifespan=lifespan)
    app.state.settings = settings
    app.state.crm_override = crm

    register_exception_handlers(app)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # DB middleware для request.state.db
    app.add_middleware(DBSessionMiddleware)

    @app.get("/")
    def read_root():
        return {"service": "salesflow", "status": "ok"}

    # ────────────── Подключение роутов ──────────────
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(lead.router, prefix="/leads", tags=["leads"])
    app.include_router(team.router, tags=["team"])

    return app


app = create_app()

# ────────────── Запуск uvicorn ──────────────
if __name__ == "__main__":
    uvicorn.run(
        "salesflow.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
        reload=True
    )
