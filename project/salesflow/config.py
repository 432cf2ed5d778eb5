# salesflow/config.py

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ────────────── База данных ──────────────
    DATABASE_URL: Optional[str] = None
    MYSQL_HOST: Optional[str] = None
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "root"
    MYSQL_PASSWORD: str = ""
    MYSQL_DATABASE: str = "sdr"

    # ────────────── Сессии ──────────────
    SESSION_SECRET: str = "change-me"
    SESSION_TTL_SECONDS: int = 24 * 60 * 60
    SESSION_SWEEP_INTERVAL_SECONDS: int = 15 * 60
    SESSION_BACKEND: str = "database"     # database | memory
    SESSION_COOKIE_NAME: str = "salesflow_session"
    SESSION_COOKIE_SECURE: bool = False

    # ────────────── Пароли ──────────────
    PASSWORD_HASH_ROUNDS: int = 535000    # sha256_crypt

    # ────────────── CRM ──────────────
    CRM_API_URL: str = "https://crm.example.com/api"
    CRM_API_TOKEN: str = ""
    CRM_TEAM_ENDPOINT: Optional[str] = None
    CRM_TIMEOUT_SECONDS: float = 10.0     # предел на весь запрос к CRM

    # ────────────── Первый администратор ──────────────
    SEED_ADMIN_USERNAME: str = "admin"
    SEED_ADMIN_PASSWORD: str = "admin123"
    SEED_ADMIN_NAME: str = "Administrator"
    SEED_ADMIN_EMAIL: Optional[str] = "admin@salesflow.com"

    LOG_DIR: str = "log"
    LOG_PRINT: str = "1"

    CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """
        Итоговый DSN хранилища:
        - DATABASE_URL, если задан явно
        - mysql+aiomysql://..., если задан MYSQL_HOST
        - локальный SQLite по умолчанию
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.MYSQL_HOST:
            return (
                f"mysql+aiomysql://{self.MYSQL_USER}:{self.MYSQL_PASSWORD}"
                f"@{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DATABASE}"
            )
        return "sqlite+aiosqlite:///./salesflow.db"

    @property
    def log_print(self) -> bool:
        return self.LOG_PRINT.lower() in ("1", "true", "yes")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
