# salesflow/utils/log.py
# Журнал событий сервиса (auth, session, crm, users, startup)

import os
import datetime
import logging
from aiologger import Logger
from aiologger.handlers.files import AsyncFileHandler

# Ключи, значения которых никогда не попадают в журнал
SENSITIVE_KEYS = {"password", "password_hash", "token", "authtoken", "session_secret"}


class Log:
    def __init__(self, log_dir: str = "log", log_print: bool = False):
        self.log_dir = log_dir
        os.makedirs(self.log_dir, exist_ok=True)
        self.handlers = {}
        self.log_print = log_print

    def build_log_path(self, now: datetime.datetime) -> str:
        """
        Путь к файлу журнала за день:
        log/2025/10/04.log
        """
        base_dir = os.path.join(self.log_dir, f"{now.year}", f"{now:%m}")
        os.makedirs(base_dir, exist_ok=True)
        return os.path.join(base_dir, f"{now:%d}.log")

    async def get_logger(self, target: str, now: datetime.datetime) -> Logger:
        """Асинхронный логгер для target; пересоздаётся при смене дня."""
        log_path = self.build_log_path(now)

        if target not in self.handlers or self.handlers[target]["path"] != log_path:
            previous = self.handlers.get(target)
            handler = AsyncFileHandler(filename=log_path, mode="a", encoding="utf-8")
            target_logger = Logger(name=f"salesflow_{target}")
            target_logger.add_handler(handler)

            self.handlers[target] = {
                "path": log_path,
                "logger": target_logger,
                "handler": handler,
            }

            if previous is not None:
                await previous["logger"].shutdown()

        return self.handlers[target]["logger"]

    def format_line(self, target: str, message: str, data: dict | None, now: datetime.datetime) -> str:
        line = f"{now:%d.%m.%Y %H:%M:%S} {target}: {message}"
        if data:
            line += f": {self.safe_serialize(data)}"
        return line

    async def log_info(
        self,
        target: str = "",
        message: str = "",
        data: dict | None = None,
        is_console: bool | None = None,
    ):
        now = datetime.datetime.now()
        line = self.format_line(target, message, data, now)

        target_logger = await self.get_logger(target, now)
        await target_logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    async def log_warning(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool | None = None):
        await self.log_info(target, f"WARNING: {message}", data, is_console)

    async def log_error(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool | None = True):
        await self.log_info(target, f"ERROR: {message}", data, is_console)

    # Синхронный вариант для старта приложения, пока цикл событий не запущен
    def log_info_sync(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool | None = None):
        now = datetime.datetime.now()
        log_path = self.build_log_path(now)
        line = self.format_line(target, message, data, now)

        logger = logging.getLogger(f"salesflow_sync_{target}")
        logger.setLevel(logging.INFO)
        logger.propagate = False

        if not any(getattr(h, "baseFilename", None) == os.path.abspath(log_path) for h in logger.handlers):
            for old in list(logger.handlers):
                logger.removeHandler(old)
                old.close()
            handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(handler)

        logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    def log_error_sync(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool | None = True):
        self.log_info_sync(target, f"ERROR: {message}", data, is_console)

    def safe_serialize(self, obj):
        """
        Приводит объект к виду, пригодному для журнала:
        - dict, list, tuple рекурсивно
        - Pydantic модели через model_dump
        - секреты (пароли, хэши, токены) заменяются на "***"
        - прочее → строка с типом
        """
        if obj is None:
            return None
        elif isinstance(obj, (str, int, float, bool)):
            return obj
        elif isinstance(obj, dict):
            return {
                k: "***" if str(k).lower() in SENSITIVE_KEYS else self.safe_serialize(v)
                for k, v in obj.items()
            }
        elif isinstance(obj, (list, tuple, set)):
            return [self.safe_serialize(v) for v in obj]
        elif hasattr(obj, "model_dump"):
            return self.safe_serialize(obj.model_dump())
        else:
            return f"<{type(obj).__name__}>"

    async def shutdown(self):
        for h in list(self.handlers.values()):
            await h["logger"].shutdown()
        self.handlers.clear()
