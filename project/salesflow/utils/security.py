# salesflow/utils/security.py

"""
Хэширование и проверка паролей.
Используется passlib с sha256_crypt (SHA-256 с солью); число раундов
настраивается через PASSWORD_HASH_ROUNDS.
"""

from passlib.context import CryptContext


class PasswordHasher:
    def __init__(self, rounds: int = 535000):
        # deprecated="auto" - автоматически помечает устаревшие схемы
        self.context = CryptContext(
            schemes=["sha256_crypt"],
            deprecated="auto",
            sha256_crypt__default_rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """
        Хэширует пароль.

        :param password: строка пароля пользователя
        :return: хэш с солью и числом раундов внутри
        """
        return self.context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Проверяет совпадение пароля с его хэшем.
        Любая ошибка (пустой или повреждённый хэш) означает «не совпадает».
        """
        if not plain_password or not hashed_password:
            return False
        try:
            return self.context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            return False
