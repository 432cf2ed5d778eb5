# salesflow/models/account.py

import enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from salesflow.utils.database import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    SDR = "sdr"


class Account(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)    # логин, с учётом регистра
    password = Column(Text, nullable=False)                         # хэш пароля
    name = Column(String(255), nullable=False)                      # отображаемое имя
    email = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=Role.SDR.value, server_default=Role.SDR.value)
    staff_id = Column(String(50), nullable=True)                    # ID сотрудника в CRM
    created_at = Column(DateTime(timezone=True), server_default=func.now())
