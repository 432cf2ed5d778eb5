# salesflow/models/session.py

from sqlalchemy import Column, DateTime, Index, String, Text

from salesflow.utils.database import Base


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    data = Column(Text, nullable=False)                              # JSON-снимок пользователя
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_sessions_expires_at", "expires_at"),)
