"""SQLAlchemy ORM models for LocalRecall."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)

from .db import Base


class TimestampMixin:
    """Mixin that adds created_at/updated_at audit fields."""

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Setting(TimestampMixin, Base):
    """Key-value application settings; user settings live under ``user_settings``."""

    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    key = Column(String(128), nullable=False)
    value = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("key", name="uq_settings_key"),
    )


class KnowledgeCardRecord(TimestampMixin, Base):
    """An imported piece of knowledge plus its generated summary fields."""

    __tablename__ = "knowledge_cards"

    id = Column(Integer, primary_key=True)
    title = Column(String(512), nullable=False)
    content = Column(Text, nullable=False)
    source_type = Column(String(64), nullable=False, default="note")
    source_url = Column(String(2048), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    summary = Column(Text, nullable=True)
    detailed_summary = Column(Text, nullable=True)
    key_points = Column(JSON, nullable=False, default=list)
    last_summary_generation = Column(DateTime(timezone=True), nullable=True)
