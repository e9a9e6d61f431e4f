"""SQLite-backed persistence helpers for LocalRecall."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update

from .db import DATABASE_URL, init_database, session_scope
from .db_models import KnowledgeCardRecord, Setting

LOGGER = logging.getLogger(__name__)


class CardNotFoundError(LookupError):
    """Raised when a knowledge card id does not exist."""


class DatabaseStorage:
    """Utility class encapsulating all database reads and writes."""

    def __init__(self) -> None:
        safe_url = DATABASE_URL if DATABASE_URL.startswith("sqlite") else "redacted"
        LOGGER.info("Initializing database storage (database_url=%s)", safe_url)
        try:
            init_database()
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Database initialisation failed")
            raise
        LOGGER.info("Database initialisation complete")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def read_setting(self, key: str) -> Optional[Any]:
        with session_scope() as session:
            row = session.execute(select(Setting).where(Setting.key == key)).scalar_one_or_none()
            return None if row is None else row.value

    def write_settings(self, values: Dict[str, Any]) -> None:
        with session_scope() as session:
            existing = {row.key: row for row in session.execute(select(Setting)).scalars()}
            for key, value in values.items():
                current = existing.get(key)
                if current is None:
                    session.add(Setting(key=key, value=value))
                else:
                    current.value = value
        LOGGER.info("Persisted %d application settings keys", len(values))

    def delete_setting(self, key: str) -> bool:
        with session_scope() as session:
            deleted = session.execute(delete(Setting).where(Setting.key == key)).rowcount
        LOGGER.info("Deleted settings key %s (rows=%d)", key, deleted)
        return bool(deleted)

    # ------------------------------------------------------------------
    # Knowledge cards
    # ------------------------------------------------------------------
    @staticmethod
    def _card_to_dict(record: KnowledgeCardRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "title": record.title,
            "content": record.content,
            "source_type": record.source_type,
            "source_url": record.source_url,
            "tags": list(record.tags or []),
            "summary": record.summary,
            "detailed_summary": record.detailed_summary,
            "key_points": list(record.key_points or []),
            "last_summary_generation": record.last_summary_generation,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }

    def create_card(
        self,
        *,
        title: str,
        content: str,
        source_type: str = "note",
        source_url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        with session_scope() as session:
            record = KnowledgeCardRecord(
                title=title,
                content=content,
                source_type=source_type,
                source_url=source_url,
                tags=list(tags or []),
                key_points=[],
            )
            session.add(record)
            session.flush()
            session.refresh(record)
            payload = self._card_to_dict(record)
        LOGGER.info("Stored knowledge card %s (%s)", payload["id"], source_type)
        return payload

    def fetch_card(self, card_id: int) -> Dict[str, Any]:
        with session_scope() as session:
            record = session.get(KnowledgeCardRecord, card_id)
            if record is None:
                raise CardNotFoundError(f"Knowledge card {card_id} not found")
            return self._card_to_dict(record)

    def list_cards(self, limit: int = 50) -> List[Dict[str, Any]]:
        with session_scope() as session:
            records = (
                session.execute(
                    select(KnowledgeCardRecord)
                    .order_by(KnowledgeCardRecord.created_at.desc(), KnowledgeCardRecord.id.desc())
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return [self._card_to_dict(record) for record in records]

    def update_card_summary(
        self,
        card_id: int,
        *,
        summary: str,
        detailed_summary: str,
        key_points: List[str],
        generated_at: datetime,
    ) -> Dict[str, Any]:
        """Overwrite the three summary fields and their timestamp in one transaction."""
        with session_scope() as session:
            result = session.execute(
                update(KnowledgeCardRecord)
                .where(KnowledgeCardRecord.id == card_id)
                .values(
                    summary=summary,
                    detailed_summary=detailed_summary,
                    key_points=list(key_points),
                    last_summary_generation=generated_at,
                )
            )
            if result.rowcount == 0:
                raise CardNotFoundError(f"Knowledge card {card_id} not found")
            record = session.get(KnowledgeCardRecord, card_id, populate_existing=True)
            payload = self._card_to_dict(record)
        LOGGER.info("Updated summary for knowledge card %s", card_id)
        return payload
