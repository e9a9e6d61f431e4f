"""Knowledge card import and summary regeneration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import ProviderError
from .providers.base import ChatOptions
from .storage import DatabaseStorage
from .summarizer import summarize_content

LOGGER = logging.getLogger(__name__)


class KnowledgeService:
    """Stores knowledge cards and attaches generated summaries to them."""

    def __init__(self, storage: DatabaseStorage, manager: Any) -> None:
        self._storage = storage
        self._manager = manager

    def create_card(
        self,
        *,
        title: str,
        content: str,
        source_type: str = "note",
        source_url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        summarize: bool = True,
        options: Optional[ChatOptions] = None,
    ) -> Dict[str, Any]:
        """Persist a card, then try to summarize it.

        The card is stored before any provider call. A provider failure
        during summarization is logged and the card is returned without a
        summary.
        """
        card = self._storage.create_card(
            title=title,
            content=content,
            source_type=source_type,
            source_url=source_url,
            tags=tags,
        )
        if not summarize or not content.strip():
            return card
        try:
            return self.regenerate_summary(card["id"], options=options)
        except ProviderError as exc:
            LOGGER.warning("Summarization failed for card %s; stored without summary: %s", card["id"], exc)
            return card

    def get_card(self, card_id: int) -> Dict[str, Any]:
        return self._storage.fetch_card(card_id)

    def list_cards(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recently created cards first."""
        return self._storage.list_cards(limit=limit)

    def regenerate_summary(
        self,
        card_id: int,
        *,
        options: Optional[ChatOptions] = None,
    ) -> Dict[str, Any]:
        """Summarize a stored card and overwrite its summary fields together.

        Raises:
            CardNotFoundError: If the card does not exist.
            ProviderError: Passed through from the provider; the card is left unchanged.
        """
        card = self._storage.fetch_card(card_id)
        result, _ = summarize_content(self._manager, card["content"], options, use_cache=False)
        return self._storage.update_card_summary(
            card_id,
            summary=result.summary,
            detailed_summary=result.detailed_summary,
            key_points=result.key_points,
            generated_at=datetime.now(timezone.utc),
        )
