"""Tests for knowledge card import and summary regeneration."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from localrecall.app import app
from localrecall.errors import ConnectionTimeoutError, RemoteAPIError
from localrecall.knowledge import KnowledgeService
from localrecall.providers import ChatOptions, ProviderId
from localrecall.storage import CardNotFoundError, DatabaseStorage

SUMMARY_REPLY = (
    "Brief summary: Bees pollinate crops. Detailed summary: Honey bees move pollen between "
    "flowers. Key points: - Bees pollinate most fruit crops - Colonies are declining"
)


class StubManager:
    def __init__(self, reply: str = SUMMARY_REPLY, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls = 0

    def resolve_options(self, options=None):
        return ProviderId.OLLAMA, options or ChatOptions()

    def chat(self, messages, options=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def storage() -> DatabaseStorage:
    return DatabaseStorage()


def test_create_card_attaches_summary(storage) -> None:
    service = KnowledgeService(storage, StubManager())
    card = service.create_card(title="Bees", content="All about bees and pollination.")

    assert card["summary"] == "Bees pollinate crops."
    assert card["detailed_summary"] == "Honey bees move pollen between flowers."
    assert card["key_points"] == ["Bees pollinate most fruit crops", "Colonies are declining"]
    assert card["last_summary_generation"] is not None


def test_create_card_degrades_when_provider_fails(storage) -> None:
    manager = StubManager(error=RemoteAPIError("OpenAI", "upstream down", status=503))
    service = KnowledgeService(storage, manager)

    card = service.create_card(title="Offline", content="Content saved while the provider is down.")

    assert manager.calls == 1
    assert card["summary"] is None
    assert card["key_points"] == []
    stored = service.get_card(card["id"])
    assert stored["content"] == "Content saved while the provider is down."


def test_create_card_without_summarize_skips_provider(storage) -> None:
    manager = StubManager()
    KnowledgeService(storage, manager).create_card(title="Note", content="Quick note", summarize=False)
    assert manager.calls == 0


def test_regenerate_failure_leaves_card_unchanged(storage) -> None:
    service = KnowledgeService(storage, StubManager())
    card = service.create_card(title="Bees", content="Bee facts for regeneration.")

    failing = KnowledgeService(storage, StubManager(error=ConnectionTimeoutError("Claude")))
    with pytest.raises(ConnectionTimeoutError):
        failing.regenerate_summary(card["id"])

    assert service.get_card(card["id"])["summary"] == "Bees pollinate crops."


def test_regenerate_overwrites_all_summary_fields(storage) -> None:
    service = KnowledgeService(storage, StubManager())
    card = service.create_card(title="Bees", content="Original bee content.")

    service._manager = StubManager(reply="Brief summary: Updated. Key points: - A brand new key point")
    updated = service.regenerate_summary(card["id"])

    assert updated["summary"] == "Updated."
    assert updated["detailed_summary"] == ""
    assert updated["key_points"] == ["A brand new key point"]
    assert updated["last_summary_generation"] >= card["last_summary_generation"]


def test_missing_card_raises(storage) -> None:
    with pytest.raises(CardNotFoundError):
        KnowledgeService(storage, StubManager()).regenerate_summary(999_999)


def test_knowledge_card_routes(monkeypatch) -> None:
    monkeypatch.setattr("localrecall.routes.get_provider_manager", lambda: StubManager())

    with TestClient(app) as client:
        created = client.post(
            "/api/v1/knowledge-cards",
            json={"title": "Bees", "content": "Bee content", "source_type": "article"},
        )
        assert created.status_code == 201
        card_id = created.json()["id"]

        fetched = client.get(f"/api/v1/knowledge-cards/{card_id}")
        regenerated = client.post(f"/api/v1/knowledge-cards/{card_id}/summary")
        missing = client.get("/api/v1/knowledge-cards/999999")

    assert fetched.status_code == 200
    assert fetched.json()["source_type"] == "article"
    assert fetched.json()["key_points"] == ["Bees pollinate most fruit crops", "Colonies are declining"]
    assert regenerated.status_code == 200
    assert missing.status_code == 404


def test_knowledge_card_route_survives_provider_outage(monkeypatch) -> None:
    manager = StubManager(error=RemoteAPIError("Ollama", "connection refused"))
    monkeypatch.setattr("localrecall.routes.get_provider_manager", lambda: manager)

    with TestClient(app) as client:
        response = client.post("/api/v1/knowledge-cards", json={"title": "T", "content": "Body text"})

    assert response.status_code == 201
    assert response.json()["summary"] is None


def test_list_cards_returns_newest_first(storage) -> None:
    service = KnowledgeService(storage, StubManager())
    older = service.create_card(title="Older", content="First note", summarize=False)
    newer = service.create_card(title="Newer", content="Second note", summarize=False)

    ids = [card["id"] for card in service.list_cards(limit=500)]

    assert ids.index(newer["id"]) < ids.index(older["id"])
    assert len(service.list_cards(limit=1)) == 1


def test_knowledge_card_listing_route(monkeypatch) -> None:
    monkeypatch.setattr("localrecall.routes.get_provider_manager", lambda: StubManager())

    with TestClient(app) as client:
        created = client.post(
            "/api/v1/knowledge-cards",
            json={"title": "Listed", "content": "Listed content", "summarize": False},
        )
        listed = client.get("/api/v1/knowledge-cards", params={"limit": 500})
        too_many = client.get("/api/v1/knowledge-cards", params={"limit": 0})

    assert listed.status_code == 200
    assert created.json()["id"] in [card["id"] for card in listed.json()]
    assert too_many.status_code == 422
