"""API routes for the LocalRecall backend."""

import logging
from typing import Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from . import config
from .clients import OllamaClient
from .errors import (
    InvalidConversationShapeError,
    MissingCredentialError,
    ProviderConfigurationError,
    ProviderError,
    RemoteAPIError,
)
from .health import endpoint_variants, probe_endpoints
from .knowledge import KnowledgeService
from .models import (
    ActiveProviderUpdate,
    ChatOptionsPayload,
    ChatRequest,
    ChatResponse,
    ConnectionTestResponse,
    KnowledgeCard,
    KnowledgeCardCreate,
    OllamaConfigUpdate,
    OllamaTestRequest,
    OllamaTestResponse,
    ProviderName,
    ProviderSettingsUpdate,
    ProviderSettingsView,
    ProvidersResponse,
    QuizQuestionModel,
    QuizRequest,
    QuizResponse,
    SummarizeRequest,
    SummarizeResponse,
    SummaryPayload,
    TagExtractRequest,
    TagExtractResponse,
)
from .provider_manager import ProviderManager, get_provider_manager
from .providers import ChatOptions, ProviderId
from .quiz import QuizParseError, generate_quiz
from .storage import CardNotFoundError, DatabaseStorage
from .summarizer import summarize_content
from .tagging import extract_tags

LOGGER = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["ai"])

_storage: Optional[DatabaseStorage] = None


def resolve_provider_manager() -> ProviderManager:
    """Wrapper to allow monkeypatching of the shared provider manager dependency."""
    return get_provider_manager()


def resolve_storage() -> DatabaseStorage:
    """Wrapper to allow monkeypatching of the shared storage dependency."""
    global _storage
    if _storage is None:
        _storage = DatabaseStorage()
    return _storage


def resolve_knowledge_service(
    storage: DatabaseStorage = Depends(resolve_storage),
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> KnowledgeService:
    return KnowledgeService(storage, manager)


def _raise_http(exc: Exception) -> NoReturn:
    """Translate provider-layer failures into HTTP errors."""
    if isinstance(exc, MissingCredentialError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, InvalidConversationShapeError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, RemoteAPIError):
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if isinstance(exc, ProviderConfigurationError):
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise HTTPException(status_code=500, detail=str(exc)) from exc


def _to_options(payload: Optional[ChatOptionsPayload]) -> Optional[ChatOptions]:
    if payload is None:
        return None
    return ChatOptions(**payload.model_dump())


def _providers_response(manager: ProviderManager) -> ProvidersResponse:
    return ProvidersResponse(
        active_provider=manager.get_active_provider().value,
        providers={
            identity.value: ProviderSettingsView(**settings.masked())
            for identity, settings in manager.all_provider_settings().items()
        },
    )


# ---------------------------------------------------------------------------
# Provider settings
# ---------------------------------------------------------------------------
@router.get("/ai/providers", response_model=ProvidersResponse)
def list_providers(
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ProvidersResponse:
    """Return the active provider and every provider's settings (keys masked)."""
    return _providers_response(manager)


@router.put("/ai/providers/active", response_model=ProvidersResponse)
def set_active_provider(
    payload: ActiveProviderUpdate,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ProvidersResponse:
    try:
        manager.set_active_provider(payload.provider)
    except ValueError as exc:
        _raise_http(exc)
    return _providers_response(manager)


@router.put("/ai/providers/{provider}", response_model=ProviderSettingsView)
def update_provider_settings(
    provider: ProviderName,
    payload: ProviderSettingsUpdate,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ProviderSettingsView:
    """Merge a partial settings update into one provider's stored settings."""
    try:
        updated = manager.update_provider_settings(provider, **payload.model_dump(exclude_none=True))
    except ValueError as exc:
        _raise_http(exc)
    return ProviderSettingsView(**updated.masked())


@router.post("/ai/providers/{provider}/test", response_model=ConnectionTestResponse)
def test_provider_connection(
    provider: ProviderName,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ConnectionTestResponse:
    try:
        connected = manager.test_connection(provider)
    except ProviderError as exc:
        _raise_http(exc)
    return ConnectionTestResponse(provider=provider, connected=connected)


# ---------------------------------------------------------------------------
# Chat and summarization
# ---------------------------------------------------------------------------
@router.post("/ai/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ChatResponse:
    """Send a conversation to the active provider."""
    try:
        content = manager.chat(
            [message.model_dump() for message in payload.messages],
            _to_options(payload.options),
        )
    except (ProviderError, ValueError) as exc:
        _raise_http(exc)
    return ChatResponse(provider=manager.get_active_provider().value, content=content)


@router.post("/ai/summarize", response_model=SummarizeResponse)
def summarize(
    payload: SummarizeRequest,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> SummarizeResponse:
    """Produce a brief summary, detailed summary and key points."""
    try:
        result, cached = summarize_content(manager, payload.content, _to_options(payload.options))
    except (ProviderError, ValueError) as exc:
        _raise_http(exc)
    return SummarizeResponse(data=SummaryPayload(**result.to_dict()), cached=cached)


# ---------------------------------------------------------------------------
# Local model connectivity
# ---------------------------------------------------------------------------
@router.post("/ollama/test", response_model=OllamaTestResponse)
def test_ollama(payload: OllamaTestRequest) -> OllamaTestResponse:
    """Probe endpoint variants and report the first one that answers."""
    found_models: Dict[str, List[str]] = {}

    def _probe(endpoint: str) -> bool:
        client = OllamaClient(endpoint, timeout=config.PROBE_TIMEOUT_SECONDS)
        models = client.list_models()
        found_models[endpoint] = [str(model.get("name") or model.get("model") or "") for model in models]
        return True

    result = probe_endpoints(endpoint_variants(payload.endpoint), _probe)
    if not result.reachable:
        LOGGER.warning("No Ollama endpoint reachable (tried %s)", ", ".join(result.tried))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "Could not connect to Ollama on any endpoint",
                "tried": result.tried,
            },
        )
    return OllamaTestResponse(
        connected=True,
        endpoint=result.endpoint,
        tried=result.tried,
        models=found_models.get(result.endpoint, []),
    )


@router.post("/ollama/update-config", response_model=ProviderSettingsView)
def update_ollama_config(
    payload: OllamaConfigUpdate,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> ProviderSettingsView:
    """Update the local-model settings, probing a new endpoint first."""
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=400,
            detail="At least one of endpoint, model or temperature is required",
        )
    if "endpoint" in changes:
        adapter = manager.get_adapter(ProviderId.OLLAMA)
        if not adapter.ping(changes["endpoint"]):
            raise HTTPException(
                status_code=400,
                detail=f"Could not connect to Ollama at {changes['endpoint']}",
            )
    try:
        updated = manager.update_provider_settings(ProviderId.OLLAMA, **changes)
    except ValueError as exc:
        _raise_http(exc)
    return ProviderSettingsView(**updated.masked())


# ---------------------------------------------------------------------------
# Tags and quizzes
# ---------------------------------------------------------------------------
@router.post("/tags/extract", response_model=TagExtractResponse)
def extract_content_tags(
    payload: TagExtractRequest,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> TagExtractResponse:
    try:
        tags = extract_tags(
            manager,
            payload.content,
            title=payload.title,
            url=payload.url,
            content_type=payload.content_type,
        )
    except (ProviderError, ValueError) as exc:
        _raise_http(exc)
    return TagExtractResponse(tags=tags)


@router.post("/quiz", response_model=QuizResponse)
def create_quiz(
    payload: QuizRequest,
    manager: ProviderManager = Depends(resolve_provider_manager),
) -> QuizResponse:
    try:
        questions = generate_quiz(
            manager,
            payload.content,
            number_of_questions=payload.number_of_questions,
            options=_to_options(payload.options),
        )
    except QuizParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (ProviderError, ValueError) as exc:
        _raise_http(exc)
    return QuizResponse(questions=[QuizQuestionModel(**q.to_dict()) for q in questions])


# ---------------------------------------------------------------------------
# Knowledge cards
# ---------------------------------------------------------------------------
@router.post("/knowledge-cards", response_model=KnowledgeCard, status_code=201)
def create_knowledge_card(
    payload: KnowledgeCardCreate,
    service: KnowledgeService = Depends(resolve_knowledge_service),
) -> KnowledgeCard:
    """Store a card; summarization failures leave it without a summary."""
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    card = service.create_card(
        title=payload.title,
        content=payload.content,
        source_type=payload.source_type,
        source_url=payload.source_url,
        tags=payload.tags,
        summarize=payload.summarize,
    )
    return KnowledgeCard(**card)


@router.get("/knowledge-cards", response_model=List[KnowledgeCard])
def list_knowledge_cards(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of cards to return"),
    service: KnowledgeService = Depends(resolve_knowledge_service),
) -> List[KnowledgeCard]:
    return [KnowledgeCard(**card) for card in service.list_cards(limit=limit)]


@router.get("/knowledge-cards/{card_id}", response_model=KnowledgeCard)
def get_knowledge_card(
    card_id: int,
    service: KnowledgeService = Depends(resolve_knowledge_service),
) -> KnowledgeCard:
    try:
        return KnowledgeCard(**service.get_card(card_id))
    except CardNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/knowledge-cards/{card_id}/summary", response_model=KnowledgeCard)
def regenerate_knowledge_card_summary(
    card_id: int,
    options: Optional[ChatOptionsPayload] = None,
    service: KnowledgeService = Depends(resolve_knowledge_service),
) -> KnowledgeCard:
    try:
        card = service.regenerate_summary(card_id, options=_to_options(options))
    except CardNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ProviderError, ValueError) as exc:
        _raise_http(exc)
    return KnowledgeCard(**card)
