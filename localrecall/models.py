"""Pydantic models for the LocalRecall API."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ProviderName = Literal["ollama", "openai", "gemini", "claude"]


class ChatMessage(BaseModel):
    """A single role-tagged conversation turn."""

    role: Literal["system", "user", "assistant"] = Field(..., description="Message author role")
    content: str = Field(..., description="Message text")


class ChatOptionsPayload(BaseModel):
    """Optional generation parameters; unset fields fall back to stored settings.

    Attributes:
        model: Model identifier understood by the active provider.
        temperature: Sampling temperature between 0 and 1.
        max_tokens: Response length cap.
        stop_sequences: Strings that end generation.
        custom_prompt: Summary template name (``article`` or ``video_transcript``).
        timeout: Seconds to wait for the provider before giving up.
    """

    model: Optional[str] = Field(default=None, description="Model override")
    temperature: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Sampling temperature override"
    )
    max_tokens: Optional[int] = Field(default=None, gt=0, description="Response length cap")
    stop_sequences: List[str] = Field(default_factory=list, description="Stop sequences")
    custom_prompt: Optional[str] = Field(default=None, description="Named prompt template")
    timeout: Optional[float] = Field(default=None, gt=0, description="Chat timeout in seconds")


class ProviderSettingsView(BaseModel):
    """Stored settings for one provider with the API key masked."""

    enabled: bool = Field(..., description="Whether the provider is enabled")
    endpoint: Optional[str] = Field(default=None, description="Base URL (local model only)")
    model: Optional[str] = Field(default=None, description="Configured model")
    temperature: Optional[float] = Field(default=None, description="Configured temperature")
    has_api_key: bool = Field(default=False, description="Whether an API key is stored")
    api_key_hint: Optional[str] = Field(
        default=None, description="Last characters of the stored API key"
    )


class ProvidersResponse(BaseModel):
    active_provider: ProviderName = Field(..., description="Provider used for AI calls")
    providers: Dict[str, ProviderSettingsView] = Field(
        ..., description="Per-provider settings keyed by provider id"
    )


class ActiveProviderUpdate(BaseModel):
    provider: ProviderName = Field(..., description="Provider to make active")


class ProviderSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored values."""

    enabled: Optional[bool] = Field(default=None, description="Enable or disable the provider")
    api_key: Optional[str] = Field(default=None, description="API key for hosted providers")
    endpoint: Optional[str] = Field(default=None, description="Base URL for the local model")
    model: Optional[str] = Field(default=None, description="Model identifier")
    temperature: Optional[float] = Field(default=None, description="Default temperature (0-1)")


class ConnectionTestResponse(BaseModel):
    provider: ProviderName
    connected: bool


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., description="Conversation ending with a user turn")
    options: Optional[ChatOptionsPayload] = Field(default=None, description="Generation options")


class ChatResponse(BaseModel):
    provider: ProviderName = Field(..., description="Provider that produced the reply")
    content: str = Field(..., description="Completion text, possibly empty")


class SummarizeRequest(BaseModel):
    content: str = Field(..., description="Text to summarize")
    options: Optional[ChatOptionsPayload] = Field(default=None, description="Generation options")


class SummaryPayload(BaseModel):
    summary: str = Field(..., description="Two or three sentence overview")
    detailed_summary: str = Field(default="", description="Longer multi-paragraph summary")
    key_points: List[str] = Field(default_factory=list, description="Extracted key points")


class SummarizeResponse(BaseModel):
    data: SummaryPayload
    cached: bool = Field(default=False, description="Whether the result came from the cache")


class OllamaTestRequest(BaseModel):
    endpoint: Optional[str] = Field(default=None, description="Endpoint to try first")


class OllamaTestResponse(BaseModel):
    connected: bool
    endpoint: Optional[str] = Field(default=None, description="First reachable endpoint")
    tried: List[str] = Field(default_factory=list, description="Endpoints probed, in order")
    models: List[str] = Field(default_factory=list, description="Models reported by the server")


class OllamaConfigUpdate(BaseModel):
    endpoint: Optional[str] = Field(default=None, description="New base URL")
    model: Optional[str] = Field(default=None, description="New default model")
    temperature: Optional[float] = Field(default=None, description="New default temperature")


class TagExtractRequest(BaseModel):
    content: str = Field(..., description="Content to tag")
    content_type: Optional[str] = Field(default=None, description="Kind of content (article, note)")
    title: Optional[str] = Field(default=None, description="Optional title")
    url: Optional[str] = Field(default=None, description="Optional source URL")


class TagExtractResponse(BaseModel):
    tags: List[str] = Field(default_factory=list, description="Lowercase tags, at most seven")


class QuizRequest(BaseModel):
    content: str = Field(..., description="Content to quiz on")
    number_of_questions: int = Field(default=5, description="Number of questions to generate")
    options: Optional[ChatOptionsPayload] = Field(default=None, description="Generation options")


class QuizQuestionModel(BaseModel):
    question: str
    options: List[str]
    correct_answer: int = Field(..., description="Zero-based index into options")
    explanation: str = ""


class QuizResponse(BaseModel):
    questions: List[QuizQuestionModel]


class KnowledgeCardCreate(BaseModel):
    title: str = Field(..., description="Card title")
    content: str = Field(..., description="Imported text")
    source_type: str = Field(default="note", description="article, video_transcript or note")
    source_url: Optional[str] = Field(default=None, description="Where the content came from")
    tags: List[str] = Field(default_factory=list, description="Initial tags")
    summarize: bool = Field(default=True, description="Generate a summary after storing")


class KnowledgeCard(BaseModel):
    id: int
    title: str
    content: str
    source_type: str
    source_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    detailed_summary: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    last_summary_generation: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str
    checks: List[Dict[str, Any]] = Field(default_factory=list)
