"""Base provider interface for LLM providers.

This module defines the shared message/options vocabulary and the abstract
base class implemented by every provider adapter (Ollama, OpenAI, Gemini,
Claude).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import requests
from requests import Response

from .. import config
from ..errors import ConnectionTimeoutError, InvalidConversationShapeError, RemoteAPIError

LOGGER = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")


class ProviderId(str, Enum):
    """Closed set of supported providers; exactly one is active at a time."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"
    CLAUDE = "claude"


@dataclass(frozen=True)
class Message:
    """A single role-tagged conversation turn."""

    role: str
    content: str

    @classmethod
    def coerce(cls, value: Union["Message", Mapping[str, Any]]) -> "Message":
        """Build a message from a Message instance or a ``{role, content}`` mapping."""
        if isinstance(value, Message):
            return value
        if isinstance(value, Mapping):
            return cls(role=str(value.get("role", "")), content=str(value.get("content") or ""))
        raise InvalidConversationShapeError(f"Unsupported message type: {type(value).__name__}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatOptions:
    """Generation parameters recognised by every provider.

    Attributes:
        model: Provider-specific model identifier.
        temperature: Sampling randomness in [0, 1]; lower is more deterministic.
        endpoint: Base URL override, honoured by the local provider only.
        api_key: Credential required by hosted providers.
        max_tokens: Response length cap.
        stop_sequences: Generation halts when one of these is produced.
        custom_prompt: Named prompt template hint used by the summarizer.
        timeout: Seconds to wait for a chat completion (None waits indefinitely).
    """

    model: Optional[str] = None
    temperature: Optional[float] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: Optional[int] = None
    stop_sequences: List[str] = field(default_factory=list)
    custom_prompt: Optional[str] = None
    timeout: Optional[float] = None

    _ALIASES = {
        "apiKey": "api_key",
        "maxTokens": "max_tokens",
        "stopSequences": "stop_sequences",
        "customPrompt": "custom_prompt",
    }

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "ChatOptions":
        """Build options from a dict, accepting camelCase keys used by API clients."""
        if not values:
            return cls()
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            name = cls._ALIASES.get(key, key)
            if name in cls.__dataclass_fields__ and not name.startswith("_") and value is not None:
                kwargs[name] = value
        if "stop_sequences" in kwargs:
            kwargs["stop_sequences"] = list(kwargs["stop_sequences"])
        return cls(**kwargs)


def validate_conversation(
    messages: Sequence[Union[Message, Mapping[str, Any]]],
) -> List[Message]:
    """Coerce a conversation and check that it ends with a user turn.

    The conversation must hold at least one non-system message and its
    last message must have the ``user`` role. Further system messages are
    allowed; adapters without a system role merge them into one prompt.

    Raises:
        InvalidConversationShapeError: If the conversation violates the rule
            or contains an unknown role.
    """
    coerced = [Message.coerce(message) for message in messages or []]
    for message in coerced:
        if message.role not in VALID_ROLES:
            raise InvalidConversationShapeError(f"Unknown message role: {message.role!r}")

    turns = coerced[1:] if coerced and coerced[0].role == "system" else coerced
    if not turns:
        raise InvalidConversationShapeError("Conversation must contain at least one user message")
    if turns[-1].role != "user":
        raise InvalidConversationShapeError("The last message must be from the user")
    return coerced


def split_system(messages: Sequence[Message]) -> tuple[Optional[str], List[Message]]:
    """Return all system prompts joined by a blank line, and the remaining turns."""
    system_parts = [message.content for message in messages if message.role == "system"]
    system = "\n\n".join(system_parts) if system_parts else None
    turns = [message for message in messages if message.role in ("user", "assistant")]
    return system, turns


class LLMProvider(ABC):
    """Abstract base class for LLM provider adapters.

    Adapters are stateless per call: endpoint, credential and generation
    parameters all arrive through ``ChatOptions`` or the probe argument.
    An optional ``requests.Session`` may be injected; otherwise the module
    level ``requests`` functions are used.
    """

    name: str = ""
    display_name: str = ""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._http: Any = session if session is not None else requests

    @abstractmethod
    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        """Send a conversation to the provider and return the completion text.

        Raises:
            InvalidConversationShapeError: If the conversation does not end with a user turn.
            MissingCredentialError: If the provider needs a credential that was not supplied.
            RemoteAPIError: If the HTTP call fails or returns a non-2xx status.
        """

    @abstractmethod
    def test_connection(self, credential_or_endpoint: Optional[str] = None) -> bool:
        """Run a lightweight reachability/auth probe. Never raises."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _defaults(self, options: Optional[ChatOptions]) -> ChatOptions:
        """Fill unset generation parameters with this provider's defaults."""
        opts = options or ChatOptions()
        return ChatOptions(
            model=opts.model or config.DEFAULT_MODELS[self.name],
            temperature=(
                opts.temperature if opts.temperature is not None else config.DEFAULT_TEMPERATURE
            ),
            endpoint=opts.endpoint,
            api_key=opts.api_key,
            max_tokens=opts.max_tokens,
            stop_sequences=list(opts.stop_sequences or []),
            custom_prompt=opts.custom_prompt,
            timeout=opts.timeout if opts.timeout is not None else config.CHAT_TIMEOUT_SECONDS,
        )

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        """Issue one HTTP request, translating failures into RemoteAPIError."""
        try:
            response = self._http.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise ConnectionTimeoutError(self.display_name) from exc
        except requests.exceptions.RequestException as exc:
            raise RemoteAPIError(self.display_name, str(exc)) from exc

        if not 200 <= response.status_code < 300:
            body = response.text
            LOGGER.warning(
                "%s responded with %d for %s: %s",
                self.display_name,
                response.status_code,
                method,
                (body or "")[:200],
            )
            raise RemoteAPIError(
                self.display_name,
                str(getattr(response, "reason", "") or "request failed"),
                status=response.status_code,
                body=body,
            )
        return response

    def _json(self, response: Response) -> Dict[str, Any]:
        """Decode a successful response body, tolerating non-JSON payloads."""
        try:
            data = response.json()
        except ValueError:
            LOGGER.warning("%s returned a non-JSON body; treating as empty", self.display_name)
            return {}
        return data if isinstance(data, dict) else {}

    def _probe(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Optional[Response]:
        """Send a probe request with the fixed probe timeout; None on any failure."""
        try:
            return self._http.request(
                method,
                url,
                headers=headers,
                params=params,
                timeout=config.PROBE_TIMEOUT_SECONDS,
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.info("%s probe failed: %s", self.display_name, exc)
            return None
