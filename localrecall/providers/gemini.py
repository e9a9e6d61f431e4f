"""Google Gemini provider implementation."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .. import config
from ..errors import MissingCredentialError
from .base import ChatOptions, LLMProvider, Message, split_system, validate_conversation

LOGGER = logging.getLogger(__name__)


def to_gemini_contents(conversation: Sequence[Message]) -> List[Dict[str, Any]]:
    """Map a conversation onto Gemini ``contents``.

    Gemini has no system role: the system text is prepended to the first
    user turn. ``assistant`` becomes ``model``.
    """
    system, turns = split_system(conversation)
    contents: List[Dict[str, Any]] = []
    pending_system = system
    for message in turns:
        text = message.content
        if pending_system and message.role == "user":
            text = f"{pending_system}\n\n{text}"
            pending_system = None
        contents.append(
            {
                "role": "model" if message.role == "assistant" else "user",
                "parts": [{"text": text}],
            }
        )
    return contents


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        LOGGER.warning("Gemini returned no candidates; promptFeedback=%s", data.get("promptFeedback"))
        return ""
    primary = candidates[0] if isinstance(candidates[0], dict) else {}
    content = primary.get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts") or []
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


class GeminiProvider(LLMProvider):
    """Gemini ``generateContent`` provider; the API key travels as a query parameter."""

    name = "gemini"
    display_name = "Gemini"

    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        conversation = validate_conversation(messages)
        opts = self._defaults(options)
        if not opts.api_key:
            raise MissingCredentialError(self.display_name)

        generation_config: Dict[str, Any] = {
            "temperature": opts.temperature,
            "maxOutputTokens": opts.max_tokens or config.HOSTED_DEFAULT_MAX_TOKENS,
        }
        if opts.stop_sequences:
            generation_config["stopSequences"] = list(opts.stop_sequences)

        LOGGER.debug("Generating completion with Gemini model: %s", opts.model)
        response = self._send(
            "POST",
            f"{config.GEMINI_API_BASE}/models/{opts.model}:generateContent",
            headers={"Content-Type": "application/json"},
            params={"key": opts.api_key},
            json={
                "contents": to_gemini_contents(conversation),
                "generationConfig": generation_config,
            },
            timeout=opts.timeout,
        )
        return _extract_text(self._json(response))

    def test_connection(self, credential_or_endpoint: Optional[str] = None) -> bool:
        if not credential_or_endpoint:
            return False
        response = self._probe(
            "GET",
            f"{config.GEMINI_API_BASE}/models",
            params={"key": credential_or_endpoint},
        )
        return response is not None and response.status_code == 200
