"""OpenAI provider implementation.

This module provides integration with OpenAI's chat completions API.
Authentication is via Bearer token (API key).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .. import config
from ..errors import MissingCredentialError
from .base import ChatOptions, LLMProvider, Message, validate_conversation

LOGGER = logging.getLogger(__name__)


def _extract_content(data: Dict[str, Any]) -> str:
    """Pull completion text from a chat completions payload.

    Handles a plain string, a list of text parts, or the legacy ``text`` field.
    """
    choices = data.get("choices") or []
    if not isinstance(choices, list) or not choices:
        return ""
    primary = choices[0] if isinstance(choices[0], dict) else {}
    message = primary.get("message")
    if not isinstance(message, dict):
        message = {}
    message_content = message.get("content")

    content = ""
    if isinstance(message_content, str):
        content = message_content
    elif isinstance(message_content, list):
        parts = []
        for part in message_content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        content = "".join(parts).strip()
    if not content:
        text_candidate = primary.get("text")
        if isinstance(text_candidate, str):
            content = text_candidate

    if not content:
        LOGGER.warning(
            "OpenAI completion returned empty content; finish_reason=%s",
            primary.get("finish_reason"),
        )
    return content


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    name = "openai"
    display_name = "OpenAI"

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        """Generate a chat completion from OpenAI.

        System messages are passed through inline; OpenAI accepts them in
        the ``messages`` array as-is.
        """
        conversation = validate_conversation(messages)
        opts = self._defaults(options)
        if not opts.api_key:
            raise MissingCredentialError(self.display_name)

        request_body: Dict[str, Any] = {
            "model": opts.model,
            "messages": [message.to_dict() for message in conversation],
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens or config.HOSTED_DEFAULT_MAX_TOKENS,
        }
        if opts.stop_sequences:
            request_body["stop"] = list(opts.stop_sequences)

        LOGGER.debug("Generating completion with OpenAI model: %s", opts.model)
        response = self._send(
            "POST",
            f"{config.OPENAI_API_BASE}/chat/completions",
            headers=self._headers(opts.api_key),
            json=request_body,
            timeout=opts.timeout,
        )
        return _extract_content(self._json(response))

    def test_connection(self, credential_or_endpoint: Optional[str] = None) -> bool:
        """Check the API key against ``GET /models``."""
        if not credential_or_endpoint:
            LOGGER.debug("OpenAI probe skipped: API key not configured")
            return False
        response = self._probe(
            "GET",
            f"{config.OPENAI_API_BASE}/models",
            headers=self._headers(credential_or_endpoint),
        )
        if response is None:
            return False
        if response.status_code == 401:
            LOGGER.warning("OpenAI probe failed: authentication rejected")
        return response.status_code == 200
