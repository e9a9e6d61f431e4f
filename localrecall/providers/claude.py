"""Anthropic Claude provider implementation."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .. import config
from ..errors import MissingCredentialError
from .base import ChatOptions, LLMProvider, Message, split_system, validate_conversation

LOGGER = logging.getLogger(__name__)


class ClaudeProvider(LLMProvider):
    """Claude Messages API provider.

    The system prompt is sent as the top-level ``system`` field rather than
    as a conversation turn.
    """

    name = "claude"
    display_name = "Claude"

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": config.CLAUDE_API_VERSION,
            "Content-Type": "application/json",
        }

    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        conversation = validate_conversation(messages)
        opts = self._defaults(options)
        if not opts.api_key:
            raise MissingCredentialError(self.display_name)

        system, turns = split_system(conversation)
        request_body: Dict[str, Any] = {
            "model": opts.model,
            "messages": [message.to_dict() for message in turns],
            "max_tokens": opts.max_tokens or config.HOSTED_DEFAULT_MAX_TOKENS,
            "temperature": opts.temperature,
        }
        if system:
            request_body["system"] = system
        if opts.stop_sequences:
            request_body["stop_sequences"] = list(opts.stop_sequences)

        LOGGER.debug("Generating completion with Claude model: %s", opts.model)
        response = self._send(
            "POST",
            f"{config.CLAUDE_API_BASE}/messages",
            headers=self._headers(opts.api_key),
            json=request_body,
            timeout=opts.timeout,
        )
        data = self._json(response)
        blocks = data.get("content") or []
        text = "".join(
            block.get("text") or ""
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not text:
            LOGGER.warning("Claude returned no text blocks; stop_reason=%s", data.get("stop_reason"))
        return text

    def test_connection(self, credential_or_endpoint: Optional[str] = None) -> bool:
        """Send an OPTIONS request; anything but an auth rejection counts as reachable."""
        if not credential_or_endpoint:
            return False
        response = self._probe(
            "OPTIONS",
            f"{config.CLAUDE_API_BASE}/messages",
            headers=self._headers(credential_or_endpoint),
        )
        if response is None:
            return False
        return response.status_code not in (401, 403)
