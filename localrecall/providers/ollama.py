"""Ollama provider implementation.

Adapts the locally hosted Ollama server to the unified provider interface.
Chat requests go through :class:`OllamaClient`; reachability probes walk
the configured endpoint and the well-known alternate local addresses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .. import config
from ..clients.ollama import OllamaClient
from ..health import ProbeResult, local_candidates, probe_endpoints
from .base import ChatOptions, LLMProvider, Message, validate_conversation

LOGGER = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """Local model provider backed by an Ollama server.

    The endpoint is the only connection detail; no credential is needed.
    """

    name = "ollama"
    display_name = "Ollama"

    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        conversation = validate_conversation(messages)
        opts = self._defaults(options)
        endpoint = (opts.endpoint or config.OLLAMA_BASE_URL).rstrip("/")

        generation: Dict[str, Any] = {
            "temperature": opts.temperature,
            "num_predict": opts.max_tokens or config.OLLAMA_DEFAULT_MAX_TOKENS,
        }
        if opts.stop_sequences:
            generation["stop"] = list(opts.stop_sequences)

        LOGGER.debug("Ollama chat via %s (model=%s)", endpoint, opts.model)
        client = OllamaClient(endpoint, timeout=opts.timeout, session=self._http)
        result = client.chat(
            messages=[message.to_dict() for message in conversation],
            model=opts.model,
            options=generation,
        )
        if not result.content:
            LOGGER.warning("Ollama model %s returned an empty completion", opts.model)
        return result.content

    def ping(self, endpoint: str) -> bool:
        """Probe exactly one endpoint, without fallbacks."""
        response = self._probe("GET", f"{endpoint.rstrip('/')}/api/tags")
        return response is not None and response.status_code == 200

    def resolve_endpoint(self, endpoint: Optional[str] = None) -> ProbeResult:
        """Probe the given endpoint, then the alternate local addresses."""
        return probe_endpoints(local_candidates(endpoint), self.ping)

    def test_connection(self, credential_or_endpoint: Optional[str] = None) -> bool:
        result = self.resolve_endpoint(credential_or_endpoint)
        if result.reachable and result.endpoint != (credential_or_endpoint or "").rstrip("/"):
            LOGGER.info("Ollama reachable at alternate address %s", result.endpoint)
        return result.reachable
