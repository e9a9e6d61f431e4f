"""HTTP client for interacting with an Ollama instance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests import Response

from ..config import OLLAMA_BASE_URL
from ..errors import ConnectionTimeoutError, RemoteAPIError

LOGGER = logging.getLogger(__name__)


class OllamaClientError(RemoteAPIError):
    """Raised when the Ollama client cannot complete a request."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__("Ollama", message, status=status, body=body)


class OllamaOutOfMemoryError(OllamaClientError):
    """Raised when the Ollama server reports insufficient memory for a request."""


def _normalize_path(path: str) -> str:
    if not path.startswith("/"):
        return "/" + path
    return path


@dataclass
class OllamaChatResult:
    """Response returned from a chat request."""

    model: str
    message: Dict[str, Any]
    raw: Dict[str, Any]

    @property
    def content(self) -> str:
        return str(self.message.get("content") or "")


class OllamaClient:
    """Lightweight wrapper around the Ollama REST API.

    Each call issues exactly one request; connectivity fallbacks across
    alternate local addresses live in the provider, not here.
    """

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        *,
        timeout: Optional[float] = None,
        session: Optional[Any] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else requests

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Response:
        url = f"{self.base_url}{_normalize_path(path)}"
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise ConnectionTimeoutError("Ollama") from exc
        except requests.RequestException as exc:
            raise OllamaClientError(f"Ollama request failed: {exc}") from exc

        if response.status_code >= 300:
            text = response.text
            error_detail = ""
            try:
                payload = response.json()
            except ValueError:
                payload = None
            else:
                if isinstance(payload, dict):
                    error_detail = str(payload.get("error") or "")

            normalized_error = (error_detail or text or "").lower()
            msg = f"Ollama responded with {response.status_code} for {method} {path}"
            if "requires more system memory" in normalized_error:
                raise OllamaOutOfMemoryError(msg, status=response.status_code, body=text)
            raise OllamaClientError(msg, status=response.status_code, body=text)

        return response

    def chat(
        self,
        *,
        messages: Sequence[Dict[str, Any]],
        model: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> OllamaChatResult:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "stream": False,
        }
        if options:
            payload["options"] = options

        response = self._request("POST", "/api/chat", json=payload)
        try:
            data = response.json()
        except ValueError:
            LOGGER.warning("Ollama chat returned a non-JSON body; treating as empty")
            data = {}
        if not isinstance(data, dict):
            data = {}
        message = data.get("message") or {}
        if not isinstance(message, dict):
            message = {"role": "assistant", "content": str(message)}
        return OllamaChatResult(
            model=data.get("model") or model,
            message=message,
            raw=data,
        )

    def list_models(self) -> List[Dict[str, Any]]:
        response = self._request("GET", "/api/tags")
        data = response.json()
        results = data.get("models") or data.get("data") or data
        if isinstance(results, dict):
            results = results.get("models") or []
        if not isinstance(results, list):
            raise OllamaClientError("Unexpected payload when listing models.")
        return [model for model in results if isinstance(model, dict)]
