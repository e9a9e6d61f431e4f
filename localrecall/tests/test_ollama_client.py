"""Tests for the low-level Ollama HTTP client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from localrecall.clients.ollama import OllamaClient, OllamaClientError, OllamaOutOfMemoryError
from localrecall.errors import ConnectionTimeoutError


def _response(status: int, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class TestOllamaClient:
    def test_chat_sends_non_streaming_payload(self) -> None:
        with patch("requests.request") as mock_request:
            mock_request.return_value = _response(
                200, {"model": "gemma3:4b", "message": {"role": "assistant", "content": "hi"}}
            )

            client = OllamaClient(base_url="http://localhost:11434/", timeout=30)
            result = client.chat(
                messages=[{"role": "user", "content": "hello"}],
                model="gemma3:4b",
                options={"temperature": 0.2},
            )

        method, url = mock_request.call_args[0]
        kwargs = mock_request.call_args[1]
        assert (method, url) == ("POST", "http://localhost:11434/api/chat")
        assert kwargs["json"]["stream"] is False
        assert kwargs["json"]["options"] == {"temperature": 0.2}
        assert kwargs["timeout"] == 30
        assert result.content == "hi"

    def test_out_of_memory_is_reported_separately(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(
            500, {"error": "model requires more system memory (8 GiB) than is available"}
        )
        client = OllamaClient(session=session)

        with pytest.raises(OllamaOutOfMemoryError) as excinfo:
            client.chat(messages=[{"role": "user", "content": "x"}], model="big")
        assert excinfo.value.status == 500

    def test_error_status_keeps_body(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(404, None, text="model not found")
        client = OllamaClient(session=session)

        with pytest.raises(OllamaClientError) as excinfo:
            client.list_models()
        assert excinfo.value.status == 404
        assert excinfo.value.body == "model not found"

    def test_timeout_raises_connection_timeout(self) -> None:
        session = MagicMock()
        session.request.side_effect = requests.exceptions.ReadTimeout("slow")
        client = OllamaClient(session=session)

        with pytest.raises(ConnectionTimeoutError):
            client.list_models()

    def test_non_json_chat_body_is_empty_completion(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(200, None, text="<html>")
        client = OllamaClient(session=session)

        result = client.chat(messages=[{"role": "user", "content": "x"}], model="gemma3:4b")
        assert result.content == ""

    def test_list_models_filters_non_dict_entries(self) -> None:
        session = MagicMock()
        session.request.return_value = _response(200, {"models": [{"name": "gemma3:4b"}, "junk"]})

        assert OllamaClient(session=session).list_models() == [{"name": "gemma3:4b"}]
