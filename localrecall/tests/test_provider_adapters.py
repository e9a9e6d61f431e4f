"""Tests for the four provider adapters' wire formats and error handling."""

from __future__ import annotations

from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest
import requests

from localrecall.errors import (
    ConnectionTimeoutError,
    InvalidConversationShapeError,
    MissingCredentialError,
    RemoteAPIError,
)
from localrecall.providers import (
    ChatOptions,
    ClaudeProvider,
    GeminiProvider,
    OllamaProvider,
    OpenAIProvider,
)


def _response(status: int = 200, payload: Optional[Dict[str, Any]] = None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload if payload is not None else {}
    response.text = text
    response.reason = "Error"
    return response


def _session(response: Optional[MagicMock] = None) -> MagicMock:
    session = MagicMock()
    session.request.return_value = response or _response()
    return session


ALL_ADAPTERS = [OllamaProvider, OpenAIProvider, GeminiProvider, ClaudeProvider]


class TestConversationShape:
    """Every adapter rejects badly shaped conversations before any HTTP call."""

    @pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
    def test_trailing_assistant_message_rejected(self, adapter_cls) -> None:
        session = _session()
        adapter = adapter_cls(session=session)
        messages = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

        with pytest.raises(InvalidConversationShapeError):
            adapter.chat(messages, ChatOptions(api_key="key"))

        session.request.assert_not_called()

    @pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
    def test_system_only_conversation_rejected(self, adapter_cls) -> None:
        session = _session()
        adapter = adapter_cls(session=session)

        with pytest.raises(InvalidConversationShapeError):
            adapter.chat([{"role": "system", "content": "Be brief"}], ChatOptions(api_key="key"))

        session.request.assert_not_called()

    def test_unknown_role_rejected(self) -> None:
        session = _session()
        with pytest.raises(InvalidConversationShapeError):
            OpenAIProvider(session=session).chat(
                [{"role": "tool", "content": "x"}, {"role": "user", "content": "Hi"}],
                ChatOptions(api_key="key"),
            )
        session.request.assert_not_called()


class TestMissingCredential:
    @pytest.mark.parametrize("adapter_cls", [OpenAIProvider, GeminiProvider, ClaudeProvider])
    def test_hosted_adapter_requires_api_key(self, adapter_cls) -> None:
        session = _session()
        with pytest.raises(MissingCredentialError):
            adapter_cls(session=session).chat([{"role": "user", "content": "Hi"}])
        session.request.assert_not_called()


class TestEmptyCompletion:
    """A 2xx reply without completion text yields an empty string."""

    @pytest.mark.parametrize(
        "adapter_cls,payload",
        [
            (OllamaProvider, {"model": "gemma3:4b"}),
            (OpenAIProvider, {"choices": []}),
            (GeminiProvider, {"candidates": []}),
            (ClaudeProvider, {"content": []}),
        ],
    )
    def test_returns_empty_string(self, adapter_cls, payload) -> None:
        adapter = adapter_cls(session=_session(_response(200, payload)))
        result = adapter.chat([{"role": "user", "content": "Hi"}], ChatOptions(api_key="key"))
        assert result == ""

    @pytest.mark.parametrize(
        "adapter_cls,payload",
        [
            (OpenAIProvider, {"choices": ["not a choice object"]}),
            (OpenAIProvider, {"choices": [{"message": "plain string"}]}),
            (GeminiProvider, {"candidates": ["not a candidate object"]}),
            (GeminiProvider, {"candidates": [{"content": "plain string"}]}),
        ],
    )
    def test_malformed_body_yields_empty_string(self, adapter_cls, payload) -> None:
        adapter = adapter_cls(session=_session(_response(200, payload)))
        result = adapter.chat([{"role": "user", "content": "Hi"}], ChatOptions(api_key="key"))
        assert result == ""


class TestOllamaWireFormat:
    def test_chat_posts_messages_and_options(self) -> None:
        session = _session(_response(200, {"message": {"role": "assistant", "content": "Hello"}}))
        adapter = OllamaProvider(session=session)

        result = adapter.chat(
            [{"role": "system", "content": "Be nice"}, {"role": "user", "content": "Hi"}],
            ChatOptions(
                endpoint="http://ollama.local:11434/",
                model="llama3",
                temperature=0.3,
                stop_sequences=["END"],
            ),
        )

        assert result == "Hello"
        method, url = session.request.call_args.args
        body = session.request.call_args.kwargs["json"]
        assert method == "POST"
        assert url == "http://ollama.local:11434/api/chat"
        assert body["model"] == "llama3"
        assert body["stream"] is False
        assert body["messages"][0] == {"role": "system", "content": "Be nice"}
        assert body["options"] == {"temperature": 0.3, "num_predict": 2048, "stop": ["END"]}

    def test_non_2xx_raises_remote_error_with_status(self) -> None:
        session = _session(_response(404, {"error": "model not found"}, text='{"error":"model not found"}'))
        with pytest.raises(RemoteAPIError) as excinfo:
            OllamaProvider(session=session).chat([{"role": "user", "content": "Hi"}])
        assert excinfo.value.status == 404
        assert "model not found" in str(excinfo.value)

    def test_timeout_maps_to_connection_timeout(self) -> None:
        session = MagicMock()
        session.request.side_effect = requests.exceptions.ReadTimeout("slow")
        with pytest.raises(ConnectionTimeoutError) as excinfo:
            OllamaProvider(session=session).chat(
                [{"role": "user", "content": "Hi"}], ChatOptions(timeout=1.5)
            )
        assert excinfo.value.status is None
        assert session.request.call_args.kwargs["timeout"] == 1.5


class TestOpenAIWireFormat:
    def test_chat_request_shape(self) -> None:
        payload = {"choices": [{"message": {"content": "Answer"}, "finish_reason": "stop"}]}
        session = _session(_response(200, payload))

        result = OpenAIProvider(session=session).chat(
            [{"role": "user", "content": "Question"}],
            ChatOptions(api_key="sk-test", stop_sequences=["\n\n"]),
        )

        assert result == "Answer"
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["model"] == "gpt-3.5-turbo"
        assert kwargs["json"]["temperature"] == 0.7
        assert kwargs["json"]["max_tokens"] == 1024
        assert kwargs["json"]["stop"] == ["\n\n"]

    def test_list_of_text_parts_is_joined(self) -> None:
        payload = {"choices": [{"message": {"content": [{"text": "Hello "}, {"text": "world"}]}}]}
        result = OpenAIProvider(session=_session(_response(200, payload))).chat(
            [{"role": "user", "content": "Hi"}], ChatOptions(api_key="k")
        )
        assert result == "Hello world"

    def test_endpoint_override_is_ignored(self) -> None:
        session = _session(_response(200, {"choices": [{"message": {"content": "ok"}}]}))
        OpenAIProvider(session=session).chat(
            [{"role": "user", "content": "Hi"}],
            ChatOptions(api_key="k", endpoint="http://elsewhere"),
        )
        assert session.request.call_args.args[1].startswith("https://api.openai.com/v1")

    def test_unauthorized_raises_remote_error(self) -> None:
        session = _session(_response(401, {"error": {"message": "bad key"}}, text="bad key"))
        with pytest.raises(RemoteAPIError) as excinfo:
            OpenAIProvider(session=session).chat([{"role": "user", "content": "Hi"}], ChatOptions(api_key="k"))
        assert excinfo.value.status == 401
        assert excinfo.value.body == "bad key"


class TestGeminiWireFormat:
    def test_system_prepended_and_roles_mapped(self) -> None:
        payload = {"candidates": [{"content": {"parts": [{"text": "Bonjour"}]}}]}
        session = _session(_response(200, payload))

        result = GeminiProvider(session=session).chat(
            [
                {"role": "system", "content": "Answer in French"},
                {"role": "user", "content": "Hello"},
                {"role": "assistant", "content": "Salut"},
                {"role": "user", "content": "Again"},
            ],
            ChatOptions(api_key="g-key", max_tokens=50),
        )

        assert result == "Bonjour"
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url.endswith("/models/gemini-pro:generateContent")
        assert kwargs["params"] == {"key": "g-key"}
        contents = kwargs["json"]["contents"]
        assert contents == [
            {"role": "user", "parts": [{"text": "Answer in French\n\nHello"}]},
            {"role": "model", "parts": [{"text": "Salut"}]},
            {"role": "user", "parts": [{"text": "Again"}]},
        ]
        assert kwargs["json"]["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 50}

    def test_every_system_message_is_kept(self) -> None:
        payload = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
        session = _session(_response(200, payload))

        GeminiProvider(session=session).chat(
            [
                {"role": "system", "content": "A"},
                {"role": "system", "content": "B"},
                {"role": "user", "content": "hi"},
            ],
            ChatOptions(api_key="g-key"),
        )

        contents = session.request.call_args.kwargs["json"]["contents"]
        assert contents == [{"role": "user", "parts": [{"text": "A\n\nB\n\nhi"}]}]


class TestClaudeWireFormat:
    def test_system_moved_to_top_level(self) -> None:
        payload = {"content": [{"type": "text", "text": "Hi "}, {"type": "text", "text": "there"}]}
        session = _session(_response(200, payload))

        result = ClaudeProvider(session=session).chat(
            [{"role": "system", "content": "Be terse"}, {"role": "user", "content": "Hello"}],
            ChatOptions(api_key="c-key", stop_sequences=["STOP"]),
        )

        assert result == "Hi there"
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "c-key"
        assert kwargs["headers"]["anthropic-version"] == "2023-06-01"
        assert kwargs["json"]["system"] == "Be terse"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["json"]["model"] == "claude-3-haiku-20240307"
        assert kwargs["json"]["max_tokens"] == 1024
        assert kwargs["json"]["stop_sequences"] == ["STOP"]

    def test_every_system_message_is_kept(self) -> None:
        session = _session(_response(200, {"content": [{"type": "text", "text": "ok"}]}))

        ClaudeProvider(session=session).chat(
            [
                {"role": "system", "content": "A"},
                {"role": "system", "content": "B"},
                {"role": "user", "content": "hi"},
            ],
            ChatOptions(api_key="c-key"),
        )

        body = session.request.call_args.kwargs["json"]
        assert body["system"] == "A\n\nB"
        assert body["messages"] == [{"role": "user", "content": "hi"}]


class TestConnectionProbes:
    @pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
    @pytest.mark.parametrize(
        "error",
        [requests.exceptions.ConnectionError("refused"), requests.exceptions.Timeout("slow")],
    )
    def test_probe_returns_false_on_transport_failure(self, adapter_cls, error) -> None:
        session = MagicMock()
        session.request.side_effect = error
        assert adapter_cls(session=session).test_connection("credential") is False

    def test_probes_use_fixed_timeout(self) -> None:
        session = _session(_response(200, {"data": []}))
        assert OpenAIProvider(session=session).test_connection("sk") is True
        assert session.request.call_args.kwargs["timeout"] == 5.0

    def test_gemini_probe_sends_key_as_query(self) -> None:
        session = _session(_response(200, {"models": []}))
        assert GeminiProvider(session=session).test_connection("g-key") is True
        assert session.request.call_args.kwargs["params"] == {"key": "g-key"}

    @pytest.mark.parametrize("status,expected", [(200, True), (405, True), (401, False), (403, False)])
    def test_claude_probe_only_fails_on_auth_rejection(self, status, expected) -> None:
        session = _session(_response(status))
        assert ClaudeProvider(session=session).test_connection("c-key") is expected
        assert session.request.call_args.args[0] == "OPTIONS"

    @pytest.mark.parametrize("adapter_cls", [OpenAIProvider, GeminiProvider, ClaudeProvider])
    def test_hosted_probe_without_key_is_false(self, adapter_cls) -> None:
        session = _session()
        assert adapter_cls(session=session).test_connection(None) is False
        session.request.assert_not_called()
