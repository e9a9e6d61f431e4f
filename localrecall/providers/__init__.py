"""LLM Provider abstraction layer.

This package provides a unified interface for interacting with the
supported LLM providers (Ollama, OpenAI, Gemini, Claude) for chat,
summarization and other generative AI tasks.
"""

from .base import (
    ChatOptions,
    LLMProvider,
    Message,
    ProviderId,
    validate_conversation,
)
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

__all__ = [
    "ChatOptions",
    "LLMProvider",
    "Message",
    "ProviderId",
    "validate_conversation",
    "ClaudeProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
]
