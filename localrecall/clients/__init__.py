"""Client wrappers used by the backend."""

from .ollama import (
    OllamaChatResult,
    OllamaClient,
    OllamaClientError,
    OllamaOutOfMemoryError,
)

__all__ = [
    "OllamaClient",
    "OllamaClientError",
    "OllamaOutOfMemoryError",
    "OllamaChatResult",
]
