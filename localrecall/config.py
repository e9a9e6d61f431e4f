"""Configuration helpers for the LocalRecall backend."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from a .env file if present.
load_dotenv()


def _split_origins(value: str) -> List[str]:
    """Convert a comma-separated origin string into a clean list.

    Args:
        value (str): One or many origins separated by commas.
    Returns:
        List[str]: Normalized origin values with whitespace removed.
    """
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def _optional_float(name: str) -> Optional[float]:
    """Return a float environment value, or None when unset or malformed."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"

API_HOST = os.getenv("LOCALRECALL_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("LOCALRECALL_API_PORT", "8502"))
API_ALLOWED_ORIGINS = _split_origins(
    os.getenv("LOCALRECALL_API_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
)

# ---------------------------------------------------------------------------
# Local model (Ollama)
# ---------------------------------------------------------------------------
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
# Alternate local addresses probed, in order, when the configured one fails.
OLLAMA_FALLBACK_ENDPOINTS = (
    "http://127.0.0.1:11434",
    "http://0.0.0.0:11434",
    "http://host.docker.internal:11434",
)


def _detect_containerized_default_ollama_url() -> str:
    """Return a reasonable default Ollama URL depending on the runtime host."""
    env_url = os.getenv("OLLAMA_BASE_URL")
    if env_url:
        return env_url.rstrip("/")

    docker_marker = Path("/.dockerenv")
    if docker_marker.exists():
        # When running inside Docker we need to reach the host-bound Ollama instance.
        return "http://host.docker.internal:11434"
    return DEFAULT_OLLAMA_ENDPOINT


OLLAMA_BASE_URL = _detect_containerized_default_ollama_url()

# ---------------------------------------------------------------------------
# Hosted providers (vendor-fixed base URLs)
# ---------------------------------------------------------------------------
OPENAI_API_BASE = "https://api.openai.com/v1"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
CLAUDE_API_BASE = "https://api.anthropic.com/v1"
CLAUDE_API_VERSION = "2023-06-01"

# ---------------------------------------------------------------------------
# Generation defaults
# ---------------------------------------------------------------------------
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MODELS = {
    "ollama": "gemma3:4b",
    "openai": "gpt-3.5-turbo",
    "gemini": "gemini-pro",
    "claude": "claude-3-haiku-20240307",
}
OLLAMA_DEFAULT_MAX_TOKENS = 2048
HOSTED_DEFAULT_MAX_TOKENS = 1024

PROBE_TIMEOUT_SECONDS = _optional_float("LOCALRECALL_PROBE_TIMEOUT_SECONDS") or 5.0
# None means chat requests wait for the provider indefinitely.
CHAT_TIMEOUT_SECONDS = _optional_float("LOCALRECALL_CHAT_TIMEOUT_SECONDS")

SUMMARY_CACHE_SIZE = 100
