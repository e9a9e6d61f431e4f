"""Structured summarization of imported content.

The model is asked for three labelled sections (brief summary, detailed
summary, key points). :func:`parse_summary_response` pulls them back out of
free-form text; it is a pure function and never raises.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .config import SUMMARY_CACHE_SIZE
from .providers.base import ChatOptions, Message, ProviderId

_logger = logging.getLogger(__name__)

FALLBACK_SUMMARY_CHARS = 200
MIN_KEY_POINT_CHARS = 10


@dataclass
class SummaryResult:
    """Three-part summary extracted from a model response."""

    summary: str
    detailed_summary: str = ""
    key_points: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "detailed_summary": self.detailed_summary,
            "key_points": list(self.key_points),
        }


@dataclass
class BriefSummary:
    """Two-field summary returned by ``ProviderManager.generate_summary``."""

    summary: str
    key_points: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------
_DETAILED_LABEL = r"(?:detailed|in-depth)\s+summary\**\s*:"
_KEY_POINTS_LABEL = r"(?:key|main|important)\s+(?:points|takeaways)\**\s*:"
_NEXT_LABEL = rf"(?=\**\s*(?:{_DETAILED_LABEL}|{_KEY_POINTS_LABEL})|\Z)"

_BRIEF_RE = re.compile(
    rf"(?:brief|short|concise)\s+summary\**\s*:(.*?){_NEXT_LABEL}",
    re.IGNORECASE | re.DOTALL,
)
_DETAILED_RE = re.compile(
    rf"{_DETAILED_LABEL}(.*?)(?=\**\s*{_KEY_POINTS_LABEL}|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_KEY_POINTS_RE = re.compile(rf"{_KEY_POINTS_LABEL}(.*)", re.IGNORECASE | re.DOTALL)
# A bullet or number marker only counts when it stands alone between whitespace.
_MARKER_RE = re.compile(r"(?<!\S)(?:[-*•]|\d+\.)(?=\s)")


def _section(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip().strip("*#").strip()


def split_key_points(block: str) -> List[str]:
    """Split a bulleted or numbered block into trimmed points.

    Fragments shorter than ten characters before trimming are dropped.
    """
    return [
        fragment.strip()
        for fragment in _MARKER_RE.split(block)
        if len(fragment) >= MIN_KEY_POINT_CHARS and fragment.strip()
    ]


def parse_summary_response(text: str) -> SummaryResult:
    """Extract the brief summary, detailed summary and key points from ``text``.

    Missing brief summary falls back to the first 200 characters; a missing
    detailed summary is ``""`` and missing key points are ``[]``.
    """
    text = text or ""
    summary = _section(_BRIEF_RE, text)
    if summary is None:
        summary = text[:FALLBACK_SUMMARY_CHARS].strip()
    detailed = _section(_DETAILED_RE, text) or ""

    key_points: List[str] = []
    match = _KEY_POINTS_RE.search(text)
    if match:
        key_points = split_key_points(match.group(1))
    return SummaryResult(summary=summary, detailed_summary=detailed, key_points=key_points)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
_SUMMARY_SYS = (
    "You are a helpful assistant that summarizes content concisely. Provide a "
    "structured summary with a brief overview, detailed explanation, and key points."
)

_FORMAT_FOOTER = (
    "\n\nFormat your response exactly as:\n"
    "Brief Summary: ...\n"
    "Detailed Summary: ...\n"
    "Key Points:\n"
    "- ...\n"
)

PROMPT_TEMPLATES: Dict[str, str] = {
    "default": (
        "Please summarize the following content and provide it in a structured format with:\n"
        "1. A brief summary (2-3 sentences)\n"
        "2. A more detailed summary (2-3 paragraphs)\n"
        "3. 3-5 key points or takeaways"
        f"{_FORMAT_FOOTER}\n"
        "Content to summarize:\n{content}"
    ),
    "article": (
        "Please summarize the following article. Focus on its main argument and evidence:\n"
        "1. A brief summary of the article's thesis (2-3 sentences)\n"
        "2. A more detailed summary of the supporting sections (2-3 paragraphs)\n"
        "3. 3-5 key points or takeaways"
        f"{_FORMAT_FOOTER}\n"
        "Article to summarize:\n{content}"
    ),
    "video_transcript": (
        "Please summarize the following YouTube video transcript and provide:\n"
        "1. A brief summary of what the video is about (2-3 sentences)\n"
        "2. A more detailed summary breaking down the main sections (2-3 paragraphs)\n"
        "3. 4-6 key points or takeaways"
        f"{_FORMAT_FOOTER}\n"
        "Transcript to summarize:\n{content}"
    ),
}

_TIMESTAMP_RE = re.compile(r"\[\d+:\d+(?::\d+)?\]")


def looks_like_transcript(content: str) -> bool:
    """True when the content carries ``[mm:ss]`` style timestamps."""
    return bool(_TIMESTAMP_RE.search(content or ""))


def select_template(content: str, custom_prompt: Optional[str] = None) -> str:
    if custom_prompt and custom_prompt in PROMPT_TEMPLATES:
        return custom_prompt
    if custom_prompt:
        _logger.debug("Unknown prompt template %r; using automatic selection", custom_prompt)
    return "video_transcript" if looks_like_transcript(content) else "default"


def build_summary_messages(content: str, template: str) -> List[Message]:
    return [
        Message("system", _SUMMARY_SYS),
        Message("user", PROMPT_TEMPLATES[template].format(content=content)),
    ]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------
class SummaryCache:
    """Bounded insertion-ordered cache; the oldest entry is evicted first.

    Shared across request threads, so every access holds the lock.
    """

    def __init__(self, max_entries: int = SUMMARY_CACHE_SIZE) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, SummaryResult]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def key_for(content: str, provider: ProviderId, options: ChatOptions, template: str) -> str:
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
        return f"{provider.value}:{digest}:{options.model}:{options.temperature}:{template}"

    def get(self, key: str) -> Optional[SummaryResult]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, value: SummaryResult) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_cache = SummaryCache()


def summarize_content(
    manager: Any,
    content: str,
    options: Optional[ChatOptions] = None,
    *,
    cache: Optional[SummaryCache] = None,
    use_cache: bool = True,
) -> tuple[SummaryResult, bool]:
    """Produce a three-part summary through the manager's active provider.

    Returns the parsed result and whether it was served from the cache.
    With ``use_cache=False`` the provider is always called; the fresh
    result still replaces the cached entry.

    Raises:
        ValueError: If ``content`` is blank.
        ProviderError: Passed through from the provider call.
    """
    if not content or not content.strip():
        raise ValueError("No content provided for summarization")

    cache = _cache if cache is None else cache
    opts = options or ChatOptions()
    template = select_template(content, opts.custom_prompt)
    provider, effective = manager.resolve_options(opts)
    key = SummaryCache.key_for(content, provider, effective, template)
    cached = cache.get(key) if use_cache else None
    if cached is not None:
        _logger.debug("Summary cache hit (template=%s)", template)
        return replace(cached, key_points=list(cached.key_points)), True

    response_text = manager.chat(build_summary_messages(content, template), opts)
    if not response_text:
        _logger.warning("Provider returned an empty summary response")
    result = parse_summary_response(response_text)
    cache.put(key, result)
    return result, False
