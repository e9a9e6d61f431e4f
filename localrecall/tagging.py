"""LLM-backed tag extraction for imported content."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from .providers.base import ChatOptions, Message

LOGGER = logging.getLogger(__name__)

MAX_TAGS = 7
MAX_CONTENT_CHARS = 2000
TAG_TEMPERATURE = 0.1

_TAG_PROMPT = (
    "You are an expert at extracting relevant tags/keywords from content.\n"
    "Analyze the following content and extract 3-7 relevant tags.\n"
    "Tags should be 1-3 words, lowercase, and relevant to the key topics.\n\n"
    "Return ONLY a JSON array of tag strings, nothing else.\n"
    'Example: ["machine learning", "python", "data science"]\n\n'
    "Here is the content to analyze:\n{content}"
)

_ARRAY_RE = re.compile(r"\[[\s\S]*?\]")
_QUOTED_RE = re.compile(r"""^["'](.+)["']$""")


def build_tag_prompt(
    content: str,
    *,
    title: Optional[str] = None,
    url: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    parts = [
        f"Title: {title}" if title else "",
        f"URL: {url}" if url else "",
        f"Content type: {content_type or 'text'}",
        f"Content: {content[:MAX_CONTENT_CHARS]}",
    ]
    return _TAG_PROMPT.format(content="\n\n".join(part for part in parts if part))


def _clean_tags(candidates: List[Any]) -> List[str]:
    tags: List[str] = []
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        tag = _QUOTED_RE.sub(r"\1", candidate.strip()).strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags[:MAX_TAGS]


def parse_tags(text: str) -> List[str]:
    """Read tags from a model reply.

    The first JSON array wins; otherwise the reply is split on commas and
    newlines, skipping anything that looks like leftover JSON syntax.
    """
    text = text or ""
    match = _ARRAY_RE.search(text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            LOGGER.debug("Tag reply contained a malformed JSON array; falling back to splitting")
        else:
            if isinstance(parsed, list):
                return _clean_tags(parsed)

    pieces = [
        piece
        for piece in re.split(r"[,\n]", text)
        if piece.strip() and not any(ch in piece for ch in "[]{}")
    ]
    return _clean_tags(pieces)


def extract_tags(
    manager: Any,
    content: str,
    *,
    title: Optional[str] = None,
    url: Optional[str] = None,
    content_type: Optional[str] = None,
) -> List[str]:
    """Ask the active provider for 3-7 lowercase tags describing ``content``."""
    if not content or not content.strip():
        raise ValueError("Content is required")
    prompt = build_tag_prompt(content, title=title, url=url, content_type=content_type)
    reply = manager.chat([Message("user", prompt)], ChatOptions(temperature=TAG_TEMPERATURE))
    tags = parse_tags(reply)
    LOGGER.info("Extracted %d tags", len(tags))
    return tags
