"""Multiple-choice quiz generation from stored knowledge."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .providers.base import ChatOptions, Message

LOGGER = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 5
MAX_QUESTION_COUNT = 20

_QUIZ_SYS = (
    "You write multiple-choice quiz questions that test understanding of a text. "
    "You always answer with valid JSON only."
)
_QUIZ_USER_TMPL = (
    "Create {count} multiple-choice questions about the content below.\n"
    "Each question must have exactly 4 options and one correct answer.\n\n"
    "Return ONLY a JSON array in this exact format:\n"
    '[{{"question": "...", "options": ["...", "...", "...", "..."], '
    '"correctAnswer": 0, "explanation": "..."}}]\n'
    "correctAnswer is the zero-based index of the right option.\n\n"
    "Content:\n{content}"
)

_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class QuizParseError(RuntimeError):
    """Raised when a model reply contains no usable quiz questions."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


@dataclass
class QuizQuestion:
    question: str
    options: List[str]
    correct_answer: int
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce_question(item: Any) -> Optional[QuizQuestion]:
    if not isinstance(item, dict):
        return None
    question = str(item.get("question") or "").strip()
    options = item.get("options")
    if not question or not isinstance(options, list) or len(options) < 2:
        return None
    options = [str(option).strip() for option in options]

    answer = item.get("correctAnswer", item.get("correct_answer"))
    if isinstance(answer, str) and not answer.strip().isdigit():
        # Some models name the option instead of giving its index.
        answer = options.index(answer.strip()) if answer.strip() in options else None
    try:
        answer = int(answer)
    except (TypeError, ValueError):
        return None
    if not 0 <= answer < len(options):
        return None
    return QuizQuestion(
        question=question,
        options=options,
        correct_answer=answer,
        explanation=str(item.get("explanation") or "").strip(),
    )


def parse_quiz(text: str) -> List[QuizQuestion]:
    """Parse quiz questions from a model reply, dropping malformed entries.

    Raises:
        QuizParseError: If the reply holds no JSON array or no valid question.
    """
    match = _ARRAY_RE.search(text or "")
    if not match:
        raise QuizParseError("Model reply did not contain a JSON array of questions", text or "")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise QuizParseError(f"Quiz JSON could not be decoded: {exc}", text) from exc

    questions = [q for q in (_coerce_question(item) for item in payload) if q is not None]
    dropped = len(payload) - len(questions)
    if dropped:
        LOGGER.warning("Dropped %d malformed quiz question(s)", dropped)
    if not questions:
        raise QuizParseError("Model reply contained no valid quiz questions", text)
    return questions


def generate_quiz(
    manager: Any,
    content: str,
    *,
    number_of_questions: int = DEFAULT_QUESTION_COUNT,
    options: Optional[ChatOptions] = None,
) -> List[QuizQuestion]:
    if not content or not content.strip():
        raise ValueError("Content is required")
    if not 1 <= number_of_questions <= MAX_QUESTION_COUNT:
        raise ValueError(f"numberOfQuestions must be between 1 and {MAX_QUESTION_COUNT}")

    messages = [
        Message("system", _QUIZ_SYS),
        Message("user", _QUIZ_USER_TMPL.format(count=number_of_questions, content=content)),
    ]
    reply = manager.chat(messages, options)
    questions = parse_quiz(reply)
    LOGGER.info("Generated %d quiz question(s)", len(questions))
    return questions[:number_of_questions]
