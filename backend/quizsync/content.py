"""Quiz content provider contract and decoding of generated quiz payloads."""

from __future__ import annotations

import json
import logging
from typing import List, Protocol

from pydantic import ValidationError

from .errors import QuizContentError
from .knowledge import QuizQuestion

logger = logging.getLogger(__name__)


class QuizContentProvider(Protocol):
    async def generate(
        self, topic: str, question_count: int, option_count: int
    ) -> List[QuizQuestion]:  # pragma: no cover - protocol definition
        ...


def _strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def parse_quiz_payload(text: str) -> List[QuizQuestion]:
    """Decode a model response holding a JSON array of questions.

    Responses are often wrapped in Markdown fences; those are removed first.
    Entries use ``answer_index`` for the correct option.
    """
    cleaned = _strip_code_fences(text or "")
    if not cleaned:
        return []
    try:
        data = json.loads(cleaned)
    except ValueError as exc:
        raise QuizContentError("Failed to generate quiz.") from exc
    if not isinstance(data, list):
        raise QuizContentError("Failed to generate quiz.")
    try:
        questions = [QuizQuestion.model_validate(entry) for entry in data]
    except ValidationError as exc:
        raise QuizContentError("Failed to generate quiz.") from exc
    logger.debug("Decoded %s generated questions", len(questions))
    return questions


__all__ = ["QuizContentProvider", "parse_quiz_payload"]
