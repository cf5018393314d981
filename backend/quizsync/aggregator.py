"""Additive merge of quiz results into per-topic knowledge counters."""

from __future__ import annotations

from typing import Dict, Mapping

from .knowledge import TopicKnowledge, normalize_topic


def merge(current: TopicKnowledge, delta_questions: int, delta_correct: int) -> TopicKnowledge:
    """Fold one completed quiz into ``current``.

    Each call accounts for exactly one quiz: ``quizzes_taken`` grows by one no matter
    how many questions the quiz had.
    """
    if delta_questions < 0:
        raise ValueError("delta_questions must be non-negative.")
    if delta_correct < 0 or delta_correct > delta_questions:
        raise ValueError("delta_correct must be between 0 and delta_questions.")
    return TopicKnowledge(
        total_questions=current.total_questions + delta_questions,
        correct_answers=current.correct_answers + delta_correct,
        quizzes_taken=current.quizzes_taken + 1,
    )


def apply_completion(
    knowledge_by_topic: Mapping[str, TopicKnowledge],
    topic: str,
    delta_questions: int,
    delta_correct: int,
) -> Dict[str, TopicKnowledge]:
    """Return a copy of ``knowledge_by_topic`` with ``topic`` merged from its current or zeroed value."""
    normalized = normalize_topic(topic)
    if not normalized:
        raise ValueError("Topic cannot be empty.")
    updated = dict(knowledge_by_topic)
    current = updated.get(normalized, TopicKnowledge())
    updated[normalized] = merge(current, delta_questions, delta_correct)
    return updated


__all__ = ["apply_completion", "merge"]
