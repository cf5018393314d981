"""Progress-tracking models shared by the cache, the remote stores and the engine."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


def normalize_topic(value: str) -> str:
    return value.strip()


class TopicKnowledge(BaseModel):
    """Cumulative counters for one topic. Counters only ever grow."""

    model_config = ConfigDict(frozen=True)

    total_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    quizzes_taken: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_correct_within_total(self) -> "TopicKnowledge":
        if self.correct_answers > self.total_questions:
            raise ValueError("correct_answers cannot exceed total_questions.")
        return self

    @property
    def accuracy(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.correct_answers / self.total_questions * 100


def _combine_knowledge(first: Any, second: Any) -> TopicKnowledge:
    """Sum two raw knowledge entries stored under keys that differ only by whitespace."""
    try:
        left = TopicKnowledge.model_validate(first)
        right = TopicKnowledge.model_validate(second)
    except ValidationError as exc:
        raise ValueError(f"Invalid knowledge entry: {exc}") from exc
    return TopicKnowledge(
        total_questions=left.total_questions + right.total_questions,
        correct_answers=left.correct_answers + right.correct_answers,
        quizzes_taken=left.quizzes_taken + right.quizzes_taken,
    )


class UserProfile(BaseModel):
    id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    knowledge_by_topic: Dict[str, TopicKnowledge] = Field(default_factory=dict)

    @field_validator("knowledge_by_topic", mode="before")
    @classmethod
    def _normalize_topic_keys(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        normalized: Dict[str, Any] = {}
        for key, entry in value.items():
            topic = normalize_topic(str(key))
            if not topic:
                logger.warning("Dropping knowledge entry with an empty topic name")
                continue
            if topic in normalized:
                logger.info("Combining knowledge entries that normalize to %r", topic)
                normalized[topic] = _combine_knowledge(normalized[topic], entry)
            else:
                normalized[topic] = entry
        return normalized

    def topics(self) -> List[str]:
        return list(self.knowledge_by_topic.keys())


class HistoryRecord(BaseModel):
    """One answered question. Unique per (user_id, question) in the remote store."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    topic: str
    question: str
    options: List[str] = Field(default_factory=list)
    correct_index: int = Field(default=0, ge=0)

    @field_validator("topic")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_topic(value)


class QuizQuestion(BaseModel):
    """A question as produced by the quiz content provider."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = "Unknown Question"
    options: List[str] = Field(default_factory=list)
    correct_option_index: int = Field(default=0, ge=0, alias="answer_index")

    @field_validator("question", mode="before")
    @classmethod
    def _default_question(cls, value: Any) -> Any:
        return "Unknown Question" if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def _default_options(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("correct_option_index", mode="before")
    @classmethod
    def _default_index(cls, value: Any) -> Any:
        return 0 if value is None else value

    def to_history_record(self, user_id: str, topic: str) -> HistoryRecord:
        return HistoryRecord(
            user_id=user_id,
            topic=topic,
            question=self.question,
            options=list(self.options),
            correct_index=self.correct_option_index,
        )


__all__ = [
    "HistoryRecord",
    "QuizQuestion",
    "TopicKnowledge",
    "UserProfile",
    "normalize_topic",
]
