"""Profile and progress endpoints backed by the sync engine."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator

from .classifier import ClassifiedError
from .knowledge import HistoryRecord, QuizQuestion, TopicKnowledge, UserProfile
from .services import get_sync_engine
from .sync_engine import CompletionResult, ProfileLookup, SyncEngine

router = APIRouter(prefix="/api/profiles", tags=["profiles"])
logger = logging.getLogger(__name__)


class FailurePayload(BaseModel):
    outcome: str
    detail: str
    message: str

    @classmethod
    def from_domain(cls, failure: ClassifiedError) -> "FailurePayload":
        return cls(outcome=failure.outcome.value, detail=failure.detail, message=failure.user_message)


class TopicKnowledgePayload(BaseModel):
    total_questions: int
    correct_answers: int
    quizzes_taken: int
    accuracy: float

    @classmethod
    def from_domain(cls, knowledge: TopicKnowledge) -> "TopicKnowledgePayload":
        return cls(
            total_questions=knowledge.total_questions,
            correct_answers=knowledge.correct_answers,
            quizzes_taken=knowledge.quizzes_taken,
            accuracy=round(knowledge.accuracy, 2),
        )


class UserProfilePayload(BaseModel):
    id: str
    username: str
    knowledge_by_topic: Dict[str, TopicKnowledgePayload]

    @classmethod
    def from_domain(cls, profile: UserProfile) -> "UserProfilePayload":
        return cls(
            id=profile.id,
            username=profile.username,
            knowledge_by_topic={
                topic: TopicKnowledgePayload.from_domain(knowledge)
                for topic, knowledge in profile.knowledge_by_topic.items()
            },
        )


class ProfileLookupPayload(BaseModel):
    profile: Optional[UserProfilePayload] = None
    source: str
    failure: Optional[FailurePayload] = None


class TopicsPayload(BaseModel):
    topics: List[str] = Field(default_factory=list)


class QuizCompletionRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=256)
    questions_answered: int = Field(..., ge=0)
    correct_count: int = Field(..., ge=0)
    questions: List[QuizQuestion] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_counts(self) -> "QuizCompletionRequest":
        if not self.topic.strip():
            raise ValueError("topic cannot be blank")
        if self.correct_count > self.questions_answered:
            raise ValueError("correct_count cannot exceed questions_answered")
        return self


class QuizCompletionPayload(BaseModel):
    local_applied: bool
    outcome: str
    knowledge: Optional[TopicKnowledgePayload] = None
    remote_knowledge: Optional[TopicKnowledgePayload] = None
    failures: List[FailurePayload] = Field(default_factory=list)


def _lookup_payload(lookup: ProfileLookup) -> ProfileLookupPayload:
    return ProfileLookupPayload(
        profile=UserProfilePayload.from_domain(lookup.profile) if lookup.profile else None,
        source=lookup.source.value,
        failure=FailurePayload.from_domain(lookup.failure) if lookup.failure else None,
    )


def _completion_payload(result: CompletionResult) -> QuizCompletionPayload:
    return QuizCompletionPayload(
        local_applied=result.local_applied,
        outcome=result.outcome.value,
        knowledge=TopicKnowledgePayload.from_domain(result.knowledge) if result.knowledge else None,
        remote_knowledge=(
            TopicKnowledgePayload.from_domain(result.remote_knowledge) if result.remote_knowledge else None
        ),
        failures=[FailurePayload.from_domain(failure) for failure in result.failures],
    )


@router.get("/{user_id}", response_model=ProfileLookupPayload)
async def get_profile(user_id: str, engine: SyncEngine = Depends(get_sync_engine)) -> ProfileLookupPayload:
    lookup = await engine.lookup_profile(user_id)
    return _lookup_payload(lookup)


@router.get("/{user_id}/topics", response_model=TopicsPayload)
async def list_topics(user_id: str, engine: SyncEngine = Depends(get_sync_engine)) -> TopicsPayload:
    return TopicsPayload(topics=await engine.list_topics(user_id))


@router.get("/{user_id}/history", response_model=List[HistoryRecord])
async def get_history(
    user_id: str,
    topic: str = Query(..., min_length=1),
    engine: SyncEngine = Depends(get_sync_engine),
) -> List[HistoryRecord]:
    return await engine.get_history_for_topic(user_id, topic)


@router.post(
    "/{user_id}/completions",
    response_model=QuizCompletionPayload,
    status_code=status.HTTP_201_CREATED,
)
async def record_completion(
    user_id: str,
    request: QuizCompletionRequest,
    engine: SyncEngine = Depends(get_sync_engine),
) -> QuizCompletionPayload:
    records = [question.to_history_record(user_id, request.topic) for question in request.questions]
    try:
        result = await engine.record_quiz_completion(
            user_id,
            request.topic,
            request.questions_answered,
            request.correct_count,
            records,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    logger.debug("Recorded completion for %s/%s: %s", user_id, request.topic, result.outcome.value)
    return _completion_payload(result)


__all__ = ["router"]
