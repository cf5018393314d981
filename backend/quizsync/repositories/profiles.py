"""Database-backed repository for user profiles and quiz history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..db.models import QuizHistoryModel, UserProfileModel
from ..errors import ProfileNotFoundError
from ..knowledge import HistoryRecord, TopicKnowledge, UserProfile, normalize_topic

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UserProfileRepository:
    """Session-scoped persistence for the ``user_profiles`` and ``quiz_history`` tables."""

    def get(self, session: Session, user_id: str) -> UserProfile | None:
        model = session.get(UserProfileModel, user_id)
        if model is None:
            return None
        return self._to_domain(model)

    def insert(self, session: Session, profile: UserProfile, email: str | None) -> UserProfile:
        model = UserProfileModel(
            id=profile.id,
            username=profile.username,
            email=email,
            topic_knowledge=self._dump_knowledge(profile.knowledge_by_topic),
        )
        session.add(model)
        session.flush()
        return self._to_domain(model)

    def replace_knowledge(
        self,
        session: Session,
        user_id: str,
        knowledge_by_topic: Mapping[str, TopicKnowledge],
    ) -> UserProfile:
        model = session.get(UserProfileModel, user_id)
        if model is None:
            raise ProfileNotFoundError(user_id)
        model.topic_knowledge = self._dump_knowledge(knowledge_by_topic)
        model.updated_at = datetime.now(timezone.utc)
        session.flush()
        return self._to_domain(model)

    def append_history(self, session: Session, records: Iterable[HistoryRecord]) -> int:
        rows = self._history_rows(records)
        if not rows:
            return 0

        insert_fn = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert_fn is not None:
            stmt = insert_fn(QuizHistoryModel).values(rows).on_conflict_do_nothing(
                index_elements=["user_id", "question"]
            )
            result = session.execute(stmt)
            return max(result.rowcount or 0, 0)

        inserted = 0
        for row in rows:
            exists = session.execute(
                select(QuizHistoryModel.id).where(
                    QuizHistoryModel.user_id == row["user_id"],
                    QuizHistoryModel.question == row["question"],
                )
            ).first()
            if exists is None:
                session.add(QuizHistoryModel(**row))
                inserted += 1
        session.flush()
        return inserted

    def list_history(self, session: Session, user_id: str, topic: str) -> List[HistoryRecord]:
        stmt = (
            select(QuizHistoryModel)
            .where(
                QuizHistoryModel.user_id == user_id,
                QuizHistoryModel.topic == normalize_topic(topic),
            )
            .order_by(QuizHistoryModel.id.asc())
        )
        return [
            HistoryRecord(
                user_id=row.user_id,
                topic=row.topic,
                question=row.question,
                options=list(row.options or []),
                correct_index=row.correct_index,
            )
            for row in session.execute(stmt).scalars().all()
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dump_knowledge(knowledge_by_topic: Mapping[str, TopicKnowledge]) -> Dict[str, Dict[str, int]]:
        return {
            normalize_topic(topic): knowledge.model_dump(mode="json")
            for topic, knowledge in knowledge_by_topic.items()
        }

    @staticmethod
    def _history_rows(records: Iterable[HistoryRecord]) -> List[Dict[str, Any]]:
        # A batch may repeat a question; the first occurrence wins like a remote upsert would.
        seen: set[tuple[str, str]] = set()
        rows: List[Dict[str, Any]] = []
        created_at = datetime.now(timezone.utc)
        for record in records:
            key = (record.user_id, record.question)
            if key in seen:
                continue
            seen.add(key)
            rows.append(
                {
                    "user_id": record.user_id,
                    "topic": record.topic,
                    "question": record.question,
                    "options": list(record.options),
                    "correct_index": record.correct_index,
                    "created_at": created_at,
                }
            )
        return rows

    def _to_domain(self, model: UserProfileModel) -> UserProfile:
        return UserProfile.model_validate(
            {
                "id": model.id,
                "username": model.username,
                "knowledge_by_topic": model.topic_knowledge or {},
            }
        )


user_profiles = UserProfileRepository()

__all__ = ["UserProfileRepository", "user_profiles"]
