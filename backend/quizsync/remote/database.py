"""SQLAlchemy-backed remote store."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from ..db.session import session_scope
from ..errors import ProfileNotFoundError
from ..knowledge import HistoryRecord, TopicKnowledge, UserProfile
from ..repositories.profiles import UserProfileRepository, user_profiles

logger = logging.getLogger(__name__)


class DatabaseProfileRemote:
    """Runs blocking repository calls in a worker thread per operation."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        repository: Optional[UserProfileRepository] = None,
    ) -> None:
        self._session_factory = session_factory
        self._repo = repository or user_profiles

    async def fetch_profile(self, user_id: str) -> UserProfile:
        return await asyncio.to_thread(self._fetch_profile, user_id)

    async def insert_profile(self, profile: UserProfile, email: Optional[str]) -> None:
        await asyncio.to_thread(self._insert_profile, profile, email)

    async def update_knowledge(self, user_id: str, knowledge_by_topic: Mapping[str, TopicKnowledge]) -> None:
        await asyncio.to_thread(self._update_knowledge, user_id, dict(knowledge_by_topic))

    async def append_history(self, records: Sequence[HistoryRecord]) -> None:
        await asyncio.to_thread(self._append_history, list(records))

    async def fetch_history(self, user_id: str, topic: str) -> List[HistoryRecord]:
        return await asyncio.to_thread(self._fetch_history, user_id, topic)

    def _fetch_profile(self, user_id: str) -> UserProfile:
        with session_scope(self._session_factory, commit=False) as session:
            profile = self._repo.get(session, user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile

    def _insert_profile(self, profile: UserProfile, email: Optional[str]) -> None:
        with session_scope(self._session_factory) as session:
            self._repo.insert(session, profile, email)

    def _update_knowledge(self, user_id: str, knowledge_by_topic: Mapping[str, TopicKnowledge]) -> None:
        with session_scope(self._session_factory) as session:
            self._repo.replace_knowledge(session, user_id, knowledge_by_topic)

    def _append_history(self, records: List[HistoryRecord]) -> None:
        with session_scope(self._session_factory) as session:
            inserted = self._repo.append_history(session, records)
        logger.debug("Stored %s of %s history records", inserted, len(records))

    def _fetch_history(self, user_id: str, topic: str) -> List[HistoryRecord]:
        with session_scope(self._session_factory, commit=False) as session:
            return self._repo.list_history(session, user_id, topic)


__all__ = ["DatabaseProfileRemote"]
