"""Contract every authoritative profile store implements."""

from __future__ import annotations

from typing import List, Mapping, Optional, Protocol, Sequence

from ..knowledge import HistoryRecord, TopicKnowledge, UserProfile


class ProfileRemote(Protocol):
    """Async client over the ``user_profiles`` and ``quiz_history`` tables.

    Failures propagate as the raw transport or backend error; callers classify them
    with :func:`quizsync.classifier.classify`.
    """

    async def fetch_profile(self, user_id: str) -> UserProfile:  # pragma: no cover - protocol definition
        """Return the stored profile or raise ``ProfileNotFoundError``."""
        ...

    async def insert_profile(
        self, profile: UserProfile, email: Optional[str]
    ) -> None:  # pragma: no cover - protocol definition
        """Create the profile row; a taken username fails with the backend's conflict error."""
        ...

    async def update_knowledge(
        self, user_id: str, knowledge_by_topic: Mapping[str, TopicKnowledge]
    ) -> None:  # pragma: no cover - protocol definition
        """Replace the stored knowledge map wholesale."""
        ...

    async def append_history(self, records: Sequence[HistoryRecord]) -> None:  # pragma: no cover - protocol definition
        """Insert records, silently skipping (user_id, question) pairs already stored."""
        ...

    async def fetch_history(self, user_id: str, topic: str) -> List[HistoryRecord]:  # pragma: no cover - protocol definition
        ...


__all__ = ["ProfileRemote"]
