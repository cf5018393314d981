"""Cache-first reads and best-effort write-through of quiz progress.

The engine keeps two independent copies of a user's progress: the local snapshot
(fast, offline, one user at a time) and the remote profile (authoritative).

* Reads return the local snapshot when it belongs to the requested user and refresh
  it from the remote in the background. On a cache miss the caller waits for the
  remote; if that also fails the profile is absent.
* A completed quiz is merged into the local snapshot first. The same delta is then
  merged into a *fresh* remote read and written back, followed by the history
  append. Remote failures are logged and reported in the returned
  :class:`CompletionResult`, never raised.

The remote write replaces the whole knowledge map, so two completions for the same
user running truly concurrently can lose one update. Enable
``serialize_completions`` when the host can interleave them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .aggregator import apply_completion
from .cache import ProfileCache
from .classifier import ClassifiedError, classify
from .errors import ProfileNotFoundError
from .knowledge import HistoryRecord, QuizQuestion, TopicKnowledge, UserProfile, normalize_topic
from .remote import ProfileRemote
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class ProfileSource(str, Enum):
    CACHE = "cache"
    REMOTE = "remote"
    ABSENT = "absent"


class ReconciliationOutcome(str, Enum):
    RECONCILED = "reconciled"
    KNOWLEDGE_FAILED = "knowledge_failed"
    HISTORY_FAILED = "history_failed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProfileLookup:
    profile: Optional[UserProfile]
    source: ProfileSource
    failure: Optional[ClassifiedError] = None


@dataclass(frozen=True)
class CompletionResult:
    local_applied: bool
    outcome: ReconciliationOutcome
    knowledge: Optional[TopicKnowledge] = None
    remote_knowledge: Optional[TopicKnowledge] = None
    failures: Tuple[ClassifiedError, ...] = field(default_factory=tuple)


class SyncEngine:
    def __init__(
        self,
        cache: ProfileCache,
        remote: ProfileRemote,
        *,
        serialize_completions: bool = False,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._serialize_completions = serialize_completions
        self._background: Set[asyncio.Task] = set()
        self._user_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        lookup = await self.lookup_profile(user_id)
        return lookup.profile

    async def lookup_profile(self, user_id: str) -> ProfileLookup:
        cached = self._load_cached(user_id)
        if cached is not None:
            emit_event("profile_cache_hit", user_id=user_id)
            self._schedule_refresh(user_id)
            return ProfileLookup(profile=cached, source=ProfileSource.CACHE)

        emit_event("profile_cache_miss", user_id=user_id)
        return await self._fetch_and_adopt(user_id)

    async def refresh_profile(self, user_id: str) -> ProfileLookup:
        """Re-fetch the remote profile and overwrite the cached snapshot.

        The snapshot is only replaced while the cache slot is empty or still holds
        ``user_id``; a refresh never clobbers a different user's snapshot.
        """
        try:
            profile = await self._remote.fetch_profile(user_id)
        except Exception as exc:  # noqa: BLE001
            failure = None if isinstance(exc, ProfileNotFoundError) else classify(exc)
            logger.warning("Background refresh for %s failed: %s", user_id, exc)
            emit_event(
                "profile_refresh_failed",
                user_id=user_id,
                outcome=failure.outcome if failure else None,
            )
            return ProfileLookup(profile=None, source=ProfileSource.ABSENT, failure=failure)

        current = self._cache.load()
        if current is None or current.id == user_id:
            self._cache.save(profile)
        else:
            logger.info("Skipping refresh for %s; cache now holds %s", user_id, current.id)
        return ProfileLookup(profile=profile, source=ProfileSource.REMOTE)

    async def list_topics(self, user_id: str) -> List[str]:
        profile = await self.get_profile(user_id)
        if profile is None:
            return []
        return profile.topics()

    async def get_history_for_topic(self, user_id: str, topic: str) -> List[HistoryRecord]:
        try:
            return await self._remote.fetch_history(user_id, normalize_topic(topic))
        except Exception as exc:  # noqa: BLE001
            logger.warning("History fetch for %s/%s failed: %s", user_id, topic, exc)
            return []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_quiz_completion(
        self,
        user_id: str,
        topic: str,
        questions_answered: int,
        correct_count: int,
        history_records: Sequence[HistoryRecord] = (),
    ) -> CompletionResult:
        normalized = normalize_topic(topic)
        if not normalized:
            raise ValueError("Topic cannot be empty.")
        if questions_answered < 0 or not 0 <= correct_count <= questions_answered:
            raise ValueError("correct_count must be between 0 and questions_answered.")

        local_knowledge = self._apply_locally(user_id, normalized, questions_answered, correct_count)

        if self._serialize_completions:
            async with self._lock_for(user_id):
                remote_knowledge, outcome, failures = await self._apply_remotely(
                    user_id, normalized, questions_answered, correct_count, history_records
                )
        else:
            remote_knowledge, outcome, failures = await self._apply_remotely(
                user_id, normalized, questions_answered, correct_count, history_records
            )

        emit_event(
            "quiz_completion_recorded",
            user_id=user_id,
            topic=normalized,
            questions=questions_answered,
            correct=correct_count,
            local_applied=local_knowledge is not None,
            outcome=outcome,
        )
        return CompletionResult(
            local_applied=local_knowledge is not None,
            outcome=outcome,
            knowledge=local_knowledge,
            remote_knowledge=remote_knowledge,
            failures=tuple(failures),
        )

    async def save_quiz_results(
        self,
        user_id: str,
        topic: str,
        questions: Sequence[QuizQuestion],
        score: int,
    ) -> CompletionResult:
        """Record a finished quiz from the generated questions and the number answered correctly."""
        records = [question.to_history_record(user_id, topic) for question in questions]
        return await self.record_quiz_completion(user_id, topic, len(questions), score, records)

    def adopt_profile(self, profile: UserProfile) -> None:
        """Make ``profile`` the cached snapshot, clearing another user's snapshot first."""
        current = self._cache.load()
        if current is not None and current.id != profile.id:
            self._cache.clear()
        self._cache.save(profile)

    def forget_local_profile(self) -> None:
        self._cache.clear()

    async def wait_for_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_cached(self, user_id: str) -> Optional[UserProfile]:
        cached = self._cache.load()
        if cached is None or cached.id != user_id:
            return None
        return cached

    async def _fetch_and_adopt(self, user_id: str) -> ProfileLookup:
        try:
            profile = await self._remote.fetch_profile(user_id)
        except ProfileNotFoundError:
            logger.info("No remote profile for %s", user_id)
            return ProfileLookup(profile=None, source=ProfileSource.ABSENT)
        except Exception as exc:  # noqa: BLE001
            failure = classify(exc)
            logger.warning("Profile fetch for %s failed (%s): %s", user_id, failure.outcome.value, exc)
            return ProfileLookup(profile=None, source=ProfileSource.ABSENT, failure=failure)
        self.adopt_profile(profile)
        return ProfileLookup(profile=profile, source=ProfileSource.REMOTE)

    def _schedule_refresh(self, user_id: str) -> None:
        task = asyncio.create_task(self.refresh_profile(user_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    def _apply_locally(
        self,
        user_id: str,
        topic: str,
        questions_answered: int,
        correct_count: int,
    ) -> Optional[TopicKnowledge]:
        cached = self._load_cached(user_id)
        if cached is None:
            # No snapshot for this user; nothing to update locally.
            return None
        knowledge = apply_completion(cached.knowledge_by_topic, topic, questions_answered, correct_count)
        self._cache.save(cached.model_copy(update={"knowledge_by_topic": knowledge}))
        return knowledge[topic]

    async def _apply_remotely(
        self,
        user_id: str,
        topic: str,
        questions_answered: int,
        correct_count: int,
        history_records: Sequence[HistoryRecord],
    ) -> Tuple[Optional[TopicKnowledge], ReconciliationOutcome, List[ClassifiedError]]:
        failures: List[ClassifiedError] = []
        remote_knowledge: Optional[TopicKnowledge] = None
        knowledge_ok = True
        history_ok = True

        try:
            remote_profile = await self._remote.fetch_profile(user_id)
            merged = apply_completion(remote_profile.knowledge_by_topic, topic, questions_answered, correct_count)
            await self._remote.update_knowledge(user_id, merged)
            remote_knowledge = merged[topic]
        except Exception as exc:  # noqa: BLE001
            knowledge_ok = False
            failures.append(classify(exc))
            logger.warning("Remote knowledge sync for %s/%s failed (ignored): %s", user_id, topic, exc)

        if history_records:
            try:
                await self._remote.append_history(list(history_records))
            except Exception as exc:  # noqa: BLE001
                history_ok = False
                failures.append(classify(exc))
                logger.warning("Quiz history append for %s/%s failed (ignored): %s", user_id, topic, exc)

        if knowledge_ok and history_ok:
            outcome = ReconciliationOutcome.RECONCILED
        elif knowledge_ok:
            outcome = ReconciliationOutcome.HISTORY_FAILED
        elif history_ok:
            outcome = ReconciliationOutcome.KNOWLEDGE_FAILED
        else:
            outcome = ReconciliationOutcome.FAILED
        return remote_knowledge, outcome, failures


__all__ = [
    "CompletionResult",
    "ProfileLookup",
    "ProfileSource",
    "ReconciliationOutcome",
    "SyncEngine",
]
