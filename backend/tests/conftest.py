from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import httpx
import pytest

from quizsync.cache import LocalProfileCache, MemoryStorage
from quizsync.db.session import build_engine, build_session_factory, create_schema
from quizsync.errors import ProfileNotFoundError
from quizsync.knowledge import HistoryRecord, TopicKnowledge, UserProfile
from quizsync.remote import DatabaseProfileRemote
from quizsync.sync_engine import SyncEngine


class FakeRemote:
    """In-memory stand-in for the authoritative store."""

    def __init__(self) -> None:
        self.profiles: Dict[str, UserProfile] = {}
        self.emails: Dict[str, Optional[str]] = {}
        self.history: List[HistoryRecord] = []
        self.calls: List[str] = []
        self.fail_on: Set[str] = set()
        self.error: Exception = httpx.ConnectError("connection refused")
        self.fetch_gate: Optional[asyncio.Event] = None
        self.yield_after_fetch = False

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise self.error

    async def fetch_profile(self, user_id: str) -> UserProfile:
        self._enter("fetch_profile")
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        profile = self.profiles.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        snapshot = profile.model_copy(deep=True)
        if self.yield_after_fetch:
            await asyncio.sleep(0)
        return snapshot

    async def insert_profile(self, profile: UserProfile, email: Optional[str]) -> None:
        self._enter("insert_profile")
        if any(existing.username == profile.username for existing in self.profiles.values()):
            raise self.error
        self.profiles[profile.id] = profile.model_copy(deep=True)
        self.emails[profile.id] = email

    async def update_knowledge(self, user_id: str, knowledge_by_topic: Dict[str, TopicKnowledge]) -> None:
        self._enter("update_knowledge")
        profile = self.profiles.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        self.profiles[user_id] = profile.model_copy(update={"knowledge_by_topic": dict(knowledge_by_topic)})

    async def append_history(self, records: Sequence[HistoryRecord]) -> None:
        self._enter("append_history")
        seen = {(record.user_id, record.question) for record in self.history}
        for record in records:
            if (record.user_id, record.question) in seen:
                continue
            seen.add((record.user_id, record.question))
            self.history.append(record)

    async def fetch_history(self, user_id: str, topic: str) -> List[HistoryRecord]:
        self._enter("fetch_history")
        return [record for record in self.history if record.user_id == user_id and record.topic == topic.strip()]


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def cache(storage: MemoryStorage) -> LocalProfileCache:
    return LocalProfileCache(storage)


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def engine(cache: LocalProfileCache, remote: FakeRemote) -> SyncEngine:
    return SyncEngine(cache, remote)


@pytest.fixture()
def db_remote(tmp_path: Path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'remote.db'}")
    create_schema(db_engine)
    try:
        yield DatabaseProfileRemote(build_session_factory(db_engine))
    finally:
        db_engine.dispose()
