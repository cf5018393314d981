from __future__ import annotations

import asyncio

import pytest

from quizsync.cache import LocalProfileCache
from quizsync.classifier import ConnectivityOutcome
from quizsync.knowledge import HistoryRecord, QuizQuestion, TopicKnowledge, UserProfile
from quizsync.sync_engine import ProfileSource, ReconciliationOutcome, SyncEngine
from quizsync.telemetry import capture_events


def _profile(user_id: str = "user-1", **knowledge: TopicKnowledge) -> UserProfile:
    return UserProfile(id=user_id, username=f"{user_id}-name", knowledge_by_topic=knowledge)


def _knowledge(total: int, correct: int, quizzes: int) -> TopicKnowledge:
    return TopicKnowledge(total_questions=total, correct_answers=correct, quizzes_taken=quizzes)


def test_cached_profile_is_returned_without_waiting_for_remote(cache, remote, engine) -> None:
    cache.save(_profile(History=_knowledge(5, 3, 1)))
    remote.profiles["user-1"] = _profile(History=_knowledge(10, 7, 2))

    async def scenario():
        remote.fetch_gate = asyncio.Event()
        served = await asyncio.wait_for(engine.get_profile("user-1"), timeout=1)
        still_cached = cache.load()
        remote.fetch_gate.set()
        await engine.wait_for_background()
        return served, still_cached

    served, still_cached = asyncio.run(scenario())

    assert served.knowledge_by_topic["History"] == _knowledge(5, 3, 1)
    assert still_cached.knowledge_by_topic["History"] == _knowledge(5, 3, 1)
    assert cache.load().knowledge_by_topic["History"] == _knowledge(10, 7, 2)


def test_cache_miss_falls_back_to_remote_and_caches(cache, remote, engine) -> None:
    remote.profiles["user-1"] = _profile(Math=_knowledge(4, 2, 1))

    lookup = asyncio.run(engine.lookup_profile("user-1"))

    assert lookup.source is ProfileSource.REMOTE
    assert lookup.profile == remote.profiles["user-1"]
    assert cache.load() == remote.profiles["user-1"]


def test_snapshot_for_another_user_counts_as_a_miss(cache, remote, engine) -> None:
    cache.save(_profile("someone-else"))
    remote.profiles["user-1"] = _profile()

    lookup = asyncio.run(engine.lookup_profile("user-1"))

    assert lookup.source is ProfileSource.REMOTE
    assert cache.load().id == "user-1"


def test_unreachable_remote_on_miss_yields_absent_with_failure(remote, engine) -> None:
    remote.fail_on.add("fetch_profile")

    lookup = asyncio.run(engine.lookup_profile("user-1"))

    assert lookup.profile is None
    assert lookup.source is ProfileSource.ABSENT
    assert lookup.failure is not None
    assert lookup.failure.outcome is ConnectivityOutcome.NO_CONNECTIVITY
    assert asyncio.run(engine.get_profile("user-1")) is None


def test_unknown_user_is_absent_without_failure(engine) -> None:
    lookup = asyncio.run(engine.lookup_profile("ghost"))

    assert lookup.profile is None
    assert lookup.failure is None


def test_completions_accumulate_locally_and_remotely(cache, remote, engine) -> None:
    remote.profiles["user-1"] = _profile()

    async def scenario():
        await engine.get_profile("user-1")
        await engine.record_quiz_completion("user-1", "History", 5, 3)
        return await engine.record_quiz_completion("user-1", "History", 5, 4)

    result = asyncio.run(scenario())

    assert result.local_applied is True
    assert result.outcome is ReconciliationOutcome.RECONCILED
    assert result.knowledge == _knowledge(10, 7, 2)
    assert result.remote_knowledge == _knowledge(10, 7, 2)
    assert cache.load().knowledge_by_topic["History"] == _knowledge(10, 7, 2)
    assert remote.profiles["user-1"].knowledge_by_topic["History"] == _knowledge(10, 7, 2)
    assert cache.load().knowledge_by_topic["History"].accuracy == 70.0


def test_topic_is_trimmed_before_aggregation(cache, remote, engine) -> None:
    cache.save(_profile(Math=_knowledge(2, 1, 1)))
    remote.profiles["user-1"] = _profile(Math=_knowledge(2, 1, 1))

    asyncio.run(engine.record_quiz_completion("user-1", "  Math ", 3, 3))

    assert cache.load().topics() == ["Math"]
    assert cache.load().knowledge_by_topic["Math"] == _knowledge(5, 4, 2)
    assert set(remote.profiles["user-1"].knowledge_by_topic) == {"Math"}


def test_remote_failure_keeps_local_progress_and_does_not_raise(cache, remote, engine) -> None:
    cache.save(_profile())
    remote.profiles["user-1"] = _profile()
    remote.fail_on.update({"fetch_profile", "append_history"})
    records = [HistoryRecord(user_id="user-1", topic="Math", question="1 + 1?", options=["2"], correct_index=0)]

    result = asyncio.run(engine.record_quiz_completion("user-1", "Math", 1, 1, records))

    assert result.local_applied is True
    assert result.outcome is ReconciliationOutcome.FAILED
    assert [failure.outcome for failure in result.failures] == [
        ConnectivityOutcome.NO_CONNECTIVITY,
        ConnectivityOutcome.NO_CONNECTIVITY,
    ]
    assert cache.load().knowledge_by_topic["Math"] == _knowledge(1, 1, 1)
    assert remote.profiles["user-1"].knowledge_by_topic == {}


def test_history_is_attempted_even_when_knowledge_sync_fails(cache, remote, engine) -> None:
    remote.profiles["user-1"] = _profile()
    remote.fail_on.add("update_knowledge")
    records = [HistoryRecord(user_id="user-1", topic="Math", question="1 + 1?", options=["2"], correct_index=0)]

    result = asyncio.run(engine.record_quiz_completion("user-1", "Math", 1, 1, records))

    assert result.outcome is ReconciliationOutcome.KNOWLEDGE_FAILED
    assert remote.history == records


def test_history_failure_is_reported_separately(remote, engine) -> None:
    remote.profiles["user-1"] = _profile()
    remote.fail_on.add("append_history")
    records = [HistoryRecord(user_id="user-1", topic="Math", question="1 + 1?", options=["2"], correct_index=0)]

    result = asyncio.run(engine.record_quiz_completion("user-1", "Math", 1, 1, records))

    assert result.outcome is ReconciliationOutcome.HISTORY_FAILED
    assert result.remote_knowledge == _knowledge(1, 1, 1)


def test_local_phase_skips_other_users_snapshot(cache, remote, engine) -> None:
    other = _profile("user-2", Math=_knowledge(3, 3, 1))
    cache.save(other)
    remote.profiles["user-1"] = _profile()

    result = asyncio.run(engine.record_quiz_completion("user-1", "Math", 2, 1))

    assert result.local_applied is False
    assert result.knowledge is None
    assert cache.load() == other
    assert remote.profiles["user-1"].knowledge_by_topic["Math"] == _knowledge(2, 1, 1)


def test_remote_merge_uses_remote_counters_not_local(cache, remote, engine) -> None:
    cache.save(_profile(Math=_knowledge(5, 3, 1)))
    remote.profiles["user-1"] = _profile(Math=_knowledge(20, 10, 4))

    result = asyncio.run(engine.record_quiz_completion("user-1", "Math", 2, 1))

    assert result.knowledge == _knowledge(7, 4, 2)
    assert result.remote_knowledge == _knowledge(22, 11, 5)


@pytest.mark.parametrize(("answered", "correct", "topic"), [(-1, 0, "Math"), (2, 3, "Math"), (2, -1, "Math"), (1, 1, "  ")])
def test_invalid_completion_is_rejected_before_any_write(cache, remote, engine, answered, correct, topic) -> None:
    cache.save(_profile())

    with pytest.raises(ValueError):
        asyncio.run(engine.record_quiz_completion("user-1", topic, answered, correct))

    assert remote.calls == []
    assert cache.load() == _profile()


def test_save_quiz_results_records_history_once(remote, engine) -> None:
    remote.profiles["user-1"] = _profile()
    questions = [
        QuizQuestion(question="Capital of France?", options=["Paris", "Rome"], answer_index=0),
        QuizQuestion(question="2 + 3?", options=["4", "5"], answer_index=1),
    ]

    async def scenario():
        await engine.save_quiz_results("user-1", " Mixed ", questions, 1)
        return await engine.save_quiz_results("user-1", " Mixed ", questions, 2)

    result = asyncio.run(scenario())

    assert result.remote_knowledge == _knowledge(4, 3, 2)
    assert [record.question for record in remote.history] == ["Capital of France?", "2 + 3?"]
    assert {record.topic for record in remote.history} == {"Mixed"}
    history = asyncio.run(engine.get_history_for_topic("user-1", "Mixed  "))
    assert history[1].correct_index == 1


def test_refresh_does_not_overwrite_a_different_users_snapshot(cache, remote, engine) -> None:
    cache.save(_profile("user-1"))
    remote.profiles["user-1"] = _profile("user-1", Math=_knowledge(9, 9, 3))

    async def scenario():
        remote.fetch_gate = asyncio.Event()
        await engine.get_profile("user-1")
        engine.adopt_profile(_profile("user-2"))
        remote.fetch_gate.set()
        await engine.wait_for_background()

    asyncio.run(scenario())

    assert cache.load().id == "user-2"


def test_refresh_failure_leaves_snapshot_untouched(cache, remote, engine) -> None:
    cached = _profile(Math=_knowledge(1, 0, 1))
    cache.save(cached)
    remote.fail_on.add("fetch_profile")

    async def scenario():
        await engine.get_profile("user-1")
        await engine.wait_for_background()

    with capture_events() as events:
        asyncio.run(scenario())

    assert cache.load() == cached
    assert [event.name for event in events] == ["profile_cache_hit", "profile_refresh_failed"]
    assert events[1].payload["outcome"] == "no_connectivity"


def test_adopt_profile_replaces_previous_user(cache, engine) -> None:
    cache.save(_profile("user-1", Math=_knowledge(1, 1, 1)))

    engine.adopt_profile(_profile("user-2"))

    assert cache.load() == _profile("user-2")
    engine.forget_local_profile()
    assert cache.load() is None


def test_serialized_completions_do_not_lose_updates(storage, remote) -> None:
    remote.profiles["user-1"] = _profile()
    remote.yield_after_fetch = True
    engine = SyncEngine(LocalProfileCache(storage), remote, serialize_completions=True)

    async def scenario():
        await asyncio.gather(
            engine.record_quiz_completion("user-1", "Math", 3, 2),
            engine.record_quiz_completion("user-1", "Math", 4, 4),
        )

    asyncio.run(scenario())

    assert remote.profiles["user-1"].knowledge_by_topic["Math"] == _knowledge(7, 6, 2)


def test_unserialized_concurrent_completions_can_lose_an_update(remote, engine) -> None:
    remote.profiles["user-1"] = _profile()
    remote.yield_after_fetch = True

    async def scenario():
        await asyncio.gather(
            engine.record_quiz_completion("user-1", "Math", 3, 2),
            engine.record_quiz_completion("user-1", "Math", 4, 4),
        )

    asyncio.run(scenario())

    assert remote.profiles["user-1"].knowledge_by_topic["Math"].quizzes_taken == 1


def test_completion_emits_telemetry(remote, engine) -> None:
    remote.profiles["user-1"] = _profile()

    with capture_events() as events:
        asyncio.run(engine.record_quiz_completion("user-1", " Math", 2, 1))

    completion = [event for event in events if event.name == "quiz_completion_recorded"]
    assert len(completion) == 1
    assert completion[0].payload["topic"] == "Math"
    assert completion[0].payload["outcome"] == "reconciled"
    assert completion[0].payload["local_applied"] is False


def test_history_fetch_failure_returns_empty_list(remote, engine) -> None:
    remote.fail_on.add("fetch_history")

    assert asyncio.run(engine.get_history_for_topic("user-1", "Math")) == []


def test_list_topics(cache, remote, engine) -> None:
    assert asyncio.run(engine.list_topics("user-1")) == []

    cache.save(_profile(Math=_knowledge(1, 1, 1), History=_knowledge(2, 0, 1)))
    remote.profiles["user-1"] = cache.load()

    async def scenario():
        topics = await engine.list_topics("user-1")
        await engine.wait_for_background()
        return topics

    assert asyncio.run(scenario()) == ["Math", "History"]
