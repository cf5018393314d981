"""Offline-first quiz progress synchronization.

A local snapshot of the signed-in user's profile answers reads instantly and keeps
working without a network, while every completed quiz is merged additively into
both the snapshot and the authoritative remote store.
"""

from .accounts import AccountService, AuthProvider, AuthSession
from .aggregator import apply_completion, merge
from .classifier import ClassifiedError, ConnectivityOutcome, classify
from .content import QuizContentProvider, parse_quiz_payload
from .knowledge import HistoryRecord, QuizQuestion, TopicKnowledge, UserProfile, normalize_topic
from .sync_engine import (
    CompletionResult,
    ProfileLookup,
    ProfileSource,
    ReconciliationOutcome,
    SyncEngine,
)

__all__ = [
    "AccountService",
    "AuthProvider",
    "AuthSession",
    "ClassifiedError",
    "CompletionResult",
    "ConnectivityOutcome",
    "HistoryRecord",
    "ProfileLookup",
    "ProfileSource",
    "QuizContentProvider",
    "QuizQuestion",
    "ReconciliationOutcome",
    "SyncEngine",
    "TopicKnowledge",
    "UserProfile",
    "apply_completion",
    "classify",
    "merge",
    "normalize_topic",
    "parse_quiz_payload",
]
