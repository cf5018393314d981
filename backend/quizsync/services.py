"""Builds the sync engine and its collaborators from settings."""

from __future__ import annotations

import logging
from typing import Optional

from .cache import JsonFileStorage, LocalProfileCache
from .config import Settings, get_settings
from .db.session import build_engine, build_session_factory, create_schema
from .remote import DatabaseProfileRemote, ProfileRemote, RestProfileRemote, build_rest_client
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)

_sync_engine: Optional[SyncEngine] = None


def build_remote(settings: Settings) -> ProfileRemote:
    if settings.remote_backend == "rest":
        if not settings.rest_url:
            raise RuntimeError("QUIZSYNC_REST_URL must be configured for the rest remote backend.")
        client = build_rest_client(
            settings.rest_url,
            settings.rest_api_key,
            timeout_seconds=settings.rest_timeout_seconds,
        )
        return RestProfileRemote(
            client,
            knowledge_column=settings.rest_knowledge_column,
            topic_column=settings.rest_topic_column,
        )

    if not settings.database_url:
        raise RuntimeError("QUIZSYNC_DATABASE_URL must be configured before using the database.")
    engine = build_engine(settings.database_url, settings=settings)
    create_schema(engine)
    return DatabaseProfileRemote(build_session_factory(engine))


def build_sync_engine(settings: Optional[Settings] = None) -> SyncEngine:
    settings = settings or get_settings()
    cache = LocalProfileCache(JsonFileStorage(settings.cache_path), key=settings.cache_key)
    remote = build_remote(settings)
    logger.info(
        "Sync engine using %s remote, cache at %s",
        settings.remote_backend,
        settings.cache_path,
    )
    return SyncEngine(cache, remote, serialize_completions=settings.serialize_completions)


def get_sync_engine() -> SyncEngine:
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = build_sync_engine()
    return _sync_engine


def reset_sync_engine() -> None:
    global _sync_engine
    _sync_engine = None


__all__ = ["build_remote", "build_sync_engine", "get_sync_engine", "reset_sync_engine"]
