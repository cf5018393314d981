"""Single-slot cache holding the signed-in user's last known profile snapshot."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from ..knowledge import UserProfile
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "local_user_profile"


class ProfileCache(Protocol):
    def load(self) -> Optional[UserProfile]:  # pragma: no cover - protocol definition
        ...

    def save(self, profile: UserProfile) -> None:  # pragma: no cover - protocol definition
        ...

    def clear(self) -> None:  # pragma: no cover - protocol definition
        ...


class LocalProfileCache:
    """Stores one serialized UserProfile under a well-known storage key."""

    def __init__(self, storage: KeyValueStorage, key: str = DEFAULT_CACHE_KEY) -> None:
        if not key:
            raise ValueError("Cache key cannot be empty.")
        self._storage = storage
        self._key = key

    def load(self) -> Optional[UserProfile]:
        try:
            raw = self._storage.get(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read cached profile snapshot")
            return None
        if raw is None:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding unreadable cached profile snapshot")
            return None

    def save(self, profile: UserProfile) -> None:
        self._storage.set(self._key, profile.model_dump_json())

    def clear(self) -> None:
        self._storage.remove(self._key)


__all__ = ["DEFAULT_CACHE_KEY", "LocalProfileCache", "ProfileCache"]
