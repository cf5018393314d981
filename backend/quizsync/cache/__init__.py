"""Local, offline-readable storage for the active profile."""

from .profile_cache import DEFAULT_CACHE_KEY, LocalProfileCache, ProfileCache
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "DEFAULT_CACHE_KEY",
    "JsonFileStorage",
    "KeyValueStorage",
    "LocalProfileCache",
    "MemoryStorage",
    "ProfileCache",
]
