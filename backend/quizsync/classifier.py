"""Maps remote-store and auth failures onto the outcomes the UI branches on."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import httpx
from sqlalchemy.exc import DBAPIError, IntegrityError

from .errors import AuthProviderError, RemoteStoreError

NO_INTERNET_ERROR = "NO_INTERNET"
USERNAME_TAKEN_MESSAGE = "Username already taken."
UNIQUE_VIOLATION_CODE = "23505"

_CONNECTIVITY_HINTS = ("socket", "network")
_TRANSPORT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    socket.gaierror,
    ConnectionError,
)


class ConnectivityOutcome(str, Enum):
    NO_CONNECTIVITY = "no_connectivity"
    AUTH_REJECTED = "auth_rejected"
    CREDENTIAL_CONFLICT = "credential_conflict"
    DATA_ERROR = "data_error"


@dataclass(frozen=True)
class ClassifiedError:
    outcome: ConnectivityOutcome
    detail: str = ""

    @property
    def user_message(self) -> str:
        if self.outcome is ConnectivityOutcome.NO_CONNECTIVITY:
            return NO_INTERNET_ERROR
        if self.outcome is ConnectivityOutcome.AUTH_REJECTED:
            return self.detail
        if self.outcome is ConnectivityOutcome.CREDENTIAL_CONFLICT:
            return USERNAME_TAKEN_MESSAGE
        return f"Database error: {self.detail}"


def classify(error: BaseException) -> ClassifiedError:
    """Classify ``error``; rules are checked in priority order."""
    if _is_transport_failure(error):
        return ClassifiedError(ConnectivityOutcome.NO_CONNECTIVITY, str(error))
    if isinstance(error, AuthProviderError):
        lowered = error.message.lower()
        if any(hint in lowered for hint in _CONNECTIVITY_HINTS):
            return ClassifiedError(ConnectivityOutcome.NO_CONNECTIVITY, error.message)
        return ClassifiedError(ConnectivityOutcome.AUTH_REJECTED, error.message)
    if _is_username_conflict(error):
        return ClassifiedError(ConnectivityOutcome.CREDENTIAL_CONFLICT, _describe(error))
    return ClassifiedError(ConnectivityOutcome.DATA_ERROR, _describe(error))


def _error_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        orig = getattr(current, "orig", None)
        if isinstance(orig, BaseException) and id(orig) not in seen:
            yield orig
            seen.add(id(orig))
        current = current.__cause__


def _is_transport_failure(error: BaseException) -> bool:
    for candidate in _error_chain(error):
        if isinstance(candidate, _TRANSPORT_ERRORS):
            return True
        if isinstance(candidate, DBAPIError) and candidate.connection_invalidated:
            return True
        if "socketexception" in str(candidate).lower():
            return True
    return False


def _is_username_conflict(error: BaseException) -> bool:
    if isinstance(error, IntegrityError):
        return "username" in str(error.orig).lower()
    if isinstance(error, RemoteStoreError) and error.code == UNIQUE_VIOLATION_CODE:
        text = " ".join(part for part in (error.message, error.details) if part).lower()
        return "username" in text or "user_profiles" in text
    return False


def _describe(error: BaseException) -> str:
    if isinstance(error, RemoteStoreError):
        return error.message
    if isinstance(error, DBAPIError):
        return str(error.orig)
    return str(error) or error.__class__.__name__


__all__ = [
    "ClassifiedError",
    "ConnectivityOutcome",
    "NO_INTERNET_ERROR",
    "USERNAME_TAKEN_MESSAGE",
    "classify",
]
