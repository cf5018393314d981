"""Exceptions raised by the remote store, auth provider and content collaborators."""

from __future__ import annotations

from typing import Optional


class ProfileNotFoundError(LookupError):
    """Raised when the remote store holds no profile row for a user id."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User profile '{user_id}' does not exist.")
        self.user_id = user_id


class RemoteStoreError(Exception):
    """Non-success response from the hosted REST backend."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class AuthProviderError(Exception):
    """Error reported by the authentication provider."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QuizContentError(Exception):
    """Raised when generated quiz content cannot be decoded."""


__all__ = [
    "AuthProviderError",
    "ProfileNotFoundError",
    "QuizContentError",
    "RemoteStoreError",
]
