"""Sign-up, sign-in and sign-out flows around the external auth provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .classifier import ClassifiedError, ConnectivityOutcome, classify
from .knowledge import UserProfile
from .remote import ProfileRemote
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)

SIGN_UP_FAILED_MESSAGE = "Sign up failed."
LOGIN_FAILED_MESSAGE = "Login failed."


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    access_token: Optional[str] = None


class AuthProvider(Protocol):
    """Credential backend. Implementations raise ``AuthProviderError`` on rejection."""

    async def sign_up(self, email: str, password: str) -> Optional[AuthSession]:  # pragma: no cover - protocol definition
        ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:  # pragma: no cover - protocol definition
        ...

    async def sign_out(self) -> None:  # pragma: no cover - protocol definition
        ...

    async def current_session(self) -> Optional[AuthSession]:  # pragma: no cover - protocol definition
        ...


class AccountService:
    """Runs the account flows; every method returns ``None`` on success or a classified error."""

    def __init__(self, auth: AuthProvider, remote: ProfileRemote, engine: SyncEngine) -> None:
        self._auth = auth
        self._remote = remote
        self._engine = engine

    async def sign_up(self, email: str, password: str, username: str) -> Optional[ClassifiedError]:
        username = username.strip()
        if not username:
            return ClassifiedError(ConnectivityOutcome.AUTH_REJECTED, "Username cannot be empty.")
        try:
            session = await self._auth.sign_up(email.strip(), password)
        except Exception as exc:  # noqa: BLE001
            return self._report("sign_up", classify(exc))
        if session is None or not session.user_id:
            return ClassifiedError(ConnectivityOutcome.AUTH_REJECTED, SIGN_UP_FAILED_MESSAGE)

        profile = UserProfile(id=session.user_id, username=username)
        try:
            await self._remote.insert_profile(profile, email.strip())
        except Exception as exc:  # noqa: BLE001
            failure = classify(exc)
            if failure.outcome is ConnectivityOutcome.CREDENTIAL_CONFLICT:
                await self._discard_partial_session()
            return self._report("sign_up", failure)

        self._engine.adopt_profile(profile)
        logger.info("Created profile %s for %s", profile.id, username)
        return None

    async def sign_in(self, email: str, password: str) -> Optional[ClassifiedError]:
        try:
            await self._auth.sign_in_with_password(email.strip(), password)
        except Exception as exc:  # noqa: BLE001
            failure = classify(exc)
            if failure.outcome is ConnectivityOutcome.DATA_ERROR:
                failure = ClassifiedError(ConnectivityOutcome.AUTH_REJECTED, LOGIN_FAILED_MESSAGE)
            return self._report("sign_in", failure)
        return None

    async def sign_out(self) -> None:
        try:
            await self._auth.sign_out()
        finally:
            self._engine.forget_local_profile()

    async def current_user_id(self) -> Optional[str]:
        session = await self._auth.current_session()
        return session.user_id if session else None

    async def _discard_partial_session(self) -> None:
        try:
            await self._auth.sign_out()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to sign out partially created account: %s", exc)

    @staticmethod
    def _report(flow: str, failure: ClassifiedError) -> ClassifiedError:
        logger.info("%s failed (%s): %s", flow, failure.outcome.value, failure.detail)
        return failure


__all__ = [
    "AccountService",
    "AuthProvider",
    "AuthSession",
    "LOGIN_FAILED_MESSAGE",
    "SIGN_UP_FAILED_MESSAGE",
]
