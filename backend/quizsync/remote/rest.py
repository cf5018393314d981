"""PostgREST client for the hosted progress backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from ..errors import ProfileNotFoundError, RemoteStoreError
from ..knowledge import HistoryRecord, TopicKnowledge, UserProfile, normalize_topic

logger = logging.getLogger(__name__)

PROFILES_TABLE = "user_profiles"
HISTORY_TABLE = "quiz_history"
DEFAULT_KNOWLEDGE_COLUMN = "theme_knowledge"
DEFAULT_TOPIC_COLUMN = "theme"


def build_rest_client(
    base_url: str,
    api_key: Optional[str],
    *,
    timeout_seconds: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if api_key:
        headers["apikey"] = api_key
        headers["Authorization"] = f"Bearer {api_key}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        timeout=timeout_seconds,
        transport=transport,
    )


class RestProfileRemote:
    """Talks to ``/user_profiles`` and ``/quiz_history`` on a PostgREST endpoint.

    Transport failures (``httpx.ConnectError`` and friends) propagate untouched;
    non-success responses become :class:`RemoteStoreError` carrying the PostgREST
    error ``code`` (``23505`` for unique violations).

    The hosted schema stores the knowledge map in ``theme_knowledge`` and the
    history topic in ``theme``; both column names can be overridden.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        knowledge_column: str = DEFAULT_KNOWLEDGE_COLUMN,
        topic_column: str = DEFAULT_TOPIC_COLUMN,
    ) -> None:
        self._client = client
        self._knowledge_column = knowledge_column
        self._topic_column = topic_column

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_profile(self, user_id: str) -> UserProfile:
        response = await self._client.get(
            f"/{PROFILES_TABLE}",
            params={"select": f"id,username,{self._knowledge_column}", "id": f"eq.{user_id}"},
        )
        rows = self._json(response)
        if not isinstance(rows, list) or not rows:
            raise ProfileNotFoundError(user_id)
        return self._profile_from_row(rows[0])

    async def insert_profile(self, profile: UserProfile, email: Optional[str]) -> None:
        payload = {
            "id": profile.id,
            "username": profile.username,
            "email": email,
            self._knowledge_column: self._dump_knowledge(profile.knowledge_by_topic),
        }
        response = await self._client.post(
            f"/{PROFILES_TABLE}",
            json=payload,
            headers={"Prefer": "return=minimal"},
        )
        self._raise_for_status(response)

    async def update_knowledge(self, user_id: str, knowledge_by_topic: Mapping[str, TopicKnowledge]) -> None:
        response = await self._client.patch(
            f"/{PROFILES_TABLE}",
            params={"id": f"eq.{user_id}"},
            json={self._knowledge_column: self._dump_knowledge(knowledge_by_topic)},
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(response)
        if isinstance(rows, list) and not rows:
            raise ProfileNotFoundError(user_id)

    async def append_history(self, records: Sequence[HistoryRecord]) -> None:
        if not records:
            return
        response = await self._client.post(
            f"/{HISTORY_TABLE}",
            params={"on_conflict": "user_id,question"},
            json=[self._history_row(record) for record in records],
            headers={"Prefer": "resolution=ignore-duplicates,return=minimal"},
        )
        self._raise_for_status(response)

    async def fetch_history(self, user_id: str, topic: str) -> List[HistoryRecord]:
        response = await self._client.get(
            f"/{HISTORY_TABLE}",
            params={
                "select": f"user_id,{self._topic_column},question,options,correct_index",
                "user_id": f"eq.{user_id}",
                self._topic_column: f"eq.{normalize_topic(topic)}",
            },
        )
        rows = self._json(response)
        if not isinstance(rows, list):
            raise RemoteStoreError("Unexpected history payload.", status_code=response.status_code)
        return [self._history_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dump_knowledge(knowledge_by_topic: Mapping[str, TopicKnowledge]) -> Dict[str, Dict[str, int]]:
        return {
            normalize_topic(topic): knowledge.model_dump(mode="json")
            for topic, knowledge in knowledge_by_topic.items()
        }

    def _profile_from_row(self, row: Dict[str, Any]) -> UserProfile:
        return UserProfile.model_validate(
            {
                "id": row.get("id"),
                "username": row.get("username"),
                "knowledge_by_topic": row.get(self._knowledge_column) or {},
            }
        )

    def _history_row(self, record: HistoryRecord) -> Dict[str, Any]:
        row = record.model_dump(mode="json", exclude={"topic"})
        row[self._topic_column] = record.topic
        return row

    def _history_from_row(self, row: Dict[str, Any]) -> HistoryRecord:
        return HistoryRecord.model_validate(
            {
                "user_id": row.get("user_id"),
                "topic": row.get(self._topic_column) or "",
                "question": row.get("question"),
                "options": row.get("options") or [],
                "correct_index": row.get("correct_index") or 0,
            }
        )

    def _json(self, response: httpx.Response) -> Any:
        self._raise_for_status(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(
                f"Malformed response from {response.request.url.path}: {exc}",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        code: Optional[str] = None
        details: Optional[str] = None
        message = response.reason_phrase or f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            details = body.get("details")
            message = body.get("message") or message
        logger.debug("Remote store rejected %s %s: %s", response.request.method, response.request.url, message)
        raise RemoteStoreError(message, status_code=response.status_code, code=code, details=details)


__all__ = [
    "DEFAULT_KNOWLEDGE_COLUMN",
    "DEFAULT_TOPIC_COLUMN",
    "HISTORY_TABLE",
    "PROFILES_TABLE",
    "RestProfileRemote",
    "build_rest_client",
]
