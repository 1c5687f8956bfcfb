"""Supabase (PostgREST) repository implementation."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx
import structlog

from ..domain.models import ContentPart, Conversation, Message, Role, SourceLink
from .base import Repository, StorageError

logger = structlog.get_logger()

CONVERSATIONS_TABLE = "voltagent_memory_conversations"
MESSAGES_TABLE = "voltagent_memory_messages"
CONTEXT_LINKS_TABLE = "context_links"
MATCH_CONTEXT_RPC = "match_context_embeddings"


def _in_filter(values: Iterable[str]) -> str:
    quoted = ",".join('"{}"'.format(v.replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


class SupabaseRepository(Repository):
    """Repository backed by the Supabase REST API.

    Conversation reads and writes are filtered by ``user_id`` explicitly.
    Message queries are scoped by conversation id only, so callers holding
    the service-role key must check conversation ownership first.
    """

    def __init__(self, url: str, key: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.url = url.rstrip("/")
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(base_url=self.url, headers=headers, timeout=timeout)
        logger.info("repository_initialized", backend="supabase", url=self.url)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("supabase_request_failed", method=method, path=path, error=str(e))
            raise StorageError(f"{method} {path} failed: {e}") from e
        if not response.content:
            return None
        return response.json()

    async def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = await self._request("GET", f"/rest/v1/{table}", params=params)
        return rows or []

    @staticmethod
    def _to_conversation(row: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row.get("user_id") or "",
            resource_id=row.get("resource_id"),
            title=row.get("title"),
            metadata=row.get("metadata") or {},
            created_at=row.get("created_at") or datetime.now(timezone.utc),
            updated_at=row.get("updated_at") or datetime.now(timezone.utc),
        )

    @staticmethod
    def _to_message(row: Dict[str, Any]) -> Message:
        return Message(
            id=row.get("message_id") or "",
            conversation_id=row["conversation_id"],
            role=Role(row["role"]),
            parts=[ContentPart(**part) for part in row.get("parts") or [] if isinstance(part, dict)],
            user_id=row.get("user_id"),
            metadata=row.get("metadata") or {},
            format_version=row.get("format_version") or 2,
            created_at=row.get("created_at") or datetime.now(timezone.utc),
        )

    async def get_conversation(self, conversation_id: str, user_id: Optional[str] = None) -> Optional[Conversation]:
        params = {"select": "*", "id": f"eq.{conversation_id}", "limit": "1"}
        if user_id is not None:
            params["user_id"] = f"eq.{user_id}"
        rows = await self._select(CONVERSATIONS_TABLE, params)
        return self._to_conversation(rows[0]) if rows else None

    async def list_conversations(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Conversation]:
        rows = await self._select(
            CONVERSATIONS_TABLE,
            {
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "updated_at.desc",
                "limit": str(limit),
                "offset": str(offset),
            },
        )
        return [self._to_conversation(row) for row in rows]

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        row = {
            "id": conversation.id,
            "resource_id": conversation.resource_id or conversation.user_id,
            "user_id": conversation.user_id,
            "title": conversation.title,
            "metadata": conversation.metadata,
        }
        rows = await self._request(
            "POST",
            f"/rest/v1/{CONVERSATIONS_TABLE}",
            params={"on_conflict": "id"},
            json=row,
            prefer="resolution=ignore-duplicates,return=representation",
        )
        if rows:
            logger.info("conversation_created", conversation_id=conversation.id)
            return self._to_conversation(rows[0])
        # Duplicate create: another request won the race
        logger.info("conversation_already_exists", conversation_id=conversation.id)
        existing = await self.get_conversation(conversation.id)
        return existing or conversation

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> Optional[Conversation]:
        rows = await self._request(
            "PATCH",
            f"/rest/v1/{CONVERSATIONS_TABLE}",
            params={"id": f"eq.{conversation_id}", "user_id": f"eq.{user_id}"},
            json={"title": title, "updated_at": datetime.now(timezone.utc).isoformat()},
            prefer="return=representation",
        )
        return self._to_conversation(rows[0]) if rows else None

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        await self._request(
            "DELETE",
            f"/rest/v1/{CONVERSATIONS_TABLE}",
            params={"id": f"eq.{conversation_id}", "user_id": f"eq.{user_id}"},
        )
        logger.info("conversation_deleted", conversation_id=conversation_id)

    async def list_messages(self, conversation_id: str) -> List[Message]:
        rows = await self._select(
            MESSAGES_TABLE,
            {"select": "*", "conversation_id": f"eq.{conversation_id}", "order": "created_at.asc"},
        )
        return [self._to_message(row) for row in rows]

    async def list_user_messages(self, conversation_id: str, limit: int = 3) -> List[Message]:
        rows = await self._select(
            MESSAGES_TABLE,
            {
                "select": "*",
                "conversation_id": f"eq.{conversation_id}",
                "role": "eq.user",
                "order": "created_at.asc",
                "limit": str(limit),
            },
        )
        return [self._to_message(row) for row in rows]

    async def append_message(self, message: Message) -> Message:
        await self._request(
            "POST",
            f"/rest/v1/{MESSAGES_TABLE}",
            json={
                "conversation_id": message.conversation_id,
                "message_id": message.id,
                "role": message.role.value,
                "parts": [part.model_dump() for part in message.parts],
                "user_id": message.user_id,
                "metadata": message.metadata,
                "format_version": message.format_version,
                "created_at": message.created_at.isoformat(),
            },
        )
        await self._request(
            "PATCH",
            f"/rest/v1/{CONVERSATIONS_TABLE}",
            params={"id": f"eq.{message.conversation_id}"},
            json={"updated_at": message.created_at.isoformat()},
        )
        logger.info("message_added", conversation_id=message.conversation_id, message_role=message.role.value)
        return message

    async def latest_message(self, conversation_id: str, role: Role) -> Optional[Message]:
        rows = await self._select(
            MESSAGES_TABLE,
            {
                "select": "*",
                "conversation_id": f"eq.{conversation_id}",
                "role": f"eq.{role.value}",
                "order": "created_at.desc",
                "limit": "1",
            },
        )
        return self._to_message(rows[0]) if rows else None

    async def update_message(self, conversation_id: str, message_id: str, parts: List[ContentPart]) -> None:
        await self._request(
            "PATCH",
            f"/rest/v1/{MESSAGES_TABLE}",
            params={"conversation_id": f"eq.{conversation_id}", "message_id": f"eq.{message_id}"},
            json={"parts": [part.model_dump() for part in parts]},
        )

    async def resolve_source_links(self, ids: Iterable[str]) -> List[SourceLink]:
        ids = list(ids)
        if not ids:
            return []
        rows = await self._select(
            CONTEXT_LINKS_TABLE,
            {"select": "id,context_name,link", "id": _in_filter(ids)},
        )
        return [
            SourceLink(id=str(row["id"]), display_name=row.get("context_name") or "", url=row.get("link") or "")
            for row in rows
        ]

    async def match_context(self, embedding: List[float], threshold: float, count: int) -> List[Dict[str, Any]]:
        rows = await self._request(
            "POST",
            f"/rest/v1/rpc/{MATCH_CONTEXT_RPC}",
            json={"query_embedding": embedding, "match_threshold": threshold, "match_count": count},
        )
        return rows or []
