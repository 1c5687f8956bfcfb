"""In-memory repository implementation."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog

from ..domain.models import ContentPart, Conversation, Message, Role, SourceLink
from .base import Repository

logger = structlog.get_logger()


class InMemoryRepository(Repository):
    """Process-local repository used for development and tests."""

    def __init__(
        self,
        source_links: Optional[Iterable[SourceLink]] = None,
        context_rows: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._source_links: Dict[str, SourceLink] = {link.id: link for link in source_links or []}
        self._context_rows = list(context_rows or [])
        self._lock = asyncio.Lock()
        logger.info("repository_initialized", backend="memory")

    async def get_conversation(self, conversation_id: str, user_id: Optional[str] = None) -> Optional[Conversation]:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None or (user_id is not None and conversation.user_id != user_id):
                logger.warning("conversation_not_found", conversation_id=conversation_id)
                return None
            return conversation

    async def list_conversations(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Conversation]:
        async with self._lock:
            conversations = sorted(
                (c for c in self._conversations.values() if c.user_id == user_id),
                key=lambda c: c.updated_at,
                reverse=True,
            )
            return conversations[offset : offset + limit]

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            existing = self._conversations.get(conversation.id)
            if existing is not None:
                logger.info("conversation_already_exists", conversation_id=conversation.id)
                return existing
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = []
            logger.info("conversation_created", conversation_id=conversation.id)
            return conversation

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> Optional[Conversation]:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None or conversation.user_id != user_id:
                return None
            renamed = conversation.model_copy(
                update={"title": title, "updated_at": datetime.now(timezone.utc)}
            )
            self._conversations[conversation_id] = renamed
            return renamed

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None or conversation.user_id != user_id:
                return
            del self._conversations[conversation_id]
            self._messages.pop(conversation_id, None)
            logger.info("conversation_deleted", conversation_id=conversation_id)

    async def list_messages(self, conversation_id: str) -> List[Message]:
        async with self._lock:
            # sorted() is stable, so rows sharing a timestamp keep insertion order
            return sorted(self._messages.get(conversation_id, []), key=lambda m: m.created_at)

    async def list_user_messages(self, conversation_id: str, limit: int = 3) -> List[Message]:
        messages = await self.list_messages(conversation_id)
        return [m for m in messages if m.role == Role.USER][:limit]

    async def append_message(self, message: Message) -> Message:
        async with self._lock:
            conversation = self._conversations.get(message.conversation_id)
            if conversation is None:
                logger.error("conversation_not_found_for_message", conversation_id=message.conversation_id)
                raise ValueError(f"Conversation {message.conversation_id} not found")
            self._messages.setdefault(message.conversation_id, []).append(message)
            conversation.updated_at = message.created_at
            logger.info("message_added", conversation_id=message.conversation_id, message_role=message.role.value)
            return message

    async def latest_message(self, conversation_id: str, role: Role) -> Optional[Message]:
        messages = await self.list_messages(conversation_id)
        for message in reversed(messages):
            if message.role == role:
                return message
        return None

    async def update_message(self, conversation_id: str, message_id: str, parts: List[ContentPart]) -> None:
        async with self._lock:
            messages = self._messages.get(conversation_id, [])
            for index, message in enumerate(messages):
                if message.id == message_id:
                    messages[index] = message.model_copy(update={"parts": list(parts)})
                    return
            raise ValueError(f"Message {message_id} not found in {conversation_id}")

    async def resolve_source_links(self, ids: Iterable[str]) -> List[SourceLink]:
        wanted = set(ids)
        return [link for link_id, link in self._source_links.items() if link_id in wanted]

    async def match_context(self, embedding: List[float], threshold: float, count: int) -> List[Dict[str, Any]]:
        rows = [row for row in self._context_rows if row.get("similarity", 1.0) >= threshold]
        return rows[:count]
