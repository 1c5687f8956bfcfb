"""Base repository interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..domain.models import ContentPart, Conversation, Message, Role, SourceLink


class StorageError(Exception):
    """Raised when the backing store rejects or fails an operation."""


class Repository(ABC):
    """Storage gateway for conversations, messages and citation links."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str, user_id: Optional[str] = None) -> Optional[Conversation]:
        """Retrieve a conversation by ID, optionally restricted to its owner."""

    @abstractmethod
    async def list_conversations(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Conversation]:
        """List a user's conversations, most recently updated first."""

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        """Create a conversation. Creating an existing id returns the stored row."""

    @abstractmethod
    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> Optional[Conversation]:
        """Change a conversation title. Returns None when it does not exist."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Delete a conversation and its messages."""

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> List[Message]:
        """All messages of a conversation in creation order."""

    @abstractmethod
    async def list_user_messages(self, conversation_id: str, limit: int = 3) -> List[Message]:
        """The first ``limit`` user messages of a conversation."""

    @abstractmethod
    async def append_message(self, message: Message) -> Message:
        """Persist a new message and touch the conversation's updated time."""

    @abstractmethod
    async def latest_message(self, conversation_id: str, role: Role) -> Optional[Message]:
        """Most recently created message with the given role."""

    @abstractmethod
    async def update_message(self, conversation_id: str, message_id: str, parts: List[ContentPart]) -> None:
        """Replace the content parts of a message stored in ``conversation_id``."""

    @abstractmethod
    async def resolve_source_links(self, ids: Iterable[str]) -> List[SourceLink]:
        """Look up display name and URL for knowledge-base source ids."""

    @abstractmethod
    async def match_context(self, embedding: List[float], threshold: float, count: int) -> List[Dict[str, Any]]:
        """Run the vector-search RPC over knowledge-base chunks."""

    async def close(self) -> None:
        """Release any connections held by the repository."""
