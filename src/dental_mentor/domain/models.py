"""Domain models for the chat application."""

import random
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def new_conversation_id() -> str:
    """Timestamp plus random suffix, e.g. ``conv_1718000000000_k3j9x0a1b``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"conv_{_epoch_ms()}_{suffix}"


def new_message_id(role: str) -> str:
    return f"msg_{_epoch_ms()}_{role}"


def default_conversation_title(now: Optional[datetime] = None) -> str:
    """Fallback title such as ``New Chat 03:41 PM``."""
    now = now or datetime.now()
    return f"New Chat {now.strftime('%I:%M %p')}"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ContentPart(BaseModel):
    """A typed unit of message content. Only text parts are produced."""

    type: str = "text"
    text: str = ""


class Message(BaseModel):
    """A persisted chat message."""

    id: str = ""
    conversation_id: str
    role: Role
    parts: List[ContentPart] = Field(default_factory=list)
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    format_version: int = 2
    created_at: datetime = Field(default_factory=_utcnow)

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = new_message_id(self.role.value)

    @classmethod
    def from_text(cls, conversation_id: str, role: Role, text: str, user_id: Optional[str] = None) -> "Message":
        return cls(
            conversation_id=conversation_id,
            role=role,
            parts=[ContentPart(text=text)],
            user_id=user_id,
        )

    @property
    def text(self) -> str:
        """Text of the first content part, empty when there is none."""
        if not self.parts:
            return ""
        return self.parts[0].text or ""


class Conversation(BaseModel):
    """A conversation owned by a single user."""

    id: str = Field(default_factory=new_conversation_id)
    user_id: str
    resource_id: Optional[str] = None
    title: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title", mode="before")
    @classmethod
    def _title_never_empty(cls, value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return default_conversation_title()
        return str(value)


class SourceLink(BaseModel):
    """A knowledge-base document a response drew from."""

    id: str
    display_name: str
    url: str


class ChatMessage(BaseModel):
    """A message as sent by the client in a chat turn request."""

    role: Role
    content: Union[str, List[Any], None] = None

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            for part in self.content:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    return part["text"]
        return ""


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``."""

    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(min_length=1)
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    agent_mode: Optional[str] = Field(default=None, alias="agentMode")


class Usage(BaseModel):
    """Token accounting reported with the finish event."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_event(self) -> Dict[str, int]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
        }


class ChunkType(str, Enum):
    TEXT_DELTA = "text-delta"
    FINISH = "finish"


class StreamChunk(BaseModel):
    """An incremental unit of agent output or the terminal finish signal."""

    type: ChunkType
    text: str = ""
    usage: Optional[Usage] = None

    @classmethod
    def text_delta(cls, text: str) -> "StreamChunk":
        return cls(type=ChunkType.TEXT_DELTA, text=text)

    @classmethod
    def finish(cls, usage: Optional[Usage] = None) -> "StreamChunk":
        return cls(type=ChunkType.FINISH, usage=usage or Usage())
