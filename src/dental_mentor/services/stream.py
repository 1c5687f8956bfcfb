"""Server-sent-event assembly for a single chat turn.

The assembler relays text deltas from an :class:`AgentRun` to the client as
they arrive, accumulating the full assistant text. When the agent signals
``finish`` it resolves citations, persists the turn and emits the terminal
``finish`` event. Storage problems during that tail are logged and counted
but never keep the finish event from reaching the client.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from ..agents.base import AgentRun
from ..domain.models import (
    ChatMessage,
    ChunkType,
    ContentPart,
    Conversation,
    Message,
    Role,
    SourceLink,
    StreamChunk,
    Usage,
)
from ..domain.modes import SOURCES_MARKER, AgentMode
from ..metrics import CITATIONS_APPENDED, PERSISTENCE_FAILURES, STREAM_ERRORS
from ..repositories.base import Repository

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINISHING = "finishing"
    CLOSED = "closed"
    ERRORED = "errored"


class IncompleteStreamError(Exception):
    """The agent stream ended without a finish chunk."""


@dataclass
class Turn:
    """What the assembler needs to know about the request it serves."""

    user_id: str
    conversation_id: str
    mode: AgentMode
    new_messages: Sequence[ChatMessage]

    @property
    def user_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.new_messages):
            if message.role == Role.USER:
                return message
        return None


def sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def format_sources(links: Sequence[SourceLink]) -> str:
    lines = "\n".join(f"- [{link.display_name}]({link.url})" for link in links)
    return f"\n\n---\n\n**{SOURCES_MARKER}**\n{lines}"


class StreamAssembler:
    """Drives one agent run and produces the client's SSE frames."""

    def __init__(
        self,
        repository: Repository,
        run: AgentRun,
        turn: Turn,
        sources_patch_enabled: bool = False,
        sources_patch_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.run = run
        self.turn = turn
        self.sources_patch_enabled = sources_patch_enabled
        self.sources_patch_delay = sources_patch_delay
        self._sleep = sleep
        self._iterator = run.chunks.__aiter__()
        self._first: Optional[StreamChunk] = None
        self._exhausted = False
        self._buffer: List[str] = []
        self.state = TurnState.IDLE

    @property
    def full_text(self) -> str:
        return "".join(self._buffer)

    async def start(self) -> None:
        """Wait for the first chunk so upstream failures surface before streaming.

        Any exception raised by the agent here propagates to the caller,
        which answers with an HTTP error instead of an event stream.
        """
        try:
            self._first = await self._iterator.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
        self.state = TurnState.STREAMING

    async def _chunks(self) -> AsyncIterator[StreamChunk]:
        if self._first is not None:
            first, self._first = self._first, None
            yield first
        if self._exhausted:
            return
        async for chunk in self._iterator:
            yield chunk

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the turn is closed or errored."""
        if self.state is TurnState.IDLE:
            await self.start()
        try:
            async for chunk in self._chunks():
                if chunk.type == ChunkType.TEXT_DELTA:
                    if not chunk.text:
                        continue
                    self._buffer.append(chunk.text)
                    yield sse({"type": "text", "content": chunk.text})
                elif chunk.type == ChunkType.FINISH:
                    self.state = TurnState.FINISHING
                    async for frame in self._finish(chunk):
                        yield frame
                    self.state = TurnState.CLOSED
                    return
            raise IncompleteStreamError("agent stream ended without a finish event")
        except asyncio.CancelledError:
            logger.info("chat_stream_cancelled", conversation_id=self.turn.conversation_id)
            raise
        except Exception as e:
            self.state = TurnState.ERRORED
            STREAM_ERRORS.inc()
            logger.error(
                "chat_stream_failed",
                conversation_id=self.turn.conversation_id,
                mode=self.turn.mode.value,
                streamed_chars=len(self.full_text),
                error=str(e),
            )
            yield sse({"type": "error", "error": "The response was interrupted. Please try again."})
        finally:
            await self.run.aclose()

    async def _finish(self, chunk: StreamChunk) -> AsyncIterator[str]:
        sources_text = await self._resolve_sources()
        if sources_text:
            self._buffer.append(sources_text)
            yield sse({"type": "text", "content": sources_text})
            if self.turn.mode is AgentMode.GENERAL and self.sources_patch_enabled:
                await self._patch_latest_assistant(sources_text)

        await self._persist()

        usage = chunk.usage or Usage()
        logger.info(
            "chat_turn_completed",
            conversation_id=self.turn.conversation_id,
            mode=self.turn.mode.value,
            response_length=len(self.full_text),
            total_tokens=usage.total_tokens,
        )
        yield sse({"type": "finish", "usage": usage.to_event()})

    async def _resolve_sources(self) -> str:
        ids = self.run.source_ids()
        logger.info("citation_ids_collected", conversation_id=self.turn.conversation_id, count=len(ids))
        if not ids:
            return ""
        try:
            links = await self.repository.resolve_source_links(ids)
        except Exception as e:
            logger.error("citation_resolution_failed", conversation_id=self.turn.conversation_id, error=str(e))
            return ""
        if not links:
            return ""
        CITATIONS_APPENDED.inc()
        return format_sources(links)

    async def _patch_latest_assistant(self, sources_text: str) -> None:
        """Append citations to an assistant message persisted by another writer.

        Waits briefly so the other writer's row can land, then appends the
        block unless the stored text already carries the sources marker.
        """
        conversation_id = self.turn.conversation_id
        try:
            await self._sleep(self.sources_patch_delay)
            latest = await self.repository.latest_message(conversation_id, Role.ASSISTANT)
            if latest is None:
                logger.info("sources_patch_skipped", conversation_id=conversation_id, reason="no_assistant_message")
                return
            if SOURCES_MARKER in latest.text:
                logger.info("sources_patch_skipped", conversation_id=conversation_id, reason="already_present")
                return
            patched = [ContentPart(text=latest.text + sources_text)]
            await self.repository.update_message(conversation_id, latest.id, patched)
            logger.info("sources_patch_applied", conversation_id=conversation_id, message_id=latest.id)
        except Exception as e:
            logger.error("sources_patch_failed", conversation_id=conversation_id, error=str(e))

    async def _persist(self) -> None:
        turn = self.turn
        conversation = Conversation(
            id=turn.conversation_id,
            user_id=turn.user_id,
            resource_id=turn.user_id,
            title=turn.mode.default_title,
            metadata={"agentMode": turn.mode.metadata_value},
        )
        try:
            stored = await self.repository.create_conversation(conversation)
        except Exception as e:
            PERSISTENCE_FAILURES.labels(operation="conversation").inc()
            logger.error("conversation_create_failed", conversation_id=turn.conversation_id, error=str(e))
        else:
            if stored.user_id != turn.user_id:
                PERSISTENCE_FAILURES.labels(operation="conversation").inc()
                logger.error(
                    "conversation_owner_mismatch",
                    conversation_id=turn.conversation_id,
                    user_id=turn.user_id,
                )
                return

        user_message = turn.user_message
        saved_user: Optional[Message] = None
        if user_message is not None:
            saved_user = Message.from_text(turn.conversation_id, Role.USER, user_message.text, turn.user_id)
            try:
                await self.repository.append_message(saved_user)
            except Exception as e:
                PERSISTENCE_FAILURES.labels(operation="user_message").inc()
                logger.error("user_message_save_failed", conversation_id=turn.conversation_id, error=str(e))

        assistant = Message.from_text(turn.conversation_id, Role.ASSISTANT, self.full_text, turn.user_id)
        if saved_user is not None and assistant.created_at <= saved_user.created_at:
            assistant.created_at = saved_user.created_at + timedelta(milliseconds=1)
        try:
            await self.repository.append_message(assistant)
        except Exception as e:
            PERSISTENCE_FAILURES.labels(operation="assistant_message").inc()
            logger.error("assistant_message_save_failed", conversation_id=turn.conversation_id, error=str(e))
            return
        logger.info("chat_turn_saved", conversation_id=turn.conversation_id, mode=turn.mode.metadata_value)
