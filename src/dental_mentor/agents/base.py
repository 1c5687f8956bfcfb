"""Agent runtime boundary consumed by the chat handler."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Sequence

from ..domain.models import StreamChunk
from ..domain.modes import AgentMode


@dataclass
class RunContext:
    """Per-invocation state shared between the runtime and its retriever.

    ``sources`` is the side channel the retriever fills while the agent
    generates; the stream assembler reads it once the stream finishes.
    """

    user_id: str
    conversation_id: str
    sources: List[Dict[str, Any]] = field(default_factory=list)

    def source_ids(self) -> List[str]:
        """Unique ``context_id`` values of the collected sources, in first-seen order."""
        ids = [str(s["context_id"]) for s in self.sources if s.get("context_id")]
        return list(dict.fromkeys(ids))


@dataclass
class AgentRun:
    """A started generation: an async chunk stream plus its side channel."""

    mode: AgentMode
    chunks: AsyncIterator[StreamChunk]
    context: RunContext

    def source_ids(self) -> List[str]:
        return self.context.source_ids()

    async def aclose(self) -> None:
        close = getattr(self.chunks, "aclose", None)
        if close is not None:
            await close()


class AgentRuntime(ABC):
    """Produces token streams for a mode and a message list."""

    @abstractmethod
    async def invoke(
        self,
        mode: AgentMode,
        messages: Sequence[Dict[str, str]],
        user_id: str,
        conversation_id: str,
    ) -> AgentRun:
        """Start generation. Chunks are produced lazily as the run is iterated."""

    async def close(self) -> None:
        """Release any clients held by the runtime."""
