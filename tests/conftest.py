"""Shared fixtures: fake agent runtime, in-memory storage and an API client."""

import json
from typing import Any, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dental_mentor.agents.base import AgentRun, AgentRuntime, RunContext
from dental_mentor.api import app as app_module
from dental_mentor.api.auth import AuthUser
from dental_mentor.config import Settings
from dental_mentor.domain.models import SourceLink, StreamChunk, Usage
from dental_mentor.domain.modes import AgentMode
from dental_mentor.repositories.memory import InMemoryRepository

TEST_USER = AuthUser(id="user-1", email="student@example.com")


def default_chunks() -> List[StreamChunk]:
    return [
        StreamChunk.text_delta("Hello"),
        StreamChunk.text_delta(" there"),
        StreamChunk.finish(Usage(input_tokens=10, output_tokens=5, total_tokens=15)),
    ]


class FakeAgentRuntime(AgentRuntime):
    """Replays scripted chunks. Exceptions in ``chunks`` are raised in place."""

    def __init__(
        self,
        chunks: Optional[Sequence[Any]] = None,
        sources: Optional[List[Dict[str, Any]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.chunks = list(chunks) if chunks is not None else default_chunks()
        self.sources = sources or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def invoke(self, mode, messages, user_id, conversation_id) -> AgentRun:
        self.calls.append(
            {"mode": mode, "messages": list(messages), "user_id": user_id, "conversation_id": conversation_id}
        )
        context = RunContext(user_id=user_id, conversation_id=conversation_id)
        return AgentRun(mode=mode, chunks=self._stream(context), context=context)

    async def _stream(self, context: RunContext):
        if self.error is not None:
            raise self.error
        context.sources = list(self.sources)
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    @property
    def last_mode(self) -> AgentMode:
        return self.calls[-1]["mode"]


def parse_events(body: str) -> List[Dict[str, Any]]:
    """Decode ``data: {...}`` frames from an SSE body."""
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


def streamed_text(events: List[Dict[str, Any]]) -> str:
    return "".join(e["content"] for e in events if e["type"] == "text")


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository(
        source_links=[
            SourceLink(id="ctx-1", display_name="DAT Guide", url="https://example.com/dat"),
            SourceLink(id="ctx-2", display_name="Scholarships", url="https://example.com/scholarships"),
        ]
    )


@pytest.fixture
def runtime() -> FakeAgentRuntime:
    return FakeAgentRuntime()


@pytest.fixture
def settings() -> Settings:
    return Settings(gemini_api_key="test-key", supabase_url="", sources_patch_enabled=False)


@pytest_asyncio.fixture
async def client(repository, runtime, settings):
    app = app_module.app
    app_module.get_rate_limiter.cache_clear()
    app.dependency_overrides[app_module.get_current_user] = lambda: TEST_USER
    app.dependency_overrides[app_module.get_repository] = lambda: repository
    app.dependency_overrides[app_module.get_agent_runtime] = lambda: runtime
    app.dependency_overrides[app_module.get_settings] = lambda: settings
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    app_module.get_rate_limiter.cache_clear()

