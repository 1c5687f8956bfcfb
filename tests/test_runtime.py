"""Tests for the Gemini agent runtime's streaming and tool loop."""

from types import SimpleNamespace

import pytest

from dental_mentor.agents.base import RunContext
from dental_mentor.agents.registry import AgentConfig
from dental_mentor.agents.runtime import GeminiAgentRuntime, last_user_text, to_contents
from dental_mentor.domain.models import ChunkType, Usage
from dental_mentor.domain.modes import AgentMode
from dental_mentor.tools.base import BaseTool, ToolParams, ToolResult


def text_part(text):
    return SimpleNamespace(text=text, function_call=None)


def call_part(name, **args):
    return SimpleNamespace(text="", function_call=SimpleNamespace(name=name, args=args))


def chunk(*parts, usage=None):
    content = SimpleNamespace(parts=list(parts))
    metadata = None
    if usage:
        metadata = SimpleNamespace(prompt_token_count=usage[0], candidates_token_count=usage[1], total_token_count=usage[2])
    return SimpleNamespace(candidates=[SimpleNamespace(content=content)], usage_metadata=metadata)


class _Response:
    def __init__(self, chunks):
        self.chunks = chunks

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self.chunks:
            yield item


class FakeModel:
    def __init__(self, rounds):
        self.rounds = list(rounds)
        self.requests = []

    async def generate_content_async(self, contents, stream=False):
        self.requests.append([dict(c) for c in contents])
        return _Response(self.rounds.pop(0))


class FakeLLM:
    def __init__(self, model):
        self._model = model
        self.built = []

    def model(self, name, instructions=None, declarations=None):
        self.built.append({"name": name, "instructions": instructions, "declarations": declarations})
        return self._model


class _LookupParams(ToolParams):
    query: str


class LookupTool(BaseTool):
    name = "lookup"
    description = "Looks things up"
    params_model = _LookupParams

    def __init__(self):
        self.queries = []

    async def run(self, params):
        self.queries.append(params.query)
        return ToolResult(data={"answer": f"facts about {params.query}"})


class FakeRegistry:
    def __init__(self, config):
        self.config = config

    def resolve(self, mode):
        return self.config


class FakeRetriever:
    async def retrieve(self, query, context: RunContext):
        context.sources = [{"context_id": "ctx-9"}]
        return f"[Source 1: Guide]\nabout {query}"


def _runtime(rounds, use_retriever=False, max_tool_rounds=6, retriever=None):
    tool = LookupTool()
    config = AgentConfig(name="Test", model="gemini-test", instructions="Be helpful.", tools=[tool], use_retriever=use_retriever)
    model = FakeModel(rounds)
    llm = FakeLLM(model)
    runtime = GeminiAgentRuntime(FakeRegistry(config), llm, retriever, max_tool_rounds)
    return runtime, model, llm, tool


async def _collect(run):
    return [c async for c in run.chunks]


def test_to_contents_maps_roles_and_lifts_system():
    system, contents = to_contents(
        [
            {"role": "system", "content": "Context reminder"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": ""},
        ]
    )
    assert system == ["Context reminder"]
    assert contents == [
        {"role": "user", "parts": [{"text": "Hi"}]},
        {"role": "model", "parts": [{"text": "Hello"}]},
    ]
    assert last_user_text([{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}]) == "a"


@pytest.mark.asyncio
async def test_streams_text_and_finishes_with_usage():
    runtime, _, llm, _ = _runtime([[chunk(text_part("Hel")), chunk(text_part("lo"), usage=(7, 2, 9))]])
    run = await runtime.invoke(AgentMode.GENERAL, [{"role": "user", "content": "Hi"}], "u1", "conv_1")
    chunks = await _collect(run)

    assert [c.text for c in chunks if c.type == ChunkType.TEXT_DELTA] == ["Hel", "lo"]
    assert chunks[-1].type == ChunkType.FINISH
    assert chunks[-1].usage == Usage(input_tokens=7, output_tokens=2, total_tokens=9)
    assert llm.built[0]["name"] == "gemini-test"
    assert llm.built[0]["declarations"][0]["name"] == "lookup"


@pytest.mark.asyncio
async def test_tool_calls_feed_the_next_round():
    runtime, model, _, tool = _runtime(
        [
            [chunk(text_part("Let me check."), call_part("lookup", query="UCLA"), usage=(5, 1, 6))],
            [chunk(text_part("UCLA is great."), usage=(12, 4, 16))],
        ]
    )
    run = await runtime.invoke(AgentMode.SCHOOL_INFO, [{"role": "user", "content": "UCLA?"}], "u1", "conv_1")
    chunks = await _collect(run)

    texts = [c.text for c in chunks if c.type == ChunkType.TEXT_DELTA]
    assert texts == ["Let me check.", "\n\nUCLA is great."]
    assert tool.queries == ["UCLA"]
    assert chunks[-1].usage == Usage(input_tokens=17, output_tokens=5, total_tokens=22)

    second_request = model.requests[1]
    assert second_request[-2] == {"role": "model", "parts": [{"function_call": {"name": "lookup", "args": {"query": "UCLA"}}}]}
    assert second_request[-1] == {
        "role": "user",
        "parts": [{"function_response": {"name": "lookup", "response": {"answer": "facts about UCLA"}}}],
    }


@pytest.mark.asyncio
async def test_unknown_tool_gets_error_response():
    runtime, model, _, _ = _runtime([[chunk(call_part("teleport"))], [chunk(text_part("Sorry."))]])
    run = await runtime.invoke(AgentMode.GENERAL, [{"role": "user", "content": "Hi"}], "u1", "conv_1")
    await _collect(run)
    response = model.requests[1][-1]["parts"][0]["function_response"]["response"]
    assert response == {"success": False, "error": "Unknown tool: teleport"}


@pytest.mark.asyncio
async def test_tool_rounds_are_bounded():
    rounds = [[chunk(call_part("lookup", query=str(i)))] for i in range(3)]
    runtime, model, _, tool = _runtime(rounds, max_tool_rounds=2)
    run = await runtime.invoke(AgentMode.GENERAL, [{"role": "user", "content": "Hi"}], "u1", "conv_1")
    chunks = await _collect(run)
    assert len(model.requests) == 3
    assert tool.queries == ["0", "1"]
    assert chunks[-1].type == ChunkType.FINISH


@pytest.mark.asyncio
async def test_retriever_context_goes_into_instructions_and_sources():
    runtime, _, llm, _ = _runtime([[chunk(text_part("Answer"))]], use_retriever=True, retriever=FakeRetriever())
    messages = [{"role": "system", "content": "Reminder"}, {"role": "user", "content": "discount codes?"}]
    run = await runtime.invoke(AgentMode.GENERAL, messages, "u1", "conv_1")
    await _collect(run)

    instructions = llm.built[0]["instructions"]
    assert instructions.startswith("Be helpful.\n\nReminder")
    assert "about discount codes?" in instructions
    assert run.source_ids() == ["ctx-9"]


@pytest.mark.asyncio
async def test_model_errors_propagate():
    class _Failing(FakeModel):
        async def generate_content_async(self, contents, stream=False):
            raise RuntimeError("quota exhausted")

    runtime, _, llm, _ = _runtime([])
    llm._model = _Failing([])
    run = await runtime.invoke(AgentMode.GENERAL, [{"role": "user", "content": "Hi"}], "u1", "conv_1")
    with pytest.raises(RuntimeError):
        await _collect(run)
