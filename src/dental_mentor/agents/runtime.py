"""Gemini-backed agent runtime with a function-calling loop."""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import structlog

from ..domain.models import StreamChunk, Usage
from ..domain.modes import AgentMode
from ..services.llm import LLMService
from .base import AgentRun, AgentRuntime, RunContext
from .registry import AgentConfig, AgentRegistry
from .retriever import KnowledgeBaseRetriever

logger = structlog.get_logger()

ROUND_SEPARATOR = "\n\n"

_ROLES = {"user": "user", "assistant": "model"}


def to_contents(messages: Sequence[Dict[str, str]]) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Split role/content dicts into system texts and Gemini ``contents``."""
    system: List[str] = []
    contents: List[Dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        text = message.get("content") or ""
        if role == "system":
            if text:
                system.append(text)
            continue
        if role not in _ROLES or not text:
            continue
        contents.append({"role": _ROLES[role], "parts": [{"text": text}]})
    return system, contents


def last_user_text(messages: Sequence[Dict[str, str]]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user" and message.get("content"):
            return message["content"]
    return ""


def _usage_of(chunk: Any) -> Optional[Usage]:
    metadata = getattr(chunk, "usage_metadata", None)
    if not metadata:
        return None
    return Usage(
        input_tokens=getattr(metadata, "prompt_token_count", 0) or 0,
        output_tokens=getattr(metadata, "candidates_token_count", 0) or 0,
        total_tokens=getattr(metadata, "total_token_count", 0) or 0,
    )


def _parts_of(chunk: Any) -> List[Any]:
    candidates = getattr(chunk, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


class GeminiAgentRuntime(AgentRuntime):
    """Runs an agent against Gemini, executing tool calls between model rounds.

    Each round streams one model response. Text parts are forwarded as
    deltas; function calls are executed after the round ends and their
    results fed into the next round. The run finishes on the first round
    without function calls, or after ``max_tool_rounds`` tool rounds.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        llm: LLMService,
        retriever: Optional[KnowledgeBaseRetriever] = None,
        max_tool_rounds: int = 6,
    ) -> None:
        self.registry = registry
        self.llm = llm
        self.retriever = retriever
        self.max_tool_rounds = max_tool_rounds

    async def invoke(
        self,
        mode: AgentMode,
        messages: Sequence[Dict[str, str]],
        user_id: str,
        conversation_id: str,
    ) -> AgentRun:
        config = self.registry.resolve(mode)
        context = RunContext(user_id=user_id, conversation_id=conversation_id)
        logger.info(
            "agent_invoked",
            agent=config.name,
            model=config.model,
            conversation_id=conversation_id,
            messages=len(messages),
        )
        return AgentRun(mode=mode, chunks=self._generate(config, list(messages), context), context=context)

    async def _instructions(
        self,
        config: AgentConfig,
        messages: Sequence[Dict[str, str]],
        system: List[str],
        context: RunContext,
    ) -> str:
        sections = [config.instructions, *system]
        if config.use_retriever and self.retriever is not None:
            query = last_user_text(messages)
            if query:
                retrieved = await self.retriever.retrieve(query, context)
                sections.append(f"Relevant context from the knowledge base:\n\n{retrieved}")
        return "\n\n".join(sections)

    async def _generate(
        self, config: AgentConfig, messages: List[Dict[str, str]], context: RunContext
    ) -> AsyncIterator[StreamChunk]:
        system, contents = to_contents(messages)
        instructions = await self._instructions(config, messages, system, context)
        model = self.llm.model(config.model, instructions, config.declarations())

        usage = Usage()
        wrote_text = False
        for round_number in range(self.max_tool_rounds + 1):
            response = await model.generate_content_async(contents, stream=True)
            round_usage: Optional[Usage] = None
            calls: List[Tuple[str, Dict[str, Any]]] = []
            round_has_text = False

            async for chunk in response:
                round_usage = _usage_of(chunk) or round_usage
                for part in _parts_of(chunk):
                    function_call = getattr(part, "function_call", None)
                    if function_call is not None and getattr(function_call, "name", ""):
                        calls.append((function_call.name, dict(function_call.args or {})))
                        continue
                    text = getattr(part, "text", "")
                    if not text:
                        continue
                    if not round_has_text and wrote_text:
                        text = ROUND_SEPARATOR + text
                    round_has_text = wrote_text = True
                    yield StreamChunk.text_delta(text)

            if round_usage is not None:
                usage = usage.add(round_usage)

            if not calls:
                break
            if round_number == self.max_tool_rounds:
                logger.warning("tool_rounds_exhausted", agent=config.name, rounds=round_number)
                break

            contents.append(
                {"role": "model", "parts": [{"function_call": {"name": name, "args": args}} for name, args in calls]}
            )
            contents.append({"role": "user", "parts": [await self._call_tool(config, name, args) for name, args in calls]})

        yield StreamChunk.finish(usage)

    async def _call_tool(self, config: AgentConfig, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        tool = config.tool(name)
        if tool is None:
            logger.warning("unknown_tool_called", agent=config.name, tool=name)
            response: Dict[str, Any] = {"success": False, "error": f"Unknown tool: {name}"}
        else:
            logger.info("tool_called", agent=config.name, tool=name)
            result = await tool.execute(args)
            response = result.to_response()
        return {"function_response": {"name": name, "response": response}}
