"""Search over the admissions FAQ document."""

import re
from typing import List

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult
from .cache import DocumentSource

logger = structlog.get_logger()

_ALL_CAPS = re.compile(r"^[A-Z][A-Z\s]+$")
_NUMBERED = re.compile(r"^Q:|^Question:|^\d+\.")


def _looks_like_question(line: str) -> bool:
    return line.endswith("?") or bool(_ALL_CAPS.match(line)) or bool(_NUMBERED.match(line))


def search_faq(content: str, query: str) -> str:
    """Return FAQ sections whose question line matches ``query``.

    A section is a question-looking line plus the lines after it up to the
    next blank line or question. When nothing matches the whole document is
    returned so the model can search it itself.
    """
    normalized = query.lower().strip()
    words = [w for w in normalized.split() if len(w) > 3]
    sections: List[str] = []
    current: List[str] = []
    title = ""
    relevant = False

    def flush() -> None:
        if relevant and current:
            sections.append(f"**{title}**\n" + "\n".join(current))

    for raw in content.split("\n"):
        line = raw.strip()
        if not line:
            flush()
            current, relevant = [], False
            continue
        if _looks_like_question(line):
            flush()
            lowered = line.lower()
            relevant = normalized in lowered or any(w in lowered for w in words)
            title, current = line, []
        elif relevant:
            current.append(line)
    flush()

    if not sections:
        logger.info("faq_no_sections_matched", query=query)
        return content
    logger.info("faq_sections_matched", query=query, count=len(sections))
    return "\n\n---\n\n".join(sections)


class FaqParams(ToolParams):
    query: str = Field(
        description=(
            'The question or topic to search for in the FAQ (e.g., "discount codes", '
            '"DAT score requirements", "personal statement tips")'
        )
    )


class FaqTool(BaseTool):
    name = "search_faq"
    description = (
        "Search through frequently asked questions about dental school admissions: the application "
        "process, DAT preparation, GPA requirements, personal statements, interviews, volunteering, "
        "shadowing, letters of recommendation, timelines, financial aid, scholarships, discount codes "
        "and resources. Use it for common admissions questions and whenever the user asks about "
        "discount codes or specific programs. Returns the FAQ sections that match the query."
    )
    params_model = FaqParams

    def __init__(self, source: DocumentSource) -> None:
        self.source = source

    async def run(self, params: FaqParams) -> ToolResult:
        content = await self.source.get_text()
        relevant = search_faq(content, params.query)
        if not relevant.strip():
            return ToolResult(
                data={
                    "success": False,
                    "query": params.query,
                    "message": f'No FAQ content found for "{params.query}". The FAQ may not cover this topic yet.',
                    "content": "",
                }
            )
        return ToolResult(
            data={
                "success": True,
                "query": params.query,
                "content": relevant,
                "message": f'Found relevant FAQ information for "{params.query}"',
            }
        )
