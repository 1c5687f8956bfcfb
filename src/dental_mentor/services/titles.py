"""Short conversation titles generated from the opening user messages."""

from typing import List

import structlog

from ..domain.models import Message
from .llm import LLMService

logger = structlog.get_logger()

MAX_TITLE_LENGTH = 100


class NotEnoughMessages(Exception):
    """The conversation has no user messages to summarize."""


def build_prompt(messages: List[Message]) -> str:
    lines = "\n".join(m.text for m in messages if m.text)
    return (
        "Based on these user messages, generate a short chat title with NO MORE THAN 6 WORDS. "
        "Only return the title, nothing else.\n\n"
        f"User messages:\n{lines}\n\n"
        "Title (max 6 words):"
    )


def clean_title(raw: str) -> str:
    title = raw.strip().splitlines()[0].strip() if raw.strip() else ""
    title = title.strip("\"'`").strip().rstrip(".")
    return title[:MAX_TITLE_LENGTH]


class TitleGenerator:
    def __init__(self, llm: LLMService, model: str) -> None:
        self.llm = llm
        self.model = model

    async def generate(self, messages: List[Message]) -> str:
        if not [m for m in messages if m.text]:
            raise NotEnoughMessages("Not enough messages")
        title = clean_title(await self.llm.generate_text(self.model, build_prompt(messages)))
        logger.info("title_generated", conversation_id=messages[0].conversation_id, length=len(title))
        return title
