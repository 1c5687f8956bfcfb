"""Rebuilds the message context sent to an agent for one turn."""

from typing import Dict, List, Sequence

import structlog

from ..domain.models import ChatMessage, Role
from ..domain.modes import CANNED_GREETINGS, AgentMode
from ..repositories.base import Repository

logger = structlog.get_logger()

SCHOOL_INFO_REMINDER = (
    "CONVERSATION CONTEXT: The user has been discussing specific schools in this conversation. "
    "Review the previous messages carefully to understand which school they are referring to. "
    "If they ask a follow-up question without mentioning a school name, extract the school name "
    "from the previous messages and use it in your search."
)
CONTINUATION_REMINDER = (
    "CONVERSATION CONTEXT: This is a continuation of an ongoing conversation. Review the previous "
    "messages to understand the context and provide relevant follow-up responses."
)


def context_reminder(mode: AgentMode) -> Dict[str, str]:
    content = SCHOOL_INFO_REMINDER if mode is AgentMode.SCHOOL_INFO else CONTINUATION_REMINDER
    return {"role": Role.SYSTEM.value, "content": content}


def is_canned_greeting(role: str, text: str) -> bool:
    return role == Role.ASSISTANT.value and text in CANNED_GREETINGS


class HistoryLoader:
    """Loads persisted history and merges it with the incoming messages."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def load(
        self,
        conversation_id: str,
        mode: AgentMode,
        new_messages: Sequence[ChatMessage],
    ) -> List[Dict[str, str]]:
        """Return ``[reminder, *history, *new_messages]`` as role/content dicts.

        Falls back to just the new messages when the conversation has no
        stored history or the store cannot be read.
        """
        incoming = [{"role": m.role.value, "content": m.text} for m in new_messages]
        try:
            stored = await self.repository.list_messages(conversation_id)
        except Exception as e:
            logger.error("history_load_failed", conversation_id=conversation_id, error=str(e))
            return incoming

        if not stored:
            logger.info("history_empty", conversation_id=conversation_id)
            return incoming

        history = [
            {"role": message.role.value, "content": message.text}
            for message in stored
            if not is_canned_greeting(message.role.value, message.text)
        ]
        logger.info(
            "history_loaded",
            conversation_id=conversation_id,
            mode=mode.value,
            stored=len(stored),
            kept=len(history),
        )
        return [context_reminder(mode), *history, *incoming]
