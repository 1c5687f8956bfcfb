"""Keyword-based intent classification for chat turns."""

from typing import Callable, List, Optional, Sequence, Tuple

import structlog

from ..domain.models import ChatMessage, Role
from ..domain.modes import AgentMode

logger = structlog.get_logger()

ESSAY_PHRASES = (
    "personal statement",
    "personal essay",
    "ps for dental",
    "edit my essay",
    "review my essay",
)
INTERVIEW_PHRASES = ("mock interview", "mmi")
INTERVIEW_QUALIFIERS = ("practice", "prep", "question")
VOLUNTEER_PHRASES = ("volunteer", "volunteering", "community service", "service hours")
SCHOOL_KEYWORDS = (
    "gpa",
    "dat",
    "prereq",
    "prerequisite",
    "requirements",
    "requirement",
    "acceptance rate",
    "class size",
    "tuition",
    "deadline",
    "application deadline",
    "stats",
    "statistics",
    "average dat",
    "average gpa",
)

Predicate = Callable[[str], bool]


def _contains_any(phrases: Sequence[str]) -> Predicate:
    return lambda text: any(phrase in text for phrase in phrases)


def _is_interview(text: str) -> bool:
    if any(phrase in text for phrase in INTERVIEW_PHRASES):
        return True
    return "interview" in text and any(q in text for q in INTERVIEW_QUALIFIERS)


# Evaluated top to bottom, first match wins. Order matters: essay requests
# often mention interviews and school stats, and "interview" alone is too
# ambiguous to route on.
RULES: List[Tuple[Predicate, AgentMode]] = [
    (_contains_any(ESSAY_PHRASES), AgentMode.ESSAY_FEEDBACK),
    (_is_interview, AgentMode.INTERVIEW_DRILL),
    (_contains_any(VOLUNTEER_PHRASES), AgentMode.VOLUNTEER_IDEAS),
    (_contains_any(SCHOOL_KEYWORDS), AgentMode.SCHOOL_INFO),
]


def infer_mode(content: str) -> Optional[AgentMode]:
    """Return the mode whose keywords match ``content``, or None."""
    text = content.lower()
    for predicate, mode in RULES:
        if predicate(text):
            return mode
    return None


def select_mode(explicit_mode: Optional[str], messages: Sequence[ChatMessage]) -> Optional[str]:
    """Pick the mode name for a turn.

    An explicit mode always wins. Otherwise the last message is classified,
    but only when it is a user message with string content. Returns None
    when nothing applies, which resolves to the general mentor.
    """
    if explicit_mode:
        return explicit_mode
    if not messages:
        return None
    last = messages[-1]
    if last.role != Role.USER or not isinstance(last.content, str):
        return None
    inferred = infer_mode(last.content)
    if inferred is not None:
        logger.info("agent_mode_inferred", mode=inferred.value)
        return inferred.value
    return None
