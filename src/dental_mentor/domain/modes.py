"""Agent modes and the per-mode literals shared by storage and the UI."""

from enum import Enum
from typing import FrozenSet, Optional


class AgentMode(str, Enum):
    """Named persona/tool configurations selectable per turn."""

    GENERAL = "General"
    SCHOOL_INFO = "School Info"
    ESSAY_FEEDBACK = "Essay feedback"
    INTERVIEW_DRILL = "Interview Drill"
    VOLUNTEER_IDEAS = "Volunteer Ideas"

    @classmethod
    def resolve(cls, name: Optional[str]) -> "AgentMode":
        """Map a mode name to a mode; unknown or absent names mean the general mentor."""
        if name:
            for mode in cls:
                if mode.value == name:
                    return mode
        return cls.GENERAL

    @property
    def metadata_value(self) -> str:
        """Value stored in conversation metadata under ``agentMode``."""
        return "regular" if self is AgentMode.GENERAL else self.value

    @property
    def default_title(self) -> str:
        """Title given to a conversation created lazily by a chat turn."""
        return _DEFAULT_TITLES[self]


_DEFAULT_TITLES = {
    AgentMode.GENERAL: "Chat with Eden",
    AgentMode.SCHOOL_INFO: "School Info Chat",
    AgentMode.ESSAY_FEEDBACK: "Essay Feedback",
    AgentMode.INTERVIEW_DRILL: "Interview Practice",
    AgentMode.VOLUNTEER_IDEAS: "Volunteer Ideas",
}

# Welcome text rendered by the UI for a new chat. These must match the UI
# strings byte for byte or the history filter stops working.
GENERAL_GREETING = "Let's get you into dental school! How can I help you today?"
INTERVIEW_GREETING = (
    "Ready to practice your dental school interview? Share the school name you're "
    "interviewing for, and I'll help you prepare with common interview questions and expert tips!"
)
SCHOOL_INFO_GREETING = (
    "Looking for information about dental schools? Tell me which school you're interested in, "
    "and I'll provide detailed insights about their programs, requirements, and more!"
)
ESSAY_GREETING = (
    "Let's perfect your dental school personal statement! Upload or paste your essay, "
    "and I'll provide comprehensive feedback to make it shine."
)

CANNED_GREETINGS: FrozenSet[str] = frozenset(
    [GENERAL_GREETING, INTERVIEW_GREETING, SCHOOL_INFO_GREETING, ESSAY_GREETING]
)

SOURCES_MARKER = "📚 Sources:"
