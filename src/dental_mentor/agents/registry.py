"""Maps each agent mode to its persona, model and tools."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import httpx
import structlog

from ..config import Settings
from ..domain.modes import AgentMode
from ..tools.base import BaseTool
from ..tools.cache import DocumentSource, TTLCache, doc_export_url, sheet_csv_url
from ..tools.essay import EssayScoringTool
from ..tools.faq import FaqTool
from ..tools.interview_questions import InterviewQuestionsTool
from ..tools.school_sheet import SchoolSheetTool
from ..tools.school_website import SchoolWebsiteTool
from ..tools.volunteer import VolunteerTool
from . import instructions

logger = structlog.get_logger()


@dataclass
class AgentConfig:
    name: str
    model: str
    instructions: str
    tools: List[BaseTool] = field(default_factory=list)
    use_retriever: bool = False

    def declarations(self) -> List[dict]:
        return [tool.declaration() for tool in self.tools]

    def tool(self, name: str) -> Optional[BaseTool]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


class AgentRegistry:
    """Holds one configuration per mode. Tools sharing a document share its cache."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        document_cache: TTLCache = TTLCache(settings.document_cache_ttl)
        sheet = DocumentSource(
            "school_sheet",
            sheet_csv_url(settings.school_sheet_id, settings.school_sheet_name),
            document_cache,
            client,
        )
        faq = DocumentSource("faq", doc_export_url(settings.faq_doc_id), TTLCache(settings.faq_cache_ttl), client)
        interview = DocumentSource("interview_questions", doc_export_url(settings.interview_doc_id), document_cache, client)
        volunteer = DocumentSource("volunteer", doc_export_url(settings.volunteer_doc_id), document_cache, client)

        school_tool = SchoolSheetTool(sheet)
        volunteer_tool = VolunteerTool(volunteer)

        self._configs: Dict[AgentMode, AgentConfig] = {
            AgentMode.GENERAL: AgentConfig(
                name="Eden - Dental Mentor AI",
                model=settings.general_model,
                instructions=instructions.GENERAL,
                tools=[school_tool, FaqTool(faq), volunteer_tool],
                use_retriever=True,
            ),
            AgentMode.SCHOOL_INFO: AgentConfig(
                name="Eden - School Info Specialist",
                model=settings.school_info_model,
                instructions=instructions.SCHOOL_INFO,
                tools=[school_tool, SchoolWebsiteTool()],
            ),
            AgentMode.ESSAY_FEEDBACK: AgentConfig(
                name="Eden - Essay Feedback Specialist",
                model=settings.essay_feedback_model,
                instructions=instructions.ESSAY_FEEDBACK,
                tools=[EssayScoringTool()],
            ),
            AgentMode.INTERVIEW_DRILL: AgentConfig(
                name="Coach - Interview Drill Specialist",
                model=settings.interview_drill_model,
                instructions=instructions.INTERVIEW_DRILL,
                tools=[InterviewQuestionsTool(interview)],
            ),
            AgentMode.VOLUNTEER_IDEAS: AgentConfig(
                name="Eden - Volunteer Coordinator",
                model=settings.volunteer_model,
                instructions=instructions.VOLUNTEER,
                tools=[volunteer_tool],
            ),
        }

    def resolve(self, mode: Union[AgentMode, str, None]) -> AgentConfig:
        """Return the configuration for ``mode``; unknown names get the general mentor."""
        if not isinstance(mode, AgentMode):
            resolved = AgentMode.resolve(mode)
            if mode and resolved is AgentMode.GENERAL and mode != AgentMode.GENERAL.value:
                logger.warning("unknown_agent_mode", mode=mode)
            mode = resolved
        return self._configs[mode]

    def modes(self) -> List[AgentMode]:
        return list(self._configs)
