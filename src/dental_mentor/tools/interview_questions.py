"""School-specific interview questions from the interview prep document."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult
from .cache import DocumentSource

logger = structlog.get_logger()

SCHOOL_ABBREVIATIONS = {
    "asdoh": "A.T. Still University",
    "at still": "A.T. Still University",
    "mosdoh": "A.T. Still University",
    "atsu": "A.T. Still University",
    "dcg": "Augusta University",
    "augusta": "Augusta University",
    "bu": "Boston University",
    "boston": "Boston University",
    "nyu": "New York University",
    "ucla": "UCLA",
    "usc": "USC",
    "ucsf": "UCSF",
    "upenn": "University of Pennsylvania",
    "penn": "University of Pennsylvania",
    "tufts": "Tufts University",
    "harvard": "Harvard",
    "columbia": "Columbia",
    "uconn": "University of Connecticut",
    "umich": "University of Michigan",
    "michigan": "University of Michigan",
    "unc": "University of North Carolina",
    "uf": "University of Florida",
    "florida": "University of Florida",
    "uic": "University of Illinois Chicago",
    "pitt": "University of Pittsburgh",
    "pittsburgh": "University of Pittsburgh",
    "temple": "Temple University",
    "nova": "Nova Southeastern",
    "midwestern": "Midwestern University",
    "loma linda": "Loma Linda",
    "pacific": "University of the Pacific",
    "uop": "University of the Pacific",
    "creighton": "Creighton University",
    "marquette": "Marquette University",
}

_ABBREVIATION = re.compile(r"\(([^)]+)\)")
_TRAILING_ABBREVIATION = re.compile(r"\s*\([^)]+\)\s*$")
_NUMBERED = re.compile(r"^\d+[).]")


@dataclass
class SchoolQuestions:
    full_name: str
    abbreviation: Optional[str] = None
    questions: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.full_name} ({self.abbreviation})" if self.abbreviation else self.full_name


def expand_school_name(name: str) -> str:
    return SCHOOL_ABBREVIATIONS.get(name.lower().strip(), name)


def _is_school_header(line: str) -> bool:
    if any(marker in line for marker in ("University", "College", "School of Dentistry", "Dental")):
        return True
    if line[:1].isupper() and "–" in line:
        return True
    return line[:1].isupper() and "(" in line and ")" in line


def parse_interview_doc(content: str) -> List[SchoolQuestions]:
    """Split the document into school headers, each followed by its questions."""
    schools: List[SchoolQuestions] = []
    current: Optional[SchoolQuestions] = None
    for raw in content.split("\n"):
        line = raw.strip()
        if not line:
            continue
        if _is_school_header(line):
            if current and current.questions:
                schools.append(current)
            match = _ABBREVIATION.search(line)
            if match:
                current = SchoolQuestions(_TRAILING_ABBREVIATION.sub("", line).strip(), match.group(1))
            else:
                current = SchoolQuestions(line)
        elif current is not None:
            current.questions.append(line)
    if current and current.questions:
        schools.append(current)
    logger.info("interview_doc_parsed", schools=len(schools))
    return schools


def find_school(schools: List[SchoolQuestions], search: str) -> Optional[SchoolQuestions]:
    normalized = search.lower().strip()
    if not normalized:
        return None
    for school in schools:
        full = school.full_name.lower()
        if normalized in full or full in normalized:
            return school
        if school.abbreviation and school.abbreviation.lower() == normalized:
            return school

    search_words = [w for w in normalized.split() if len(w) > 3]
    if not search_words:
        return None
    for school in schools:
        school_words = school.full_name.lower().split()
        matches = sum(1 for sw in search_words if any(w in sw or sw in w for w in school_words))
        if matches >= min(2, len(search_words)):
            return school
    return None


class InterviewQuestionsParams(ToolParams):
    schoolName: str = Field(
        description=(
            "The name or abbreviation of the dental school to get interview questions for "
            '(e.g., "UCLA", "University of Pennsylvania", "USC")'
        )
    )


class InterviewQuestionsTool(BaseTool):
    name = "get_interview_questions"
    description = (
        "Get dental school interview practice questions for a specific school. Accepts full names, "
        "common short names or abbreviations (abbreviations are expanded automatically). Returns the "
        "school's questions: why-this-school, ethical scenarios, personal background and situational "
        "questions. Returns an empty result when the school is not in the database."
    )
    params_model = InterviewQuestionsParams

    def __init__(self, source: DocumentSource) -> None:
        self.source = source

    async def run(self, params: InterviewQuestionsParams) -> ToolResult:
        expanded = expand_school_name(params.schoolName)
        schools = await self.source.get_parsed(parse_interview_doc)

        school = find_school(schools, expanded)
        if school is None and expanded != params.schoolName:
            school = find_school(schools, params.schoolName)

        if school is None:
            logger.info("interview_school_not_found", school=expanded)
            return ToolResult(
                data={
                    "success": False,
                    "schoolName": expanded,
                    "message": (
                        f'No interview questions found for "{expanded}". The school may not be in our '
                        "database yet, or try using a different name variation."
                    ),
                    "questions": "",
                    "availableSchools": [{"name": s.full_name, "abbreviation": s.abbreviation} for s in schools],
                }
            )

        numbered = "\n".join(
            q if _NUMBERED.match(q) else f"{i}) {q}" for i, q in enumerate(school.questions, start=1)
        )
        return ToolResult(
            data={
                "success": True,
                "schoolName": school.full_name,
                "abbreviation": school.abbreviation,
                "questions": numbered,
                "questionCount": len(school.questions),
                "message": f"Found {len(school.questions)} interview questions for {school.label}",
            }
        )
