"""Tests for the agent tools and their document parsers."""

import httpx
import pytest

from dental_mentor.tools.base import BaseTool, ToolParams, ToolResult
from dental_mentor.tools.cache import DocumentSource, TTLCache
from dental_mentor.tools.essay import EssayScoringTool
from dental_mentor.tools.faq import FaqTool, search_faq
from dental_mentor.tools.interview_questions import (
    InterviewQuestionsTool,
    expand_school_name,
    find_school,
    parse_interview_doc,
)
from dental_mentor.tools.school_sheet import SchoolSheetTool, parse_sheet, search_rows
from dental_mentor.tools.school_website import SchoolWebsiteTool, find_website
from dental_mentor.tools.volunteer import VolunteerTool, filter_by_type, parse_opportunities

SHEET_CSV = """School,City,State,Mean GPA,Mean DAT AA
UCLA School of Dentistry,Los Angeles,CA,3.7,22
"Harvard School of Dental Medicine",Boston,MA,3.9,24

Tufts University School of Dental Medicine,Boston,MA,3.5,20
"""

FAQ_TEXT = """DO YOU HAVE DISCOUNT CODES
Yes, use DENTAL10 for 10% off Bootcamp.

How important is shadowing?
Most schools want 100 hours.
Aim for variety.

When should I take the DAT?
Take it before June.
"""

INTERVIEW_DOC = """Interview Questions by School

University of Pennsylvania (Penn)
Why Penn?
Tell me about a time you failed.

UCLA – School of Dentistry
Why UCLA?
1) Describe a leadership experience.
How do you handle stress?
"""

VOLUNTEER_DOC = """Soldiers' Angels: (remote) - Write letters to deployed service members.
Great for flexible schedules.
Website link: https://soldiersangels.org

Food Bank: (in-person) - Sort and pack food donations.
Website link
www.foodbank.org

Crisis Text Line: (both) - Support people in crisis over text.
"""


def _source(text: str, name: str = "doc") -> DocumentSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=text)))
    return DocumentSource(name, f"https://docs.test/{name}", TTLCache(60), client)


class _EchoParams(ToolParams):
    word: str


class _EchoTool(BaseTool):
    name = "echo"
    description = "Echoes a word"
    params_model = _EchoParams

    async def run(self, params: _EchoParams) -> ToolResult:
        if params.word == "boom":
            raise RuntimeError("exploded")
        return ToolResult(data={"word": params.word})


@pytest.mark.asyncio
async def test_base_tool_validates_and_catches_errors():
    tool = _EchoTool()
    assert (await tool.execute({"word": "hi"})).to_response() == {"word": "hi"}

    invalid = await tool.execute({})
    assert not invalid.success
    assert invalid.to_response()["success"] is False

    failed = await tool.execute({"word": "boom"})
    assert failed.error == "echo failed: exploded"


def test_declarations_use_gemini_schema():
    declaration = VolunteerTool(_source("")).declaration()
    assert declaration["name"] == "get_volunteer_opportunities"
    parameters = declaration["parameters"]
    assert parameters["type"] == "OBJECT"
    assert parameters["required"] == ["type"]
    assert parameters["properties"]["type"]["enum"] == ["remote", "in-person", "all"]
    assert parameters["properties"]["limit"]["type"] == "INTEGER"
    assert "title" not in parameters["properties"]["limit"]


def test_search_rows_matches_any_column():
    rows = parse_sheet(SHEET_CSV)
    assert len(rows) == 3
    result = search_rows(rows, "Boston schools")
    assert "Found 2 matching school(s)" in result
    assert "### Harvard School of Dental Medicine" in result
    assert "**Mean GPA**: 3.9" in result


def test_search_rows_no_match_lists_schools():
    result = search_rows(parse_sheet(SHEET_CSV), "Alaska")
    assert result.startswith('No matching information found for "Alaska".')
    assert "- UCLA School of Dentistry" in result


@pytest.mark.asyncio
async def test_school_sheet_tool():
    result = await SchoolSheetTool(_source(SHEET_CSV)).execute({"query": "UCLA"})
    assert result.data["rowCount"] == 3
    assert "Los Angeles" in result.data["results"]


@pytest.mark.asyncio
async def test_school_website_tool():
    assert find_website("UCLA School of Dentistry") == "https://dentistry.ucla.edu"
    assert find_website("harvard") == "https://hsdm.harvard.edu"
    assert find_website("") is None

    found = await SchoolWebsiteTool().execute({"schoolName": "Tufts University School of Dental Medicine"})
    assert found.data["websiteUrl"] == "https://dental.tufts.edu"
    missing = await SchoolWebsiteTool().execute({"schoolName": "Hogwarts"})
    assert missing.data["success"] is False


def test_search_faq_sections():
    result = search_faq(FAQ_TEXT, "shadowing")
    assert result == "**How important is shadowing?**\nMost schools want 100 hours.\nAim for variety."


def test_search_faq_word_match_and_fallback():
    assert "DENTAL10" in search_faq(FAQ_TEXT, "discount codes")
    assert search_faq(FAQ_TEXT, "tuition") == FAQ_TEXT


@pytest.mark.asyncio
async def test_faq_tool():
    result = await FaqTool(_source(FAQ_TEXT)).execute({"query": "DAT"})
    assert result.data["success"] is True
    assert "Take it before June." in result.data["content"]


def test_parse_interview_doc():
    schools = parse_interview_doc(INTERVIEW_DOC)
    assert [(s.full_name, s.abbreviation) for s in schools] == [
        ("University of Pennsylvania", "Penn"),
        ("UCLA – School of Dentistry", None),
    ]
    assert schools[0].questions == ["Why Penn?", "Tell me about a time you failed."]


def test_find_school_by_abbreviation_and_words():
    schools = parse_interview_doc(INTERVIEW_DOC)
    assert expand_school_name("UPenn") == "University of Pennsylvania"
    assert expand_school_name("Some College") == "Some College"
    assert find_school(schools, "penn").full_name == "University of Pennsylvania"
    assert find_school(schools, "ucla").full_name.startswith("UCLA")
    assert find_school(schools, "Pennsylvania University").full_name == "University of Pennsylvania"
    assert find_school(schools, "Harvard") is None


@pytest.mark.asyncio
async def test_interview_questions_tool_numbers_questions():
    tool = InterviewQuestionsTool(_source(INTERVIEW_DOC))
    result = await tool.execute({"schoolName": "UCLA"})
    assert result.data["success"] is True
    assert result.data["questions"] == (
        "1) Why UCLA?\n1) Describe a leadership experience.\n3) How do you handle stress?"
    )

    missing = await tool.execute({"schoolName": "Harvard"})
    assert missing.data["success"] is False
    assert len(missing.data["availableSchools"]) == 2


def test_parse_opportunities():
    opportunities = parse_opportunities(VOLUNTEER_DOC)
    assert [(o.name, o.type) for o in opportunities] == [
        ("Soldiers' Angels", "remote"),
        ("Food Bank", "in-person"),
        ("Crisis Text Line", "both"),
    ]
    assert opportunities[0].description == "Write letters to deployed service members. Great for flexible schedules."
    assert opportunities[0].websiteLink == "https://soldiersangels.org"
    assert opportunities[1].websiteLink == "https://www.foodbank.org"
    assert opportunities[2].websiteLink is None


def test_both_matches_every_filter():
    opportunities = parse_opportunities(VOLUNTEER_DOC)
    assert [o.name for o in filter_by_type(opportunities, "remote")] == ["Soldiers' Angels", "Crisis Text Line"]
    assert [o.name for o in filter_by_type(opportunities, "in-person")] == ["Food Bank", "Crisis Text Line"]
    assert len(filter_by_type(opportunities, "all")) == 3


@pytest.mark.asyncio
async def test_volunteer_tool_limit_and_invalid_type():
    tool = VolunteerTool(_source(VOLUNTEER_DOC))
    result = await tool.execute({"type": "all", "limit": 2})
    assert result.data["totalCount"] == 3
    assert result.data["returnedCount"] == 2

    invalid = await tool.execute({"type": "hybrid"})
    assert invalid.error is not None


@pytest.mark.asyncio
async def test_essay_tool():
    result = await EssayScoringTool().execute({"essayText": "I want to be a dentist."})
    assert result.data == {"status": "ready_for_analysis", "essayLength": 23, "wordCount": 6}
