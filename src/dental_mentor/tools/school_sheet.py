"""Dental school statistics lookup over the public stats spreadsheet."""

import csv
from typing import Dict, List

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult
from .cache import DocumentSource

logger = structlog.get_logger()

SheetRow = Dict[str, str]


def parse_sheet(csv_text: str) -> List[SheetRow]:
    """Parse CSV text into header-keyed rows; blank lines are skipped."""
    lines = [line for line in csv_text.splitlines() if line.strip()]
    if not lines:
        return []
    reader = csv.reader(lines)
    headers = [h.strip() for h in next(reader)]
    rows = []
    for values in reader:
        values = [v.strip() for v in values]
        rows.append({header: values[i] if i < len(values) else "" for i, header in enumerate(headers)})
    return rows


def search_rows(rows: List[SheetRow], query: str) -> str:
    """Markdown profiles for every row containing at least one query word."""
    words = [w for w in query.lower().split() if len(w) > 2]
    results = []
    for index, row in enumerate(rows):
        row_text = " ".join(row.values()).lower()
        score = sum(1 for word in words if word in row_text)
        if score == 0:
            continue
        fields = "\n".join(f"**{key}**: {value}" for key, value in row.items() if value.strip())
        results.append(f"### {row.get('School') or f'School {index + 1}'}\n{fields}")

    if not results:
        names = [r["School"] for r in rows[:5] if r.get("School")]
        listing = "\n".join(f"- {name}" for name in names)
        return (
            f'No matching information found for "{query}".\n\n'
            f"Available schools in database include:\n{listing}\n\n"
            "Please try searching by school name."
        )
    return f"Found {len(results)} matching school(s):\n\n" + "\n\n---\n\n".join(results)


class SchoolSheetParams(ToolParams):
    query: str = Field(
        description=(
            "The search query - school name (full or abbreviation), location, or specific data field. "
            'Examples: "UCLA", "University of California Los Angeles", "California schools", "mean GPA"'
        )
    )


class SchoolSheetTool(BaseTool):
    name = "search_dental_schools"
    description = (
        "Search through the dental school information database. Use this tool to find information "
        "about specific dental schools, their requirements, statistics, application details, or any "
        "other school-related data. The search matches any part of any column, so abbreviations like "
        '"UCLA", full university names, and city or state names all work. Returns complete school '
        "profiles with all available data."
    )
    params_model = SchoolSheetParams

    def __init__(self, source: DocumentSource) -> None:
        self.source = source

    async def run(self, params: SchoolSheetParams) -> ToolResult:
        logger.info("school_sheet_search", query=params.query)
        rows = await self.source.get_parsed(parse_sheet)
        return ToolResult(data={"query": params.query, "results": search_rows(rows, params.query), "rowCount": len(rows)})
