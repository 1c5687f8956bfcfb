"""Volunteer opportunity ideas from the curated volunteer document."""

import re
from dataclasses import asdict, dataclass
from typing import List, Literal, Optional

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult
from .cache import DocumentSource

logger = structlog.get_logger()

_HEADER = re.compile(r"^(.+?):\s*\((remote|in-person|both)\)\s*[-–]?\s*(.*)$", re.IGNORECASE)
_INLINE_LINK = re.compile(r"website link[:\s]*(https?://\S+|www\.\S+)", re.IGNORECASE)


@dataclass
class VolunteerOpportunity:
    name: str
    type: str
    description: str = ""
    websiteLink: Optional[str] = None


def _is_url(text: str) -> bool:
    return text.startswith(("http://", "https://", "www."))


def _normalize_url(url: str) -> str:
    return url if url.startswith("http") else f"https://{url}"


def parse_opportunities(content: str) -> List[VolunteerOpportunity]:
    """Parse ``Name: (type) - description`` entries and their website links."""
    lines = content.split("\n")
    opportunities: List[VolunteerOpportunity] = []
    current: Optional[VolunteerOpportunity] = None
    collecting = False
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1
        if not line:
            collecting = False
            continue

        if "website link" in line.lower():
            if current is not None:
                inline = _INLINE_LINK.search(line)
                if inline:
                    current.websiteLink = _normalize_url(inline.group(1))
                elif i < len(lines) and _is_url(lines[i].strip()):
                    current.websiteLink = _normalize_url(lines[i].strip())
                    i += 1
            collecting = False
            continue

        if current is not None and _is_url(line):
            current.websiteLink = _normalize_url(line)
            collecting = False
            continue

        header = _HEADER.match(line)
        if header:
            if current is not None:
                opportunities.append(current)
            name, kind, description = header.groups()
            current = VolunteerOpportunity(name=name.strip(), type=kind.lower(), description=description.strip())
            collecting = True
        elif collecting and current is not None:
            current.description = f"{current.description} {line}".strip()

    if current is not None:
        opportunities.append(current)
    logger.info("volunteer_doc_parsed", opportunities=len(opportunities))
    return opportunities


def filter_by_type(opportunities: List[VolunteerOpportunity], kind: str) -> List[VolunteerOpportunity]:
    if kind == "all":
        return list(opportunities)
    return [o for o in opportunities if o.type in (kind, "both")]


class VolunteerParams(ToolParams):
    type: Literal["remote", "in-person", "all"] = Field(
        description='Filter opportunities by type: "remote", "in-person", or "all"'
    )
    limit: int = Field(default=5, description="Maximum number of opportunities to return (default: 5)")


class VolunteerTool(BaseTool):
    name = "get_volunteer_opportunities"
    description = (
        "Get volunteer opportunity ideas for dental school applicants from a curated database. Each "
        "opportunity includes a name, description, type (remote, in-person, or both) and a website "
        "link when available. Use it to find opportunities matching the user's preference for remote "
        "or in-person work."
    )
    params_model = VolunteerParams

    def __init__(self, source: DocumentSource) -> None:
        self.source = source

    async def run(self, params: VolunteerParams) -> ToolResult:
        opportunities = await self.source.get_parsed(parse_opportunities)
        matching = filter_by_type(opportunities, params.type)
        label = "" if params.type == "all" else f"{params.type} "
        if not matching:
            return ToolResult(
                data={
                    "success": False,
                    "message": f"No {label}volunteer opportunities found in the database.",
                    "opportunities": [],
                }
            )
        selected = matching[: max(params.limit, 0)]
        return ToolResult(
            data={
                "success": True,
                "message": f"Found {len(matching)} {label}volunteer opportunities",
                "opportunities": [asdict(o) for o in selected],
                "totalCount": len(matching),
                "returnedCount": len(selected),
            }
        )
