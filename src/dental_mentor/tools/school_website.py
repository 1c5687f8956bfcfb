"""Official website lookup for dental schools."""

from typing import Optional, Tuple

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult

logger = structlog.get_logger()

SCHOOL_WEBSITES: Tuple[Tuple[str, str], ...] = (
    ("UCLA", "https://dentistry.ucla.edu"),
    ("USC", "https://dentistry.usc.edu"),
    ("UCSF", "https://dentistry.ucsf.edu"),
    ("University of Pennsylvania", "https://www.dental.upenn.edu"),
    ("Harvard", "https://hsdm.harvard.edu"),
    ("Columbia", "https://www.dental.columbia.edu"),
    ("NYU", "https://dental.nyu.edu"),
    ("Boston University", "https://www.bu.edu/dental"),
    ("Tufts", "https://dental.tufts.edu"),
    ("University of Michigan", "https://dentistry.umich.edu"),
    ("University of North Carolina", "https://www.dentistry.unc.edu"),
    ("University of Florida", "https://dental.ufl.edu"),
    ("University of Illinois Chicago", "https://dentistry.uic.edu"),
    ("University of Pittsburgh", "https://www.dental.pitt.edu"),
    ("Temple University", "https://dentistry.temple.edu"),
    ("Nova Southeastern", "https://dental.nova.edu"),
    ("Midwestern University", "https://www.midwestern.edu/academics/dentistry"),
    ("Loma Linda", "https://dentistry.llu.edu"),
    ("University of the Pacific", "https://dental.pacific.edu"),
    ("Creighton", "https://dentistry.creighton.edu"),
    ("Marquette", "https://www.marquette.edu/dentistry"),
    ("University of Connecticut", "https://health.uconn.edu/dental-medicine"),
    ("University of Washington", "https://dental.washington.edu"),
    ("University of Iowa", "https://dentistry.uiowa.edu"),
    ("Ohio State", "https://dentistry.osu.edu"),
    ("Case Western", "https://case.edu/dental"),
    ("University of Maryland", "https://www.dental.umaryland.edu"),
    ("University of Louisville", "https://louisville.edu/dentistry"),
    ("University of Tennessee", "https://www.uthsc.edu/dentistry"),
    ("University of Texas", "https://dentistry.uth.edu"),
    ("Texas A&M", "https://dentistry.tamhsc.edu"),
    ("Augusta University", "https://www.augusta.edu/dentalmedicine"),
    ("Medical University of South Carolina", "https://medicine.musc.edu/departments/otd"),
    ("A.T. Still University", "https://www.atsu.edu/arizona-school-of-dentistry-oral-health"),
    ("Stony Brook", "https://dentistry.stonybrookmedicine.edu"),
    ("Rutgers", "https://sdm.rutgers.edu"),
    ("University of Nebraska", "https://www.unmc.edu/dentistry"),
    ("University of Minnesota", "https://www.dentistry.umn.edu"),
    ("University of Missouri-Kansas City", "https://dentistry.umkc.edu"),
    ("University of Oklahoma", "https://dentistry.ouhsc.edu"),
    ("University of Colorado", "https://www.cuanschutz.edu/dentalmedicine"),
    ("Oregon Health & Science University", "https://www.ohsu.edu/school-of-dentistry"),
)


def find_website(school_name: str) -> Optional[str]:
    search = school_name.lower().strip()
    if not search:
        return None
    for name, url in SCHOOL_WEBSITES:
        known = name.lower()
        if known in search or search in known:
            return url
    return None


class SchoolWebsiteParams(ToolParams):
    schoolName: str = Field(
        description=(
            'The full name of the dental school (e.g., "UCLA School of Dentistry", '
            '"University of Pennsylvania School of Dental Medicine")'
        )
    )


class SchoolWebsiteTool(BaseTool):
    name = "find_school_website"
    description = (
        "Find the official website URL for a dental school. Use this tool when you need to provide "
        "the official website link for a dental school. Always use it at the end of your response."
    )
    params_model = SchoolWebsiteParams

    async def run(self, params: SchoolWebsiteParams) -> ToolResult:
        url = find_website(params.schoolName)
        logger.info("school_website_lookup", school=params.schoolName, found=url is not None)
        if url:
            return ToolResult(
                data={
                    "success": True,
                    "schoolName": params.schoolName,
                    "websiteUrl": url,
                    "message": f"Found official website for {params.schoolName}",
                }
            )
        return ToolResult(
            data={
                "success": False,
                "schoolName": params.schoolName,
                "websiteUrl": None,
                "message": "Could not find the official website in our database.",
            }
        )
