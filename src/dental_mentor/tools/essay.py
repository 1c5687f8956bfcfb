"""Essay scoring scaffold for the essay feedback agent."""

import structlog
from pydantic import Field

from .base import BaseTool, ToolParams, ToolResult

logger = structlog.get_logger()


class EssayParams(ToolParams):
    essayText: str = Field(description="The full text of the personal statement essay to be scored")


class EssayScoringTool(BaseTool):
    """Reports essay size; the rubric scoring itself is done by the model."""

    name = "score_essay"
    description = (
        "Score a dental school personal statement essay based on the official rubric. "
        "This tool evaluates the essay across 7 criteria and provides detailed feedback with a total score."
    )
    params_model = EssayParams

    async def run(self, params: EssayParams) -> ToolResult:
        logger.info("essay_scoring", length=len(params.essayText))
        return ToolResult(
            data={
                "status": "ready_for_analysis",
                "essayLength": len(params.essayText),
                "wordCount": len(params.essayText.split()),
            }
        )
