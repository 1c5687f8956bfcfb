"""Base types for the agent tools."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger()

# Keys Gemini function declarations understand; everything else pydantic
# emits (title, default, additionalProperties, ...) is dropped.
_SCHEMA_KEYS = ("type", "description", "properties", "required", "items", "enum")


@dataclass
class ToolResult:
    """Result of a tool execution, returned to the model as a function response."""

    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_response(self) -> Dict[str, Any]:
        if self.error:
            return {"success": False, "error": self.error}
        return self.data or {}


class ToolParams(BaseModel):
    """Base class for tool parameter models. Subclass with Field() definitions."""


def _gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key in _SCHEMA_KEYS:
        if key not in schema:
            continue
        value = schema[key]
        if key == "type":
            value = str(value).upper()
        elif key == "properties":
            value = {name: _gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            value = _gemini_schema(value)
        result[key] = value
    if "enum" in result and "type" not in result:
        result["type"] = "STRING"
    return result


class BaseTool(ABC):
    """A callable the agent runtime exposes to the model.

    Example::

        class MyTool(BaseTool):
            name = "my_tool"
            description = "Does a thing"
            params_model = MyToolParams

            async def run(self, params: MyToolParams) -> ToolResult:
                return ToolResult(data={"ok": True})
    """

    name: str = ""
    description: str = ""
    params_model: Type[ToolParams] = ToolParams

    def declaration(self) -> Dict[str, Any]:
        """Function declaration in the shape the Gemini SDK accepts."""
        declaration: Dict[str, Any] = {"name": self.name, "description": self.description}
        schema = _gemini_schema(self.params_model.model_json_schema())
        if schema.get("properties"):
            declaration["parameters"] = schema
        return declaration

    async def execute(self, arguments: Dict[str, Any]) -> ToolResult:
        """Validate model-supplied arguments and run the tool."""
        try:
            params = self.params_model.model_validate(arguments)
        except ValidationError as e:
            logger.warning("tool_arguments_invalid", tool=self.name, error=str(e))
            return ToolResult(error=f"Invalid arguments for {self.name}: {e.errors()[0]['msg']}")
        try:
            return await self.run(params)
        except Exception as e:
            logger.error("tool_failed", tool=self.name, error=str(e))
            return ToolResult(error=f"{self.name} failed: {e}")

    @abstractmethod
    async def run(self, params: Any) -> ToolResult:
        """Execute with validated parameters."""
