"""
Tool Registry.
Declares the structured actions the model may invoke and validates calls to them.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from gadget_scout.core.exceptions import ToolNotFoundException, ToolValidationException

logger = logging.getLogger(__name__)


def _gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Gemini spells JSON-schema types in upper case (STRING, OBJECT, ...)."""
    converted = copy.deepcopy(schema)
    if "type" in converted:
        converted["type"] = str(converted["type"]).upper()
    if "properties" in converted:
        converted["properties"] = {
            name: _gemini_schema(prop) for name, prop in converted["properties"].items()
        }
    if "items" in converted:
        converted["items"] = _gemini_schema(converted["items"])
    return converted


@dataclass
class Tool:
    """Tool definition for model function calling."""
    name: str
    description: str
    parameters: Dict[str, Any]
    required_params: List[str] = field(default_factory=list)

    def json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": self.parameters,
            "required": self.required_params
        }

    def to_declaration(self) -> Dict[str, Any]:
        """Gemini function declaration (chat and live APIs)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": _gemini_schema(self.json_schema())
        }

    def to_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI/Groq tool schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema()
            }
        }


class ToolRegistry:
    """
    Registry of declared tools.

    Provides declarations to the model providers and checks incoming calls
    against the declared required parameters.
    """

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool):
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def get_declarations(self) -> List[Dict[str, Any]]:
        """All tools as Gemini function declarations."""
        return [tool.to_declaration() for tool in self._tools.values()]

    def get_tool_schemas(self) -> List[Dict[str, Any]]:
        """All tools in OpenAI/Groq format."""
        return [tool.to_schema() for tool in self._tools.values()]

    def validate(self, tool_name: str, arguments: Any) -> Dict[str, Any]:
        """
        Check a call against its declaration.

        Returns:
            The arguments as a dict

        Raises:
            ToolNotFoundException, ToolValidationException
        """
        tool = self._tools.get(tool_name)
        if not tool:
            raise ToolNotFoundException(tool_name)

        if not isinstance(arguments, dict):
            raise ToolValidationException(tool_name, ["Arguments must be an object"])

        missing = [p for p in tool.required_params if arguments.get(p) in (None, "")]
        if missing:
            raise ToolValidationException(tool_name, [f"Missing required parameter: {p}" for p in missing])

        return arguments
