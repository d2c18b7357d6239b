from typing import Any, Awaitable, Callable, Dict, List, Optional
from dataclasses import dataclass

from .errors import ExternalToolFailure


@dataclass
class ToolResult:
    """Outcome of running a tool against its source."""
    tool_name: str
    success: bool
    result: Any
    error: Optional[str] = None

    def as_text(self) -> str:
        """Text fed back to the model as the tool's return value."""
        if self.success:
            return str(self.result)
        return f"Error: {self.error}"


def single_argument_schema(argument_name: str, description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            argument_name: {"type": "string", "description": description},
        },
        "required": [argument_name],
    }


class Tool:
    """A single-argument tool the research worker can propose.

    Tools with ``requires_confirmation`` set are never executed directly from
    a model proposal; the caller must first get the argument approved.
    """

    def __init__(
        self,
        name: str,
        description: str,
        func: Callable[[str], Awaitable[Any]],
        argument_name: str = "query",
        argument_description: str = "The search query to look up",
        requires_confirmation: bool = False,
    ):
        self.name = name
        self.description = description
        self.func = func
        self.argument_name = argument_name
        self.parameters = single_argument_schema(argument_name, argument_description)
        self.requires_confirmation = requires_confirmation

    def proposed_argument(self, arguments: Dict[str, Any]) -> str:
        """The single value a human is asked to approve for this call."""
        value = arguments.get(self.argument_name)
        if isinstance(value, str):
            return value
        # Fall back to the only string argument, if there is exactly one
        strings = [v for v in arguments.values() if isinstance(v, str)]
        return strings[0] if len(strings) == 1 else ""

    async def execute(self, argument: str) -> ToolResult:
        """Run the tool with an approved argument. Source failures come back as an unsuccessful result."""
        try:
            result = await self.func(argument)
        except ExternalToolFailure as e:
            return ToolResult(tool_name=self.name, success=False, result=None, error=e.detail)
        return ToolResult(tool_name=self.name, success=True, result=result)

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Tools available to one agent, by name."""

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def to_openai_format(self) -> List[Dict[str, Any]]:
        return [tool.to_openai_format() for tool in self._tools.values()]
