"""Tool registry and base tool class."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable

from jsonschema import Draft7Validator, ValidationError

from reactloop.cancellation import CancellationToken
from reactloop.exceptions import ToolArgumentError, ToolNotFoundError
from reactloop.logging import get_logger

log = get_logger(__name__)

# Raw tool output; the dispatcher validates it into ContentItems.
ToolOutput = Any

ToolFunc = Callable[[dict[str, Any], CancellationToken | None], Awaitable[ToolOutput]]


def _format_validation_error(error: ValidationError) -> str:
    path = ".".join(str(part) for part in error.absolute_path)
    if path:
        return f"{path}: {error.message}"
    return error.message


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
    timeout_seconds: float | None = None

    @abstractmethod
    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> ToolOutput:
        """Execute the tool.

        Args:
            params: Tool-specific arguments
            cancellation_token: Token to poll during long-running work

        Returns:
            A content item (model or dict) or a list of them
        """
        pass

    @property
    def required_parameters(self) -> list[str]:
        return [str(name) for name in self.parameters.get("required", [])]

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition in function-style format."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def close(self) -> None:
        """Release resources held by the tool."""
        pass

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate tool arguments against the parameter schema.

        ``None`` values count as omitted; blank strings do not satisfy a
        required parameter.

        Raises:
            ToolArgumentError if invalid
        """
        if not isinstance(arguments, dict):
            raise ToolArgumentError(self.name, "arguments must be an object")

        for field in self.required_parameters:
            value = arguments.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ToolArgumentError(self.name, f"missing required argument '{field}'")

        candidate = {key: value for key, value in arguments.items() if value is not None}
        try:
            Draft7Validator(self.parameters).validate(candidate)
        except ValidationError as error:
            raise ToolArgumentError(self.name, _format_validation_error(error)) from error


class FunctionTool(Tool):
    """Adapter that turns a plain async function into a Tool."""

    def __init__(
        self,
        name: str,
        description: str,
        func: ToolFunc,
        parameters: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ):
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}, "required": []}
        self.timeout_seconds = timeout_seconds
        self._func = func

    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> ToolOutput:
        return await self._func(params, cancellation_token)


class ToolRegistry:
    """Registry for managing available tools."""

    def __init__(self, tools: Iterable[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError if the tool has no name or the name is already taken
        """
        if not tool.name:
            raise ValueError("Tool must have a name")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by exact name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def find(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        return [tool.get_definition() for tool in self._tools.values()]

    def snapshot(self) -> "ToolRegistry":
        """Copy of the registry; later registrations do not affect it."""
        return ToolRegistry(self._tools.values())

    async def close(self) -> None:
        """Close every registered tool."""
        for tool in self._tools.values():
            await tool.close()

    def format_for_prompt(self) -> str:
        """Render the tool catalogue as one line per tool for the system prompt."""
        lines = []
        for tool in self._tools.values():
            properties = tool.parameters.get("properties", {}) or {}
            params = ", ".join(
                f"{name}: {prop_schema.get('description', '')}" if isinstance(prop_schema, dict) else name
                for name, prop_schema in properties.items()
            )
            lines.append(f"{tool.name}: {tool.description}. Parameters: {params}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
