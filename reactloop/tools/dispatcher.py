"""Tool dispatch with argument checks, output validation and failure containment.

Nothing raised by a tool escapes :meth:`ToolDispatcher.execute`; every failure
becomes a ``comment`` item, and the loop keeps going.
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from reactloop.cancellation import CancellationToken
from reactloop.components import ComponentRegistry, create_default_component_registry
from reactloop.config import get_config
from reactloop.content import (
    CommentItem,
    ComponentItem,
    ContentItem,
    TextItem,
    ToolResultItem,
    describe_validation_error,
    make_comment,
    validate_content_item,
)
from reactloop.exceptions import ToolArgumentError, ToolNotFoundError
from reactloop.logging import get_logger
from reactloop.tools.registry import Tool, ToolRegistry

log = get_logger(__name__)


@dataclass
class ToolDispatch:
    """Everything the loop needs after one tool call."""

    tool_name: str
    items: list[ContentItem] = field(default_factory=list)
    observation: str = ""
    duration_ms: int = 0
    error: str | None = None


def format_observation(tool_name: str, items: list[ContentItem], duration_ms: int) -> str:
    """Digest tool output into the text fed back to the model."""
    lines = []
    for item in items:
        if isinstance(item, ToolResultItem):
            lines.append(f"Observation: {json.dumps(item.data, default=str)}")
        elif isinstance(item, TextItem):
            lines.append(f"Observation: {item.content}")
        elif isinstance(item, ComponentItem):
            lines.append(f"Observation: Displayed {item.name} component")
        elif isinstance(item, CommentItem):
            lines.append(f"Observation: {item.text}")
    if not lines:
        lines.append("Observation: Tool returned no output")
    cost_note = f"(Tool {tool_name} took {duration_ms}ms - tools are expensive, use sparingly)"
    return "\n".join(lines) + "\n" + cost_note


class ToolDispatcher:
    """Resolve, invoke and sanitize tool calls for one registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        components: ComponentRegistry | None = None,
        default_timeout: float | None = None,
    ):
        self.registry = registry
        self.components = components or create_default_component_registry()
        if default_timeout is None:
            default_timeout = get_config().tools.default_timeout
        self.default_timeout = default_timeout

    @staticmethod
    async def _cancel_task(task: asyncio.Task[Any] | None) -> None:
        """Cancel task and await it to avoid pending task warnings."""
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.debug("Cancelled tool task raised", error=str(e))

    async def _invoke(
        self,
        tool: Tool,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None,
    ) -> Any:
        """Run the tool, bounded by its timeout when one applies."""
        timeout = tool.timeout_seconds or self.default_timeout
        if not timeout or timeout <= 0:
            return await tool.execute(params, cancellation_token)

        execute_task = asyncio.create_task(tool.execute(params, cancellation_token))
        try:
            done, _ = await asyncio.wait({execute_task}, timeout=timeout)
        except asyncio.CancelledError:
            await self._cancel_task(execute_task)
            raise
        if execute_task in done:
            return execute_task.result()
        await self._cancel_task(execute_task)
        timeout_label = int(timeout) if float(timeout).is_integer() else timeout
        raise TimeoutError(f"Execution timed out after {timeout_label}s")

    async def _normalize(self, raw: Any) -> list[ContentItem]:
        """Validate each returned item; invalid ones become comments."""
        payloads = raw if isinstance(raw, (list, tuple)) else [raw]
        items: list[ContentItem] = []
        for payload in payloads:
            try:
                item = validate_content_item(payload)
            except ValidationError as e:
                log.warning("Invalid tool output", error=describe_validation_error(e))
                items.append(make_comment("⚠️ Tool returned invalid data"))
                continue

            if isinstance(item, ComponentItem):
                await self.components.load(item.name)
                validation = self.components.validate_props(item.name, item.props)
                if not validation.success:
                    log.warning("Invalid component props", component=item.name, error=validation.error)
                    items.append(make_comment(f'⚠️ Invalid props for "{item.name}": {validation.error}'))
                    continue
                item = ComponentItem(name=item.name, props=validation.data or {})
            items.append(item)
        return items

    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> list[ContentItem]:
        """Execute a tool by exact name and return validated content items."""
        return (await self.dispatch(tool_name, params, cancellation_token)).items

    async def dispatch(
        self,
        tool_name: str,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> ToolDispatch:
        """Execute a tool and synthesize the observation for the next turn."""
        started = time.monotonic()
        result = ToolDispatch(tool_name=tool_name)
        try:
            tool = self.registry.get(tool_name)
            tool.validate_arguments(params)
            log.info("Executing tool", tool=tool_name, args=params)
            raw = await self._invoke(tool, params, cancellation_token)
            result.items = await self._normalize(raw)
            log.info("Tool executed", tool=tool_name, items=len(result.items))
        except ToolNotFoundError as e:
            log.warning("Unknown tool requested", tool=tool_name)
            result.error = str(e)
            result.items = [make_comment(f"❌ {e}")]
        except ToolArgumentError as e:
            log.warning("Tool arguments rejected", tool=tool_name, error=str(e))
            result.error = str(e)
            result.items = [make_comment(f"❌ {e}")]
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error("Tool execution failed", tool=tool_name, error=message)
            result.error = message
            result.items = [make_comment(f"❌ Tool error: {message}")]

        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.observation = format_observation(tool_name, result.items, result.duration_ms)
        return result
