"""Tools package for reactloop."""

from typing import Any

from reactloop.logging import get_logger
from reactloop.tools.registry import FunctionTool, Tool, ToolRegistry
from reactloop.tools.analyze_page import AnalyzePageTool
from reactloop.tools.status import ShowStatusTool
from reactloop.tools.weather import WeatherTool
from reactloop.tools.web_search import WebSearchTool

log = get_logger(__name__)

_BUILTIN_TOOLS: dict[str, type[Tool]] = {
    WeatherTool.name: WeatherTool,
    WebSearchTool.name: WebSearchTool,
    ShowStatusTool.name: ShowStatusTool,
    AnalyzePageTool.name: AnalyzePageTool,
}


def create_default_registry(config: Any = None) -> ToolRegistry:
    """Registry with the built-in tools enabled in ``tools.enabled``."""
    if config is None:
        from reactloop.config import get_config

        config = get_config()
    registry = ToolRegistry()
    for name in config.tools.enabled:
        tool_cls = _BUILTIN_TOOLS.get(name)
        if tool_cls is None:
            log.warning("Unknown built-in tool in config", tool=name)
            continue
        registry.register(tool_cls())
    return registry


__all__ = [
    "AnalyzePageTool",
    "FunctionTool",
    "ShowStatusTool",
    "Tool",
    "ToolRegistry",
    "WeatherTool",
    "WebSearchTool",
    "create_default_registry",
]
