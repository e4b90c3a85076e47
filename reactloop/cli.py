"""Interactive console for a ReAct agent session."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from reactloop import __version__
from reactloop.agent import ReActAgent
from reactloop.config import Config, get_config, set_config
from reactloop.content import (
    CommentItem,
    ComponentItem,
    ContentItem,
    TextItem,
    ThinkingItem,
    ToolResultItem,
)
from reactloop.logging import configure_logging, set_log_sink
from reactloop.tools import AnalyzePageTool, create_default_registry

app = typer.Typer(help="reactloop - ReAct agent runtime")

_EXIT_COMMANDS = {"/quit", "/exit"}


def render_item(console: Console, item: ContentItem) -> None:
    """Render one content item for the terminal."""
    if isinstance(item, TextItem):
        console.print(Markdown(item.content))
    elif isinstance(item, ThinkingItem):
        console.print(f"[dim italic]{item.content}[/dim italic]")
    elif isinstance(item, CommentItem):
        console.print(f"[yellow]{item.text}[/yellow]")
    elif isinstance(item, ToolResultItem):
        console.print(f"[dim]tool result: {json.dumps(item.data, default=str)[:300]}[/dim]")
    elif isinstance(item, ComponentItem):
        body = "\n".join(f"{key}: {value}" for key, value in item.props.items())
        console.print(Panel(body, title=item.name, expand=False))


async def _chat(agent: ReActAgent, console: Console, page_text: str | None) -> None:
    agent.subscribe(lambda item: render_item(console, item))
    console.print("[bold]reactloop[/bold] - /clear, /reset, /quit")
    try:
        while True:
            message = await asyncio.to_thread(Prompt.ask, "[bold cyan]you[/bold cyan]")
            message = message.strip()
            if not message:
                continue
            if message in _EXIT_COMMANDS:
                break
            if message == "/clear":
                agent.clear()
                continue
            if message == "/reset":
                agent.clear_all()
                console.print("[dim]conversation reset[/dim]")
                continue

            outcome = await agent.run(message, page_context=page_text)
            if outcome is not None:
                console.print(f"[dim]({outcome.value})[/dim]")
    finally:
        await agent.aclose()


@app.command()
def chat(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    provider: str = typer.Option("", "-p", "--provider", help="Override provider"),
    page: str = typer.Option("", "--page", help="Text file used as page context"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start an interactive agent session."""
    cfg = Config.from_yaml(config) if config else get_config()
    if model:
        cfg.model.model = model
    if provider:
        cfg.model.provider = provider
    set_config(cfg)
    console = Console()
    # Keep log lines from tearing through the prompt.
    set_log_sink(lambda line: console.print(Text(line, style="dim")))
    configure_logging("DEBUG" if verbose else None)

    page_text = Path(page).expanduser().read_text(encoding="utf-8") if page else None
    registry = create_default_registry(cfg)
    if registry.has_tool(AnalyzePageTool.name):
        registry.unregister(AnalyzePageTool.name)
        registry.register(AnalyzePageTool(page_provider=lambda: page_text))

    agent = ReActAgent(tools=registry, config=cfg)
    try:
        asyncio.run(_chat(agent, console, page_text))
    except (KeyboardInterrupt, EOFError):
        console.print("\n[dim]bye[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    print(f"reactloop v{__version__}")


if __name__ == "__main__":
    app()
