"""Page analysis tool over host-supplied page text."""

import re
from typing import Any, Callable

from reactloop.cancellation import CancellationToken
from reactloop.tools.registry import Tool

_WORDS_PER_MINUTE = 230
_LINK_RE = re.compile(r"https?://\S+")
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)


class AnalyzePageTool(Tool):
    """Summarize structural facts about the page the user is looking at.

    The host supplies the page text through ``page_provider``; without one the
    tool reports that no page is available.
    """

    name = "analyze_page"
    description = "Analyze the current page content and provide insights"
    parameters = {
        "type": "object",
        "properties": {
            "aspect": {
                "type": "string",
                "description": "What aspect to analyze (content, structure, links, etc.)",
            },
        },
        "required": ["aspect"],
    }

    def __init__(self, page_provider: Callable[[], str | None] | None = None):
        self.page_provider = page_provider

    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        aspect = str(params.get("aspect", "content")).strip() or "content"
        page = (self.page_provider() if self.page_provider else None) or ""
        if not page.strip():
            return {"type": "comment", "text": "No page content is available to analyze."}

        words = re.findall(r"\w+", page)
        paragraphs = [p for p in re.split(r"\n\s*\n", page) if p.strip()]
        links = _LINK_RE.findall(page)
        headings = _HEADING_RE.findall(page)
        minutes = max(1, round(len(words) / _WORDS_PER_MINUTE))

        insights = [
            f"Analyzed {aspect} of the current page",
            f"{len(words)} words in {len(paragraphs)} paragraphs (about {minutes} min read)",
            f"{len(headings)} headings, {len(links)} links",
        ]
        return {"type": "text", "content": "\n\n".join(insights)}
