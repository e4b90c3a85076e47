"""Web search tool powered by Brave Search API."""

import os
import re
from typing import Any

import httpx

from reactloop.cancellation import CancellationToken
from reactloop.config import get_config
from reactloop.logging import get_logger
from reactloop.tools.registry import Tool

log = get_logger(__name__)


class WebSearchTool(Tool):
    """Search the web using Brave Search API."""

    name = "web_search"
    description = "Search the web and return ranked results with titles, links, and snippets"
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query",
            },
            "count": {
                "type": "integer",
                "description": "Maximum results to return (default from config, max 20)",
            },
            "country": {
                "type": "string",
                "description": "Boost search results from a specific country code (example: US, FR)",
            },
        },
        "required": ["query"],
    }

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "reactloop/0.1.0 (Web Search Tool)"},
        )

    @staticmethod
    def _clean_text(value: str, max_chars: int = 500) -> str:
        """Normalize whitespace and bound output size."""
        cleaned = re.sub(r"\s+", " ", (value or "")).strip()
        if len(cleaned) <= max_chars:
            return cleaned
        return cleaned[:max_chars].rstrip() + "... [truncated]"

    @staticmethod
    def _failure(query: str, error: str) -> list[dict[str, Any]]:
        return [
            {
                "type": "tool_result",
                "data": {"query": query, "error": error, "success": False},
            },
            {
                "type": "component",
                "name": "SearchResults",
                "props": {"query": query, "results": [], "count": 0, "error": error},
            },
        ]

    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> list[dict[str, Any]]:
        """Execute Brave web search."""
        q = str(params.get("query", "") or "").strip()
        search_cfg = get_config().tools.web_search

        api_key = search_cfg.api_key.strip() or os.environ.get("BRAVE_API_KEY", "").strip()
        if not api_key:
            return self._failure(
                q,
                "Missing Brave API key. Set tools.web_search.api_key in config "
                "or BRAVE_API_KEY environment variable.",
            )

        count = params.get("count")
        effective_count = search_cfg.max_results if count is None else int(count)
        request_params: dict[str, Any] = {"q": q, "count": min(max(effective_count, 1), 20)}
        country = str(params.get("country", "") or "").strip()
        if country:
            request_params["country"] = country

        try:
            response = await self.client.get(
                search_cfg.base_url,
                params=request_params,
                headers={"Accept": "application/json", "X-Subscription-Token": api_key},
                timeout=float(search_cfg.timeout),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = f"HTTP {e.response.status_code}"
            body = self._clean_text(e.response.text or "", max_chars=300)
            if body:
                detail = f"{detail}: {body}"
            log.error("Brave web search failed", query=q, error=detail)
            return self._failure(q, detail)
        except (httpx.HTTPError, ValueError) as e:
            log.error("Web search failed", query=q, error=str(e))
            return self._failure(q, str(e) or type(e).__name__)

        web_block = payload.get("web", {}) if isinstance(payload, dict) else {}
        raw_results = web_block.get("results", []) if isinstance(web_block, dict) else []
        results = []
        for item in raw_results if isinstance(raw_results, list) else []:
            if not isinstance(item, dict):
                continue
            url = str(item.get("url", "") or "").strip()
            if not url:
                continue
            results.append(
                {
                    "title": self._clean_text(str(item.get("title", "") or "No title"), max_chars=180),
                    "url": url,
                    "snippet": self._clean_text(
                        str(item.get("description", "") or "No snippet available")
                    ),
                }
            )

        log.info("Web search completed", query=q, results=len(results))
        return [
            {
                "type": "tool_result",
                "data": {"query": q, "results": results, "count": len(results), "success": True},
            },
            {
                "type": "component",
                "name": "SearchResults",
                "props": {"query": q, "results": results, "count": len(results)},
            },
        ]

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
