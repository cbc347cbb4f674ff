"""Search tool with pluggable result backends."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from manus_agent.config import SearchToolConfig, get_config
from manus_agent.exceptions import ToolExecutionError
from manus_agent.logging import get_logger
from manus_agent.tools.registry import Tool, ToolArguments

log = get_logger(__name__)


@dataclass
class SearchHit:
    title: str
    url: str
    snippet: str


class SearchBackend(ABC):
    """Source of search results."""

    @abstractmethod
    async def search(self, query: str, max_results: int) -> list[SearchHit]:
        pass

    async def close(self) -> None:
        return None


class StubSearchBackend(SearchBackend):
    """Deterministic fabricated results; makes no network calls."""

    async def search(self, query: str, max_results: int) -> list[SearchHit]:
        hits = [
            SearchHit("Search Result 1", "https://example.com/1", f"Information about {query}"),
            SearchHit("Search Result 2", "https://example.com/2", f"More details on {query}"),
            SearchHit("Search Result 3", "https://example.com/3", f"Additional context for {query}"),
        ]
        return hits[: max(0, max_results)]


class BraveSearchBackend(SearchBackend):
    """Brave Search API backend."""

    def __init__(self, api_key: str, base_url: str, timeout: float = 20.0):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "manus-agent/0.1.0 (Search Tool)"},
        )

    @staticmethod
    def _clean_text(value: str, max_chars: int = 500) -> str:
        """Normalize whitespace and bound output size."""
        cleaned = re.sub(r"\s+", " ", (value or "")).strip()
        if len(cleaned) <= max_chars:
            return cleaned
        return cleaned[:max_chars].rstrip() + "... [truncated]"

    async def search(self, query: str, max_results: int) -> list[SearchHit]:
        if not self.api_key:
            raise ValueError("Missing Brave API key. Set tools.search.api_key in config.")
        params: dict[str, Any] = {"q": query, "count": min(max(max_results, 1), 20)}
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self.api_key,
        }
        response = await self.client.get(self.base_url, params=params, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        results = (response.json().get("web") or {}).get("results") or []
        hits: list[SearchHit] = []
        for item in results[:max_results]:
            if not isinstance(item, dict):
                continue
            hits.append(
                SearchHit(
                    title=self._clean_text(str(item.get("title", "")), 200) or "(untitled)",
                    url=str(item.get("url", "")).strip(),
                    snippet=self._clean_text(str(item.get("description", ""))),
                )
            )
        return hits

    async def close(self) -> None:
        await self.client.aclose()


def create_search_backend(cfg: SearchToolConfig | None = None) -> SearchBackend:
    search_cfg = cfg or get_config().tools.search
    if search_cfg.provider == "brave":
        return BraveSearchBackend(
            api_key=search_cfg.api_key,
            base_url=search_cfg.base_url,
            timeout=search_cfg.timeout,
        )
    return StubSearchBackend()


class SearchTool(Tool):
    """Search the internet for information."""

    name = "search"
    description = "Search the internet for information"
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query",
            },
            "max_results": {
                "type": "integer",
                "description": "Maximum number of search results to return",
                "default": 5,
            },
        },
        "required": ["query"],
    }

    def __init__(self, backend: SearchBackend | None = None, default_max_results: int | None = None):
        search_cfg = get_config().tools.search
        self.backend = backend or create_search_backend(search_cfg)
        self.default_max_results = int(default_max_results or search_cfg.max_results)

    async def execute(self, args: ToolArguments) -> str:
        query = args.get_str("query").strip()
        max_results = args.get_int("max_results", self.default_max_results)

        if not query:
            return "Error: No search query provided"

        try:
            hits = await self.backend.search(query, max_results)
        except (httpx.HTTPError, ValueError) as e:
            log.error("Search failed", query=query, error=str(e))
            raise ToolExecutionError(self.name, f"Error performing search: {e}") from e

        lines = [f"Search results for '{query}':"]
        for idx, hit in enumerate(hits, start=1):
            lines.append(f"{idx}. {hit.title}")
            lines.append(f"   URL: {hit.url}")
            lines.append(f"   Snippet: {hit.snippet}")
            lines.append("")
        return "\n".join(lines) + "\n"

    async def close(self) -> None:
        await self.backend.close()
