"""General-purpose tools available to every agent."""

import logging
import re
from typing import (
    Any,
    Dict,
)

import httpx
from bs4 import BeautifulSoup

from contentflow.config import Settings
from contentflow.core.schema import (
    ToolDefinition,
    ToolResult,
)
from contentflow.tools import ToolCatalog

logger = logging.getLogger(__name__)

_MAX_PAGE_CHARS = 50_000
_NON_CONTENT_TAGS = ["script", "style", "noscript", "svg"]
_WS_RE = re.compile(r"\s+")

WEB_FETCH = ToolDefinition(
    name="web_fetch",
    description="Fetch a web page and return its title and readable text.",
    parameters={"url": {"type": "string", "required": True, "description": "Absolute http(s) URL"}},
    is_opt_out=True,
)

GOOGLE_SEARCH = ToolDefinition(
    name="google_search",
    description="Search the web with Google and return the top results (title, link, snippet).",
    parameters={
        "query": {"type": "string", "required": True, "description": "Search terms"},
        "num": {"type": "integer", "description": "Number of results, 1-10 (default 5)"},
    },
    requires_config=True,
)


def _parse_page(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    return soup


def _page_text(soup: BeautifulSoup) -> str:
    return _WS_RE.sub(" ", soup.get_text(separator=" ", strip=True))


def html_to_text(html: str) -> str:
    """Readable text of an HTML document: scripts and styles dropped, entities decoded."""
    return _page_text(_parse_page(html))


class WebFetch:
    """Fetches a page with httpx."""

    def __init__(self, timeout: float = 30.0, transport: httpx.BaseTransport | None = None) -> None:
        self.timeout = timeout
        self.transport = transport

    def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        url = str(parameters.get("url") or "")
        if not url.startswith(("http://", "https://")):
            return ToolResult(success=False, error=f"Invalid URL: '{url}'")

        with httpx.Client(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
            resp = client.get(url)
            resp.raise_for_status()

        soup = _parse_page(resp.text)
        title = soup.title.get_text(strip=True) if soup.title else ""
        text = _page_text(soup)
        logger.debug("Fetched %s (%d chars)", url, len(text))
        return ToolResult(
            success=True,
            data={
                "url": str(resp.url),
                "status_code": resp.status_code,
                "title": title,
                "content": text[:_MAX_PAGE_CHARS],
                "truncated": len(text) > _MAX_PAGE_CHARS,
            },
        )


class GoogleSearch:
    """Google Custom Search JSON API."""

    ENDPOINT = "https://www.googleapis.com/customsearch/v1"

    def __init__(
        self,
        api_key: str | None,
        search_engine_id: str | None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.search_engine_id = search_engine_id
        self.timeout = timeout
        self.transport = transport

    def execute(self, parameters: Dict[str, Any]) -> ToolResult:
        if not self.api_key or not self.search_engine_id:
            return ToolResult(success=False, error="Google Search is missing its API key or engine id")

        num = max(1, min(10, int(parameters.get("num") or 5)))
        query = {"key": self.api_key, "cx": self.search_engine_id, "q": parameters["query"], "num": num}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            resp = client.get(self.ENDPOINT, params=query)
            resp.raise_for_status()
            payload = resp.json()

        results = [
            {"title": item.get("title", ""), "link": item.get("link", ""), "snippet": item.get("snippet", "")}
            for item in payload.get("items", [])
        ]
        return ToolResult(success=True, data=results)


def register_builtin_tools(catalog: ToolCatalog, config: Settings) -> ToolCatalog:
    """Register the general tools and their configuration on *catalog*."""
    catalog.register_tool(WEB_FETCH)(WebFetch(timeout=config.REQUEST_TIMEOUT))
    catalog.register_tool(GOOGLE_SEARCH)(
        GoogleSearch(
            api_key=config.GOOGLE_SEARCH_API_KEY,
            search_engine_id=config.GOOGLE_SEARCH_ENGINE_ID,
            timeout=config.REQUEST_TIMEOUT,
        )
    )
    if config.GOOGLE_SEARCH_API_KEY and config.GOOGLE_SEARCH_ENGINE_ID:
        catalog.configure(
            GOOGLE_SEARCH.name,
            {"api_key": config.GOOGLE_SEARCH_API_KEY, "search_engine_id": config.GOOGLE_SEARCH_ENGINE_ID},
        )
    catalog.set_enabled(config.ENABLED_TOOLS)
    return catalog
