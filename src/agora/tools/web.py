"""Web-facing tools: search and page scraping."""

import html
import logging
import re
from typing import (
    Any,
    Dict,
    List,
)

import httpx

from agora.tools import (
    ToolContext,
    ToolName,
    register_tool,
)

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
DUCKDUCKGO_URL = "https://api.duckduckgo.com/"
SCRAPE_USER_AGENT = "Mozilla/5.0 (compatible; AgoraBot/1.0)"
SCRAPE_MAX_CHARS = 2000

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# web_search
# ---------------------------------------------------------------------------
def _tavily_search(http: httpx.Client, api_key: str, query: str) -> List[str]:
    resp = http.post(
        TAVILY_URL,
        json={
            "api_key": api_key,
            "query": query,
            "search_depth": "advanced",
            "include_answer": True,
            "max_results": 5,
        },
    )
    if resp.status_code >= 400:
        logger.warning("Tavily returned %d, falling back", resp.status_code)
        return []

    data: Dict[str, Any] = resp.json()
    sections: List[str] = []
    if data.get("answer"):
        sections.append(f"Answer: {data['answer']}")
    results = data.get("results")
    if isinstance(results, list) and results:
        top = "\n".join(f"• {r.get('title') or r.get('url')} - {r.get('url')}" for r in results[:3])
        sections.append(f"Top sources:\n{top}")
    return sections


def _duckduckgo_search(http: httpx.Client, query: str) -> List[str]:
    resp = http.get(DUCKDUCKGO_URL, params={"q": query, "format": "json", "no_html": 1})
    resp.raise_for_status()
    data: Dict[str, Any] = resp.json()

    sections: List[str] = []
    if data.get("AbstractText"):
        sections.append(f"Summary: {data['AbstractText']}")
    topics = [t["Text"] for t in data.get("RelatedTopics") or [] if isinstance(t, dict) and t.get("Text")]
    if topics:
        sections.append("Related Info:\n" + "\n".join(f"• {text}" for text in topics[:5]))
    return sections


@register_tool(
    ToolName.WEB_SEARCH,
    "Search the web for current information, news, facts, or any information not in your "
    "knowledge base. Use this when you need up-to-date information or external knowledge.",
    {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The search query to look up"},
        },
        "required": ["query"],
    },
)
def web_search(ctx: ToolContext, query: str) -> str:
    """Tavily first when configured, DuckDuckGo Instant Answer otherwise."""
    logger.info("🌐 Web searching: %r", query)

    if ctx.tavily_api_key:
        try:
            sections = _tavily_search(ctx.http, ctx.tavily_api_key, query)
            if sections:
                return "\n\n".join(sections)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Tavily search failed, falling back to DuckDuckGo: %s", exc)

    try:
        sections = _duckduckgo_search(ctx.http, query)
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("DuckDuckGo search failed: %s", exc)
        sections = []

    if sections:
        return "\n\n".join(sections)
    return f'No results found for "{query}". Try a different search term.'


# ---------------------------------------------------------------------------
# scrape_webpage
# ---------------------------------------------------------------------------
def extract_text(page: str) -> tuple[str, str]:
    """Return ``(title, text)`` for an HTML document using plain regex substitution."""
    match = _TITLE_RE.search(page)
    title = html.unescape(match.group(1).strip()) if match else "No title"

    cleaned = _STYLE_RE.sub("", _SCRIPT_RE.sub("", page))
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = _WS_RE.sub(" ", html.unescape(cleaned)).strip()
    return title, cleaned


@register_tool(
    ToolName.SCRAPE_WEBPAGE,
    "Scrape and read the entire content of a specific webpage. Use this to extract detailed "
    "information from articles, documentation, blog posts, or any web page when you need the "
    "full content rather than just search results.",
    {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "The full URL of the webpage to scrape "
                "(must start with http:// or https://)",
            },
        },
        "required": ["url"],
    },
)
def scrape_webpage(ctx: ToolContext, url: str = "") -> str:
    """Fetch *url* and return its title and the start of its visible text."""
    logger.info("📄 Scraping webpage: %r", url)

    if not url or not url.startswith(("http://", "https://")):
        return f'Invalid URL: "{url}". URL must start with http:// or https://'

    try:
        resp = ctx.http.get(url, headers={"User-Agent": SCRAPE_USER_AGENT}, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.error("Error scraping webpage: %s", exc)
        return f"Failed to scrape {url}: {exc}"

    if resp.status_code >= 400:
        return f"Failed to fetch {url}: {resp.status_code} {resp.reason_phrase}"

    title, text = extract_text(resp.text)
    content = text[:SCRAPE_MAX_CHARS]
    if len(text) > SCRAPE_MAX_CHARS:
        content += "... (truncated)"

    return f"📄 **{title}**\n\nURL: {url}\n\n{content}"
