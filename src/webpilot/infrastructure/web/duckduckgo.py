"""
DuckDuckGo search engine (instant answer API, no API key required).
"""

import aiohttp
import structlog

from webpilot.core.interfaces.web import SearchResponse, SearchResult

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"


class DuckDuckGoSearchEngine:
    """SearchEngineProtocol implementation using aiohttp."""

    def __init__(self, api_url: str = DUCKDUCKGO_API_URL, timeout: float = 10.0):
        self.api_url = api_url
        self.timeout = timeout
        self.logger = structlog.get_logger().bind(component="duckduckgo_search")

    async def search(self, query: str, max_results: int = 10) -> SearchResponse:
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        async with aiohttp.ClientSession() as session:
            async with session.get(
                self.api_url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                response.raise_for_status()
                # DuckDuckGo answers with application/x-javascript
                data = await response.json(content_type=None)

        response_obj = parse_duckduckgo_response(query, data, max_results)
        self.logger.info("web_search_completed", query=query[:100], results=len(response_obj.results))
        return response_obj


def parse_duckduckgo_response(query: str, data: dict, max_results: int) -> SearchResponse:
    results: list[SearchResult] = []

    if data.get("Abstract"):
        results.append(
            SearchResult(
                title=data.get("Heading", ""),
                url=data.get("AbstractURL", ""),
                content=data["Abstract"],
                publisher=data.get("AbstractSource", ""),
            )
        )

    for topic in _flatten_topics(data.get("RelatedTopics", [])):
        text = topic.get("Text", "")
        url = topic.get("FirstURL", "")
        if not text or not url:
            continue
        results.append(SearchResult(title=text.split(" - ")[0][:80], url=url, content=text))

    return SearchResponse(
        query=query,
        results=results[:max_results],
        answer=data.get("Answer") or data.get("AbstractText") or None,
    )


def _flatten_topics(topics: list) -> list[dict]:
    # grouped topics nest their entries under "Topics"
    flat = []
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        if "Topics" in topic:
            flat.extend(t for t in topic["Topics"] if isinstance(t, dict))
        else:
            flat.append(topic)
    return flat
