"""
Protocol definitions for web search and page fetching.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class SearchResult:
    """
    One search hit.

    score and raw_content are filled in by the ranking sub-step.
    """

    title: str
    url: str
    content: str = ""
    publisher: str = ""
    score: float | None = None
    raw_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "content": self.content,
            "publisher": self.publisher,
            "score": self.score,
        }


@dataclass
class SearchResponse:
    query: str
    results: list[SearchResult] = field(default_factory=list)
    answer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "answer": self.answer,
            "results": [result.to_dict() for result in self.results],
        }


class SearchEngineProtocol(Protocol):
    async def search(self, query: str, max_results: int = 10) -> SearchResponse:
        ...


class PageFetcherProtocol(Protocol):
    async def fetch(self, url: str) -> str:
        """Return the text content of url; raise on failure."""
        ...
