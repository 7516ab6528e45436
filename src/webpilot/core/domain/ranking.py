"""
Search Result Ranking

Ranking sub-step run by the navigator after a content-search action:

1. A ranker model scores the raw result set against the objective and the
   current step
2. The top-N results are annotated with their score
3. The full page content of each kept result is fetched concurrently
4. Fetched pages are optionally embedded and ingested into a DocumentStore

Steps 3 and 4 are best-effort and isolated per item: one failed fetch or
ingestion never affects the others.
"""

import asyncio
import json

import structlog
from pydantic import BaseModel, Field

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import is_fatal
from webpilot.core.interfaces.llm import ChatModelProtocol
from webpilot.core.interfaces.store import Document, DocumentStoreProtocol, EmbeddingsProtocol
from webpilot.core.interfaces.web import PageFetcherProtocol, SearchResponse, SearchResult
from webpilot.core.prompts.ranker_prompt import format_ranker_prompt


class RankedItem(BaseModel):
    index: int = Field(description="zero-based index of the result in the input list")
    score: float = Field(description="importance from 0 to 10")


class RankerOutput(BaseModel):
    rankings: list[RankedItem] = Field(default_factory=list)


class Ranker:
    """
    Scores search results and fetches the content of the best ones.

    Args:
        chat_model: Model used for scoring
        fetcher: Page fetcher for the full content of kept results
        top_n: Number of results to keep
        fetch_concurrency: Maximum simultaneous fetches
        document_store: Optional vector store for ingestion
        embeddings: Embedding model, required for ingestion
        max_content_chars: Truncation limit for fetched content
    """

    def __init__(
        self,
        chat_model: ChatModelProtocol,
        fetcher: PageFetcherProtocol,
        top_n: int = 4,
        fetch_concurrency: int = 4,
        document_store: DocumentStoreProtocol | None = None,
        embeddings: EmbeddingsProtocol | None = None,
        max_content_chars: int = 20000,
    ):
        self.chat_model = chat_model
        self.fetcher = fetcher
        self.top_n = top_n
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.document_store = document_store
        self.embeddings = embeddings
        self.max_content_chars = max_content_chars
        self.logger = structlog.get_logger().bind(component="ranker")

    async def rank(
        self,
        objective: str,
        step: str,
        progress: str,
        response: SearchResponse,
        cancellation: CancellationToken | None = None,
    ) -> list[SearchResult]:
        """
        Rank, annotate and fetch.

        Returns:
            Kept results ordered by descending score, each with `score` set
            and `raw_content` set where the fetch succeeded
        """
        if not response.results:
            return []

        ranked = await self._score(objective, step, progress, response)
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        await self._fetch_all(ranked)
        await self._ingest(response.query, ranked)
        return ranked

    async def _score(
        self, objective: str, step: str, progress: str, response: SearchResponse
    ) -> list[SearchResult]:
        messages = [
            {
                "role": "system",
                "content": format_ranker_prompt(
                    objective, response.query, step, progress, self.top_n
                ),
            },
            {
                "role": "user",
                "content": _results_json(response.results),
            },
        ]
        try:
            output = await self.chat_model.invoke(messages, RankerOutput)
        except Exception as e:
            if is_fatal(e):
                raise
            self.logger.warning("ranking_failed", query=response.query, error=str(e))
            return response.results[: self.top_n]

        seen: set[int] = set()
        items: list[RankedItem] = []
        for item in sorted(output.rankings, key=lambda r: r.score, reverse=True):
            if 0 <= item.index < len(response.results) and item.index not in seen:
                seen.add(item.index)
                items.append(item)

        ranked = []
        for item in items[: self.top_n]:
            result = response.results[item.index]
            result.score = item.score
            ranked.append(result)

        self.logger.info("results_ranked", query=response.query, kept=len(ranked))
        return ranked

    async def _fetch_all(self, results: list[SearchResult]) -> None:
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch_one(result: SearchResult) -> None:
            async with semaphore:
                content = await self.fetcher.fetch(result.url)
                result.raw_content = content[: self.max_content_chars]

        outcomes = await asyncio.gather(
            *(fetch_one(result) for result in results), return_exceptions=True
        )
        for result, outcome in zip(results, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.warning("content_fetch_failed", url=result.url, error=str(outcome))

    async def _ingest(self, query: str, results: list[SearchResult]) -> None:
        if self.document_store is None or self.embeddings is None:
            return

        fetched = [r for r in results if r.raw_content]
        if not fetched:
            return

        documents = [
            Document(
                page_content=r.raw_content or "",
                metadata={"url": r.url, "title": r.title, "query": query, "score": r.score},
            )
            for r in fetched
        ]
        try:
            vectors = await self.embeddings.embed_documents([d.page_content for d in documents])
            await self.document_store.add_vectors(vectors, documents)
            self.logger.info("results_ingested", query=query, documents=len(documents))
        except Exception as e:
            if is_fatal(e):
                raise
            self.logger.warning("ingestion_failed", query=query, error=str(e))


def _results_json(results: list[SearchResult]) -> str:
    return json.dumps(
        [
            {"index": i, "title": r.title, "url": r.url, "content": r.content}
            for i, r in enumerate(results)
        ]
    )
