"""
Protocol definitions for the vector store used by search ingestion.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class Document:
    page_content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class EmbeddingsProtocol(Protocol):
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        ...

    async def embed_query(self, text: str) -> list[float]:
        ...


class DocumentStoreProtocol(Protocol):
    async def add_vectors(self, vectors: list[list[float]], documents: list[Document]) -> None:
        ...

    async def similarity_search_vector_with_score(
        self, query_vector: list[float], k: int
    ) -> list[tuple[Document, float]]:
        ...
