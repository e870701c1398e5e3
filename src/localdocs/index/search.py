"""Semantic search interface."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List

from localdocs.embedding.provider import EmbeddingProvider, embed_with_timeout
from localdocs.errors import InvalidArgumentError
from localdocs.index.storage import SQLiteVectorStore


@dataclass(slots=True)
class SearchResult:
    doc_id: str
    before: str
    match: str
    text: str
    start_offset: int
    distance: float

    def to_dict(self) -> dict[str, str]:
        return {
            "docId": self.doc_id,
            "before": self.before,
            "match": self.match,
            "text": self.text,
        }


class Searcher:
    """High-level API to query the vector store."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: SQLiteVectorStore,
        *,
        limit: int = 10,
        embed_timeout: float | None = 30.0,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.limit = limit
        self.embed_timeout = embed_timeout

    async def search(
        self, query: str, *, path: str | None = None, limit: int | None = None
    ) -> List[SearchResult]:
        query = query.strip()
        if not query:
            raise InvalidArgumentError("Empty query")
        limit = self.limit if limit is None else limit
        if limit < 1:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")

        embedding = await embed_with_timeout(
            self.embedder.embed_query, query, timeout=self.embed_timeout
        )
        hits = await asyncio.to_thread(
            self.store.query, embedding, limit=limit, path_prefix=path
        )
        return [
            SearchResult(
                doc_id=hit.doc_id,
                before=hit.raw_text[: hit.start_offset],
                match=hit.text,
                text=hit.raw_text,
                start_offset=hit.start_offset,
                distance=hit.distance,
            )
            for hit in hits
        ]
