"""Document ingestion pipeline."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import numpy as np

from localdocs.embedding.provider import EmbeddingProvider, embed_with_timeout
from localdocs.errors import IngestionIOError, ProviderError
from localdocs.index.storage import SQLiteVectorStore
from localdocs.models import ChunkRecord, DocumentRecord, make_chunk_id
from localdocs.utils.files import crawl_directory, extract_text
from localdocs.utils.text import chunk_text, validate_chunking

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


def build_chunks(doc_id: str, text: str, *, chunk_chars: int, overlap: int) -> list[ChunkRecord]:
    """Chunk a document's text into records with offset bookkeeping."""
    return [
        ChunkRecord(
            chunk_id=make_chunk_id(doc_id, ordinal),
            doc_id=doc_id,
            ordinal=ordinal,
            start_offset=offset,
            end_offset=offset + len(window),
            text=window,
        )
        for ordinal, (offset, window) in enumerate(chunk_text(text, chunk_chars, overlap))
    ]


def _file_mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError as exc:
        raise IngestionIOError(f"Unable to stat {path}: {exc}") from exc


class Indexer:
    """Crawls a directory and stores every supported file with its embeddings.

    Files are processed one at a time. A file's chunks are embedded in
    batches issued concurrently; if any batch fails the file is not written
    and ingestion moves on to the next file. Crawl and read failures abort
    the whole run.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: SQLiteVectorStore,
        *,
        chunk_chars: int = 500,
        overlap: int = 100,
        batch_size: int = 32,
        embed_timeout: float | None = 30.0,
    ) -> None:
        validate_chunking(chunk_chars, overlap)
        self.embedder = embedder
        self.store = store
        self.chunk_chars = chunk_chars
        self.overlap = overlap
        self.batch_size = max(batch_size, 1)
        self.embed_timeout = embed_timeout

    async def index(self, root: Path) -> IndexStats:
        """Index all supported files found under ``root``."""
        root = Path(root)
        LOGGER.info("Indexing %s", root)
        files = await asyncio.to_thread(crawl_directory, root)
        stats = IndexStats()

        for path in files:
            text = await asyncio.to_thread(extract_text, path)
            if text is None:
                LOGGER.debug("Skipping unsupported file %s", path)
                stats.increment("skipped", path)
                continue

            try:
                LOGGER.info("Processing: %s", path)
                status = await self._index_single(path, text)
            except ProviderError as exc:
                LOGGER.error("Failed to embed %s: %s", path, exc)
                status = "failed"
            stats.increment(status, path)

        LOGGER.info(
            "Indexed %s: inserted=%d updated=%d skipped=%d failed=%d",
            root,
            stats.inserted,
            stats.updated,
            stats.skipped,
            stats.failed,
        )
        return stats

    async def _index_single(self, path: Path, text: str) -> str:
        doc_id = str(path)
        chunks = build_chunks(doc_id, text, chunk_chars=self.chunk_chars, overlap=self.overlap)
        embeddings = await self._embed_chunks(chunks)

        mtime = await asyncio.to_thread(_file_mtime, path)
        document = DocumentRecord(
            doc_id=doc_id,
            path=doc_id,
            raw_text=text,
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
        )
        return await asyncio.to_thread(self.store.upsert_document, document, chunks, embeddings)

    async def _embed_chunks(self, chunks: Sequence[ChunkRecord]) -> np.ndarray:
        if not chunks:
            return np.empty((0, self.store.dimension), dtype="float32")

        batches = [
            [chunk.text for chunk in chunks[i : i + self.batch_size]]
            for i in range(0, len(chunks), self.batch_size)
        ]
        results = await asyncio.gather(
            *(
                embed_with_timeout(self.embedder.embed, batch, timeout=self.embed_timeout)
                for batch in batches
            )
        )
        for batch, result in zip(batches, results):
            if np.asarray(result).shape[0] != len(batch):
                raise ProviderError(
                    f"Provider returned {np.asarray(result).shape[0]} vectors for {len(batch)} chunks"
                )
        return np.vstack(results).astype("float32", copy=False)
