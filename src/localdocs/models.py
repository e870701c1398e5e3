"""Core localdocs data models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PathRecord:
    """A directory or file visited by ingestion."""

    path: str
    is_directory: bool
    last_indexed: str


@dataclass(slots=True)
class DocumentRecord:
    """Full text of an indexed file. ``doc_id`` is the source path."""

    doc_id: str
    path: str
    raw_text: str
    last_modified: str


@dataclass(slots=True)
class ChunkRecord:
    """Window of document text; its embedding lives in the vector table."""

    chunk_id: str
    doc_id: str
    ordinal: int
    start_offset: int
    end_offset: int
    text: str


@dataclass(slots=True)
class ChunkHit:
    """One row of a similarity query, joined with its document."""

    chunk_id: str
    doc_id: str
    path: str
    start_offset: int
    text: str
    raw_text: str
    distance: float


def make_chunk_id(doc_id: str, ordinal: int) -> str:
    return f"{doc_id}-{ordinal}"
