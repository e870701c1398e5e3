"""Text helpers including fixed-size overlapping chunking."""

from __future__ import annotations

from localdocs.errors import InvalidArgumentError


def validate_chunking(chunk_size: int, overlap: int) -> None:
    """Reject parameters that would yield a non-advancing window."""
    if chunk_size <= 0:
        raise InvalidArgumentError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise InvalidArgumentError(f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise InvalidArgumentError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def chunk_text(text: str, chunk_size: int, overlap: int) -> list[tuple[int, str]]:
    """Split text into overlapping character windows.

    Returns ``(offset, window)`` pairs. Every window but the last is exactly
    ``chunk_size`` characters long and starts ``chunk_size - overlap``
    characters after the previous one.
    """
    validate_chunking(chunk_size, overlap)

    step = chunk_size - overlap
    chunks: list[tuple[int, str]] = []
    offset = 0
    while offset < len(text):
        window = text[offset : offset + chunk_size]
        chunks.append((offset, window))
        if len(window) < chunk_size:
            break
        offset += step
    return chunks
