"""Tests for text utility functions."""

from __future__ import annotations

import pytest

from localdocs.errors import InvalidArgumentError
from localdocs.utils.text import chunk_text, validate_chunking


def _texts(chunks):
    return [text for _, text in chunks]


class TestChunkText:
    """Test chunk_text function."""

    def test_chunk_without_overlap(self) -> None:
        chunks = chunk_text("This is a test string", 10, 0)

        assert _texts(chunks) == ["This is a ", "test strin", "g"]
        assert [offset for offset, _ in chunks] == [0, 10, 20]

    def test_chunk_with_overlap(self) -> None:
        chunks = chunk_text("This is a test string", 10, 2)

        assert _texts(chunks) == ["This is a ", "a test str", "tring"]
        assert [offset for offset, _ in chunks] == [0, 8, 16]

    def test_chunk_empty_text(self) -> None:
        assert chunk_text("", 10, 2) == []

    def test_chunk_short_text(self) -> None:
        """Should return single chunk for short text."""
        assert chunk_text("Short text", 100, 10) == [(0, "Short text")]

    def test_exact_multiple_has_no_empty_tail(self) -> None:
        assert _texts(chunk_text("abcdefghij", 5, 0)) == ["abcde", "fghij"]

    def test_offsets_and_reconstruction(self) -> None:
        """Windows advance by size - overlap and rebuild the original text."""
        alphabet = "abcdefghijklmnopqrstuvwxyz0123456789"
        for length in range(0, 37):
            text = alphabet[:length]
            for size in range(1, 9):
                for overlap in range(0, size):
                    chunks = chunk_text(text, size, overlap)
                    if not text:
                        assert chunks == []
                        continue

                    offsets = [offset for offset, _ in chunks]
                    for current, following in zip(offsets, offsets[1:]):
                        assert following == current + (size - overlap)
                    for offset, window in chunks[:-1]:
                        assert window == text[offset : offset + size]
                        assert len(window) == size

                    last_offset, last = chunks[-1]
                    assert len(last) == len(text) - last_offset
                    assert 0 < len(last) <= size

                    rebuilt = chunks[0][1] + "".join(w[overlap:] for _, w in chunks[1:])
                    assert rebuilt == text

    def test_chunking_is_deterministic(self) -> None:
        text = "lorem ipsum dolor sit amet " * 20
        assert chunk_text(text, 37, 5) == chunk_text(text, 37, 5)


class TestValidateChunking:
    """Test rejection of parameters that cannot advance."""

    @pytest.mark.parametrize(
        ("size", "overlap"),
        [(10, 10), (10, 11), (0, 0), (-1, 0), (10, -1)],
    )
    def test_rejects_invalid_parameters(self, size: int, overlap: int) -> None:
        with pytest.raises(InvalidArgumentError):
            validate_chunking(size, overlap)

    def test_chunk_text_rejects_overlap_equal_to_size(self) -> None:
        with pytest.raises(InvalidArgumentError, match="overlap"):
            chunk_text("some text", 4, 4)

    def test_accepts_valid_parameters(self) -> None:
        validate_chunking(500, 100)
        validate_chunking(1, 0)
