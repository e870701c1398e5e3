"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from localdocs.embedding.hashing import HashEmbedder
from localdocs.index.storage import SQLiteVectorStore

DIMENSION = 16


@pytest.fixture
def embedder() -> HashEmbedder:
    return HashEmbedder(dimension=DIMENSION)


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteVectorStore(tmp_path / "test.db", dimension=DIMENSION)
    yield store
    store.close()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Small document tree with supported and unsupported files."""
    root = tmp_path / "docs"
    (root / "guides").mkdir(parents=True)
    (root / "notes").mkdir()
    (root / "guides" / "setup.md").write_text("alpha beta gamma", encoding="utf-8")
    (root / "notes" / "todo.txt").write_text("delta epsilon", encoding="utf-8")
    (root / "notes" / "image.png").write_bytes(b"\x89PNG\r\n")
    (root / "readme.rst").write_text("not indexed", encoding="utf-8")
    return root
