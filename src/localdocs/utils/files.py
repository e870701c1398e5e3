"""Utility helpers for crawling directories and reading text files."""

from __future__ import annotations

import os
from pathlib import Path

from localdocs.errors import IngestionIOError

SUPPORTED_SUFFIXES = (".md", ".txt")


def crawl_directory(root: Path) -> list[Path]:
    """Return every file below ``root``, descending into subdirectories.

    Entries are visited depth-first in name order. Callers must not rely on
    the order.
    """
    root = Path(root)
    if not root.is_dir():
        raise IngestionIOError(f"Not a directory: {root}")

    files: list[Path] = []
    try:
        entries = sorted(os.scandir(root), key=lambda entry: entry.name)
    except OSError as exc:
        raise IngestionIOError(f"Unable to list {root}: {exc}") from exc

    for entry in entries:
        path = Path(entry.path).absolute()
        if entry.is_dir(follow_symlinks=False):
            files.extend(crawl_directory(path))
        else:
            files.append(path)
    return files


def normalize_path(path: str) -> str:
    """Expand ``~`` and make ``path`` absolute, keeping a trailing separator.

    The result is used as a string prefix, so ``notes/`` must not collapse
    to ``notes`` and start matching ``notes-archive``.
    """
    path = path.strip()
    normalized = os.path.abspath(os.path.expanduser(path))
    separators = (os.sep, os.altsep) if os.altsep else (os.sep,)
    if path.endswith(separators) and not normalized.endswith(os.sep):
        normalized += os.sep
    return normalized


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_SUFFIXES


def extract_text(path: Path) -> str | None:
    """Return the text of a supported file, or ``None`` for other types."""
    if not is_supported(path):
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise IngestionIOError(f"Unable to read {path}: {exc}") from exc
