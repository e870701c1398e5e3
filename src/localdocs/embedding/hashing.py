"""Deterministic offline embeddings derived from SHA-256 digests.

Identical texts map to identical unit vectors; there is no notion of semantic
closeness beyond that. Useful for smoke tests and air-gapped setups.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

import numpy as np


def _deterministic_embedding(text: str, *, dimension: int) -> np.ndarray:
    seed = hashlib.sha256(text.encode("utf-8")).digest()
    values: list[int] = []
    digest = seed

    while len(values) < dimension:
        digest = hashlib.sha256(digest + seed).digest()
        values.extend(digest)

    vector = np.asarray(values[:dimension], dtype="float32") / 127.5 - 1.0
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        vector /= norm
    return vector


class HashEmbedder:
    def __init__(self, *, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self.dimension = dimension

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        rows = [_deterministic_embedding(text, dimension=self.dimension) for text in texts]
        if not rows:
            return np.empty((0, self.dimension), dtype="float32")
        return np.vstack(rows)

    def embed_query(self, text: str) -> np.ndarray:
        return _deterministic_embedding(text, dimension=self.dimension)
