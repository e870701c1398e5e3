"""Remote embeddings served by an Ollama instance."""

from __future__ import annotations

from typing import Sequence

import httpx
import numpy as np

from localdocs.errors import ProviderError


class OllamaEmbeddingClient:
    """Calls Ollama's ``/api/embed`` endpoint, one request per batch."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        dimension: int,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds
        self.dimension = dimension

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        inputs = list(texts)
        if not inputs:
            return np.empty((0, self.dimension), dtype="float32")

        try:
            response = httpx.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model, "input": inputs},
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc

        payload = response.json()
        vectors = payload.get("embeddings") if isinstance(payload, dict) else None
        if not isinstance(vectors, list):
            raise ProviderError("Invalid embeddings payload: missing embeddings")
        if len(vectors) != len(inputs):
            raise ProviderError(
                f"Invalid embeddings payload: expected {len(inputs)} vectors, got {len(vectors)}"
            )
        for vector in vectors:
            if not isinstance(vector, list) or len(vector) != self.dimension:
                raise ProviderError(
                    f"Invalid embeddings payload: expected vectors of width {self.dimension}"
                )

        return np.asarray(vectors, dtype="float32")

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]
