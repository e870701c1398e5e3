"""Embedding provider contract and backend selection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol, Sequence

import numpy as np

from localdocs.errors import ProviderError

if TYPE_CHECKING:
    from localdocs.config import AppConfig

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_DIMENSION = 768
DEFAULT_BACKEND = "sentence-transformers"
BACKENDS = ("sentence-transformers", "ollama", "hash")

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    dimension: int

    def embed(self, texts: Sequence[str]) -> np.ndarray: ...

    def embed_query(self, text: str) -> np.ndarray: ...


def create_embedding_provider(config: "AppConfig") -> EmbeddingProvider:
    """Instantiate the backend named by ``config.embedding_backend``."""
    backend = config.embedding_backend
    logger.info("Using embedding backend: %s", backend)

    if backend == "ollama":
        from localdocs.embedding.ollama import OllamaEmbeddingClient

        return OllamaEmbeddingClient(
            base_url=config.ollama_base_url,
            model=config.ollama_model,
            dimension=config.embedding_dim,
            timeout_seconds=config.embed_timeout,
        )
    if backend == "hash":
        from localdocs.embedding.hashing import HashEmbedder

        return HashEmbedder(dimension=config.embedding_dim)
    if backend == "sentence-transformers":
        # Imported lazily, loading torch is slow
        from localdocs.embedding.encoder import EmbeddingConfig, EmbeddingModel

        return EmbeddingModel(
            EmbeddingConfig(model_name=config.model_name, batch_size=config.embed_batch_size)
        )
    raise ValueError(f"Unknown embedding backend: {backend}")


async def embed_with_timeout(
    func: Callable[..., np.ndarray], *args: Any, timeout: float | None
) -> np.ndarray:
    """Run a blocking provider call in a worker thread under a deadline.

    Timeouts and provider exceptions are reported as ``ProviderError``.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderError(f"Embedding call timed out after {timeout}s") from exc
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(f"Embedding call failed: {exc}") from exc
