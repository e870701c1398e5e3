"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from localdocs.embedding.provider import (
    BACKENDS,
    DEFAULT_BACKEND,
    DEFAULT_DIMENSION,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
)


def _get_default_db_path() -> Path:
    """Get the default database path for the current working context."""
    # When running from a checkout, prefer local data/ if it exists
    local_db = Path("data/localdocs.db")
    if local_db.exists():
        return local_db
    return Path.home() / ".localdocs" / "localdocs.db"


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    return max(minimum, int(value))


def _to_float(value: str | None, *, default: float) -> float:
    if value is None:
        return default
    return float(value)


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    embedding_backend: str = DEFAULT_BACKEND
    model_name: str = DEFAULT_MODEL
    ollama_base_url: str = DEFAULT_OLLAMA_URL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    embedding_dim: int = DEFAULT_DIMENSION
    embed_timeout: float = 30.0
    embed_batch_size: int = 32
    chunk_chars: int = 500
    overlap: int = 100
    search_limit: int = 10
    session_idle_seconds: float = 1800.0
    host: str = "127.0.0.1"
    port: int = 3000

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if self.embedding_backend not in BACKENDS:
            raise ValueError(
                f"Unknown embedding backend {self.embedding_backend!r}; "
                f"expected one of {', '.join(BACKENDS)}"
            )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from ``LOCALDOCS_*`` environment variables."""
        backend = os.getenv("LOCALDOCS_EMBEDDING_BACKEND", DEFAULT_BACKEND)
        if _to_bool(os.getenv("USE_OLLAMA"), default=False):
            backend = "ollama"

        db = os.getenv("LOCALDOCS_DB")
        return cls(
            db_path=Path(db) if db else None,
            embedding_backend=backend,
            model_name=os.getenv("LOCALDOCS_MODEL", DEFAULT_MODEL),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL),
            ollama_model=os.getenv("OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
            embedding_dim=_to_int(
                os.getenv("LOCALDOCS_EMBEDDING_DIM"), default=DEFAULT_DIMENSION, minimum=1
            ),
            embed_timeout=_to_float(os.getenv("LOCALDOCS_EMBED_TIMEOUT"), default=30.0),
            embed_batch_size=_to_int(
                os.getenv("LOCALDOCS_EMBED_BATCH_SIZE"), default=32, minimum=1
            ),
            chunk_chars=_to_int(os.getenv("LOCALDOCS_CHUNK_CHARS"), default=500, minimum=1),
            overlap=_to_int(os.getenv("LOCALDOCS_CHUNK_OVERLAP"), default=100, minimum=0),
            search_limit=_to_int(os.getenv("LOCALDOCS_SEARCH_LIMIT"), default=10, minimum=1),
            session_idle_seconds=_to_float(
                os.getenv("LOCALDOCS_SESSION_IDLE_SECONDS"), default=1800.0
            ),
            host=os.getenv("LOCALDOCS_HOST", "127.0.0.1"),
            port=_to_int(os.getenv("LOCALDOCS_PORT"), default=3000, minimum=1),
        )

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
