"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from localdocs.config import AppConfig


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "LOCALDOCS_DB",
        "LOCALDOCS_EMBEDDING_BACKEND",
        "LOCALDOCS_EMBEDDING_DIM",
        "LOCALDOCS_CHUNK_CHARS",
        "LOCALDOCS_CHUNK_OVERLAP",
        "LOCALDOCS_PORT",
        "USE_OLLAMA",
        "OLLAMA_MODEL",
        "OLLAMA_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self) -> None:
        """Should create config with default values."""
        config = AppConfig(db_path=Path("data/localdocs.db"))

        assert config.embedding_backend == "sentence-transformers"
        assert config.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert config.ollama_model == "nomic-embed-text"
        assert config.embedding_dim == 768
        assert config.chunk_chars == 500
        assert config.overlap == 100
        assert config.port == 3000

    def test_default_db_path_outside_checkout(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should fall back to the home directory when data/ is absent."""
        monkeypatch.chdir(tmp_path)

        assert AppConfig().db_path == Path.home() / ".localdocs" / "localdocs.db"

    def test_default_db_path_in_checkout(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should prefer a local data/localdocs.db when it exists."""
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "localdocs.db").touch()
        monkeypatch.chdir(tmp_path)

        assert AppConfig().db_path == Path("data/localdocs.db")

    def test_invalid_backend(self) -> None:
        """Should reject unknown embedding backends."""
        with pytest.raises(ValueError, match="Unknown embedding backend"):
            AppConfig(embedding_backend="word2vec")

    def test_resolve_db_path_absolute(self) -> None:
        """Should return absolute path as-is."""
        config = AppConfig(db_path=Path("/absolute/path/db.db"))

        assert config.resolve_db_path(Path("/base")) == Path("/absolute/path/db.db")

    def test_resolve_db_path_relative_with_base(self) -> None:
        """Should resolve relative path against base_dir."""
        config = AppConfig(db_path=Path("relative/db.db"))

        assert config.resolve_db_path(Path("/base/directory")) == Path(
            "/base/directory/relative/db.db"
        )

    def test_resolve_db_path_relative_no_base(self) -> None:
        config = AppConfig(db_path=Path("relative/db.db"))

        assert config.resolve_db_path() == Path("relative/db.db")


class TestFromEnv:
    """Test AppConfig.from_env."""

    def test_reads_variables(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LOCALDOCS_DB", "/srv/docs.db")
        clean_env.setenv("LOCALDOCS_EMBEDDING_BACKEND", "hash")
        clean_env.setenv("LOCALDOCS_EMBEDDING_DIM", "64")
        clean_env.setenv("LOCALDOCS_CHUNK_CHARS", "800")
        clean_env.setenv("LOCALDOCS_CHUNK_OVERLAP", "50")
        clean_env.setenv("LOCALDOCS_PORT", "8080")

        config = AppConfig.from_env()

        assert config.db_path == Path("/srv/docs.db")
        assert config.embedding_backend == "hash"
        assert config.embedding_dim == 64
        assert config.chunk_chars == 800
        assert config.overlap == 50
        assert config.port == 8080

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_use_ollama_selects_ollama(self, clean_env: pytest.MonkeyPatch, value: str) -> None:
        clean_env.setenv("USE_OLLAMA", value)
        clean_env.setenv("OLLAMA_MODEL", "mxbai-embed-large")

        config = AppConfig.from_env()

        assert config.embedding_backend == "ollama"
        assert config.ollama_model == "mxbai-embed-large"

    def test_use_ollama_false(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("USE_OLLAMA", "false")

        assert AppConfig.from_env().embedding_backend == "sentence-transformers"

    def test_dimension_has_a_floor(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LOCALDOCS_EMBEDDING_DIM", "0")

        assert AppConfig.from_env().embedding_dim == 1

    def test_invalid_backend(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LOCALDOCS_EMBEDDING_BACKEND", "bogus")

        with pytest.raises(ValueError):
            AppConfig.from_env()
