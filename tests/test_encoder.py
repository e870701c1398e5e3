"""Tests for the sentence-transformers embedding backend."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from localdocs.embedding.encoder import EmbeddingConfig, EmbeddingModel, detect_backend


def _fake_model(dimension: int = 4) -> MagicMock:
    model = MagicMock()
    model.get_sentence_embedding_dimension.return_value = dimension
    model.encode.side_effect = lambda sentences, **kwargs: np.ones(
        (len(sentences), dimension), dtype="float64"
    )
    return model


class TestBackendDetection:
    """Test backend detection."""

    @patch("localdocs.embedding.encoder._check_onnx_providers", return_value=["CPUExecutionProvider"])
    def test_onnx_available(self, mock_providers: MagicMock) -> None:
        assert detect_backend() == "onnx"

    @patch("localdocs.embedding.encoder._check_onnx_providers", return_value=[])
    def test_onnx_missing(self, mock_providers: MagicMock) -> None:
        assert detect_backend() == "torch"


class TestEmbeddingConfig:
    """Test EmbeddingConfig dataclass."""

    def test_default_config(self) -> None:
        config = EmbeddingConfig()
        assert config.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert config.batch_size == 16
        assert config.normalize is True
        assert config.backend is None
        assert config.device is None


class TestEmbeddingModel:
    """Test EmbeddingModel with a mocked SentenceTransformer."""

    @patch("localdocs.embedding.encoder.SentenceTransformer")
    def test_embed(self, mock_st: MagicMock) -> None:
        mock_st.return_value = _fake_model(dimension=4)

        model = EmbeddingModel(EmbeddingConfig(model_name="tiny", backend="torch", batch_size=8))
        embeddings = model.embed(["a", "b"])

        assert model.dimension == 4
        assert embeddings.shape == (2, 4)
        assert embeddings.dtype == np.float32
        mock_st.assert_called_once_with("tiny", backend="torch", device=None)
        assert mock_st.return_value.encode.call_args.kwargs["batch_size"] == 8
        assert mock_st.return_value.encode.call_args.kwargs["normalize_embeddings"] is True

    @patch("localdocs.embedding.encoder.SentenceTransformer")
    def test_embed_query(self, mock_st: MagicMock) -> None:
        mock_st.return_value = _fake_model(dimension=3)

        vector = EmbeddingModel(EmbeddingConfig(backend="torch")).embed_query("hello")

        assert vector.shape == (3,)

    @patch("localdocs.embedding.encoder.detect_backend", return_value="onnx")
    @patch("localdocs.embedding.encoder.SentenceTransformer")
    def test_auto_detects_backend(self, mock_st: MagicMock, mock_detect: MagicMock) -> None:
        mock_st.return_value = _fake_model()

        model = EmbeddingModel()

        assert model.config.backend == "onnx"
        mock_detect.assert_called_once()

    @patch("localdocs.embedding.encoder.SentenceTransformer")
    def test_falls_back_to_torch(self, mock_st: MagicMock) -> None:
        mock_st.side_effect = [RuntimeError("onnx export failed"), _fake_model()]

        model = EmbeddingModel(EmbeddingConfig(backend="onnx"))

        assert model.config.backend == "torch"
        assert mock_st.call_count == 2
        assert mock_st.call_args.kwargs["backend"] == "torch"

    @patch("localdocs.embedding.encoder.SentenceTransformer")
    def test_torch_failure_propagates(self, mock_st: MagicMock) -> None:
        mock_st.side_effect = RuntimeError("no such model")

        with pytest.raises(RuntimeError, match="no such model"):
            EmbeddingModel(EmbeddingConfig(backend="torch"))
