"""Tests for local embeddings module.

Tests the LocalSentenceTransformerEmbeddings class with mocked
SentenceTransformer to avoid downloading models in CI.
"""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from mnemosearch.embeddings.local import LocalSentenceTransformerEmbeddings
from mnemosearch.errors import DependencyError


def _mock_sentence_transformers(encode_result=None):
    mock_st = MagicMock()
    mock_model = MagicMock()
    if encode_result is not None:
        mock_model.encode.return_value = encode_result
    mock_st.SentenceTransformer.return_value = mock_model
    return mock_st, mock_model


class TestLocalSentenceTransformerEmbeddings:
    def test_initialization(self):
        """Model is built with the requested name and device."""
        mock_st, _ = _mock_sentence_transformers()

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings(
                "test-model", device="cpu", normalize=False, batch_size=16
            )

        mock_st.SentenceTransformer.assert_called_once_with("test-model", device="cpu")
        assert embeddings.model_name == "test-model"
        assert embeddings.normalize is False
        assert embeddings.batch_size == 16

    def test_embed_documents_raw(self):
        mock_st, _ = _mock_sentence_transformers(np.array([[0.1, 0.2], [0.3, 0.4]]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings(normalize=False)
            result = embeddings.embed_documents(["Hello", "World"])

        assert len(result) == 2
        np.testing.assert_allclose(result[0], [0.1, 0.2], rtol=1e-6)
        np.testing.assert_allclose(result[1], [0.3, 0.4], rtol=1e-6)

    def test_embed_documents_normalized(self):
        mock_st, _ = _mock_sentence_transformers(np.array([[3.0, 4.0], [0.0, 0.0]]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings()
            result = embeddings.embed_documents(["A", "B"])

        np.testing.assert_allclose(result[0], [0.6, 0.8], rtol=1e-6)
        # zero vectors stay zero instead of dividing by zero
        assert result[1] == [0.0, 0.0]

    def test_embed_documents_empty_list(self):
        mock_st, mock_model = _mock_sentence_transformers()

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings()
            assert embeddings.embed_documents([]) == []

        mock_model.encode.assert_not_called()

    def test_embed_query_accepts_one_dimensional_output(self):
        mock_st, _ = _mock_sentence_transformers(np.array([0.5, 0.6, 0.7]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings(normalize=False)
            result = embeddings.embed_query("Test query")

        np.testing.assert_allclose(result, [0.5, 0.6, 0.7], rtol=1e-6)

    def test_encode_arguments(self):
        mock_st, mock_model = _mock_sentence_transformers(np.array([[0.1]]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings(batch_size=64)
            embeddings.embed_documents(["Test"])

        mock_model.encode.assert_called_once()
        call_kwargs = mock_model.encode.call_args[1]
        assert call_kwargs["batch_size"] == 64
        assert call_kwargs["convert_to_numpy"] is True
        assert call_kwargs["show_progress_bar"] is False

    def test_dimension_from_model(self):
        mock_st, mock_model = _mock_sentence_transformers()
        mock_model.get_sentence_embedding_dimension.return_value = 384

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings()

        assert embeddings.dimension == 384

    @pytest.mark.asyncio
    async def test_aembed_query(self):
        mock_st, _ = _mock_sentence_transformers(np.array([[1.0, 2.0]]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings(normalize=False)
            result = await embeddings.aembed_query("Async test")

        assert result == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_aembed_documents(self):
        mock_st, _ = _mock_sentence_transformers(np.array([[1.0], [2.0]]))

        with patch.dict(sys.modules, {"sentence_transformers": mock_st}):
            embeddings = LocalSentenceTransformerEmbeddings()
            result = await embeddings.aembed_documents(["A", "B"])

        assert len(result) == 2

    def test_dependency_error_when_sentence_transformers_missing(self):
        with patch.dict(sys.modules, {"sentence_transformers": None}):
            with pytest.raises(DependencyError, match="sentence-transformers") as excinfo:
                LocalSentenceTransformerEmbeddings()

        assert excinfo.value.dependency == "sentence-transformers"
