"""Tests for EmbeddingProvider loading and batching behavior."""

import asyncio
import threading
import time

import numpy as np
import pytest
from langchain_core.embeddings.embeddings import Embeddings

from mnemosearch.config import SearchConfig
from mnemosearch.embeddings.provider import EmbeddingProvider

from ..fakes import DIM, FailingEmbeddings, HashingEmbeddings


class FlatBatchEmbeddings(Embeddings):
    """Returns a fixed flat output for batches, to exercise slicing."""

    def __init__(self, flat, dimension=2):
        self.flat = flat
        self.dimension = dimension
        self.batch_calls = 0
        self.query_calls = 0

    def embed_documents(self, texts):
        self.batch_calls += 1
        return self.flat

    def embed_query(self, text):
        self.query_calls += 1
        return [1.0] * self.dimension


class BatchFailsEmbeddings(HashingEmbeddings):
    def embed_documents(self, texts):
        raise RuntimeError("batch unsupported")


class CountingFactory:
    def __init__(self, model=None, *, fail_times=0, delay=0.0):
        self.model = model or HashingEmbeddings()
        self.calls = 0
        self.fail_times = fail_times
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            attempt = self.calls
        if self.delay:
            time.sleep(self.delay)
        if attempt <= self.fail_times:
            raise RuntimeError("load failed")
        return self.model


@pytest.mark.asyncio
async def test_concurrent_first_calls_share_one_load():
    factory = CountingFactory(delay=0.05)
    provider = EmbeddingProvider(factory, dimension=DIM)

    results = await asyncio.gather(*(provider.embed(f"text {i}") for i in range(10)))

    assert factory.calls == 1
    assert all(result is not None and result.shape == (DIM,) for result in results)
    assert provider.available


@pytest.mark.asyncio
async def test_failed_load_returns_none_then_retries():
    factory = CountingFactory(fail_times=1)
    provider = EmbeddingProvider(factory, dimension=DIM)

    assert await provider.embed("first") is None
    assert not provider.available

    vector = await provider.embed("second")
    assert vector is not None
    assert factory.calls == 2


@pytest.mark.asyncio
async def test_concurrent_callers_all_see_none_on_failed_load():
    factory = CountingFactory(fail_times=1, delay=0.05)
    provider = EmbeddingProvider(factory, dimension=DIM)

    results = await asyncio.gather(*(provider.embed("x") for _ in range(5)))

    assert results == [None] * 5
    assert factory.calls == 1


@pytest.mark.asyncio
async def test_model_call_failure_returns_none():
    provider = EmbeddingProvider(lambda: FailingEmbeddings(), dimension=DIM)
    assert await provider.embed("anything") is None


@pytest.mark.asyncio
async def test_wrong_dimension_returns_none():
    provider = EmbeddingProvider(lambda: HashingEmbeddings(dimension=DIM + 1), dimension=DIM)
    assert await provider.embed("anything") is None


@pytest.mark.asyncio
async def test_reset_forces_reload():
    factory = CountingFactory()
    provider = EmbeddingProvider(factory, dimension=DIM)
    await provider.embed("one")
    provider.reset()
    await provider.embed("two")
    assert factory.calls == 2


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_empty_batch(self):
        factory = CountingFactory()
        provider = EmbeddingProvider(factory, dimension=DIM)
        assert await provider.embed_batch([]) == []
        assert factory.calls == 0

    @pytest.mark.asyncio
    async def test_single_text_uses_single_path(self):
        model = FlatBatchEmbeddings([[9.0, 9.0]])
        provider = EmbeddingProvider(lambda: model, dimension=2)

        result = await provider.embed_batch(["only"])

        assert model.batch_calls == 0
        assert model.query_calls == 1
        np.testing.assert_allclose(result[0], [1.0, 1.0])

    @pytest.mark.asyncio
    async def test_flat_output_sliced_by_dimension(self):
        model = FlatBatchEmbeddings([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        provider = EmbeddingProvider(lambda: model, dimension=2)

        result = await provider.embed_batch(["a", "b", "c"])

        assert model.batch_calls == 1
        np.testing.assert_allclose(result[0], [1.0, 2.0])
        np.testing.assert_allclose(result[1], [3.0, 4.0])
        np.testing.assert_allclose(result[2], [5.0, 6.0])

    @pytest.mark.asyncio
    async def test_short_output_leaves_tail_unavailable(self):
        model = FlatBatchEmbeddings([1.0, 2.0, 3.0, 4.0, 5.0])
        provider = EmbeddingProvider(lambda: model, dimension=2)

        result = await provider.embed_batch(["a", "b", "c"])

        np.testing.assert_allclose(result[0], [1.0, 2.0])
        np.testing.assert_allclose(result[1], [3.0, 4.0])
        assert result[2] is None

    @pytest.mark.asyncio
    async def test_batch_failure_falls_back_to_single_calls(self):
        model = BatchFailsEmbeddings()
        provider = EmbeddingProvider(lambda: model, dimension=DIM)

        result = await provider.embed_batch(["alpha", "beta", "gamma"])

        assert len(result) == 3
        assert all(vector is not None for vector in result)
        assert model.query_calls == 3
        np.testing.assert_allclose(result[0], await provider.embed("alpha"))

    @pytest.mark.asyncio
    async def test_unloadable_model(self, unloadable_factory):
        provider = EmbeddingProvider(unloadable_factory, dimension=DIM)
        assert await provider.embed_batch(["a", "b"]) == [None, None]


def test_from_config_uses_configured_dimension():
    config = SearchConfig(embedding_dim=8)
    provider = EmbeddingProvider.from_config(config, lambda: HashingEmbeddings(8))
    assert provider.dimension == 8
