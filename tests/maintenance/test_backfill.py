"""Tests for the embedding backfill job."""

import numpy as np
import pytest

from mnemosearch.core.models import Memory
from mnemosearch.core.scoring import cosine_similarity
from mnemosearch.embeddings.codec import deserialize, serialize
from mnemosearch.errors import StoreError
from mnemosearch.maintenance.backfill import EmbeddingBackfillJob
from mnemosearch.store.sqlite_store import SQLiteMemoryStore

from ..fakes import DIM, HashingEmbeddings


class FakeStore:
    def __init__(self, memories, *, fail_list=False, fail_update_ids=()):
        self.memories = memories
        self.embeddings = {}
        self.fail_list = fail_list
        self.fail_update_ids = set(fail_update_ids)
        self.requested_limit = None
        self.source_texts = {}

    async def list_missing_embeddings(self, limit):
        self.requested_limit = limit
        if self.fail_list:
            raise StoreError("locked", store_type="fake")
        return self.memories[:limit]

    async def update_embedding(self, memory_id, embedding, *, source_text=None):
        if memory_id in self.fail_update_ids:
            raise StoreError("write failed", store_type="fake", memory_id=memory_id)
        self.embeddings[memory_id] = embedding
        self.source_texts[memory_id] = source_text
        return True

    async def close(self):
        pass


class ScriptedProvider:
    """Returns scripted embed_batch results, one entry per call."""

    dimension = 2

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.batches = []

    async def embed_batch(self, texts):
        self.batches.append(list(texts))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _memories(count):
    return [
        Memory(memory_id=f"m{i}", project_id="proj", key=f"k{i}", content=f"c{i}", tags=["t"])
        for i in range(count)
    ]


def _vectors(count):
    return [np.array([1.0, float(i)], dtype=np.float32) for i in range(count)]


@pytest.mark.asyncio
async def test_embeds_in_sub_batches():
    store = FakeStore(_memories(5))
    provider = ScriptedProvider([_vectors(2), _vectors(2), _vectors(1)])
    job = EmbeddingBackfillJob(store, provider, limit=100, batch_size=2)

    report = await job.run()

    assert store.requested_limit == 100
    assert [len(batch) for batch in provider.batches] == [2, 2, 1]
    assert provider.batches[0] == ["k0 c0 t", "k1 c1 t"]
    assert report.total == 5
    assert report.embedded == 5
    assert report.failed == 0
    assert report.remaining == 0
    np.testing.assert_allclose(deserialize(store.embeddings["m1"]), [1.0, 1.0], atol=0.01)
    assert store.source_texts["m1"] == "k1 c1 t"


@pytest.mark.asyncio
async def test_respects_limit():
    store = FakeStore(_memories(5))
    provider = ScriptedProvider([_vectors(3)])
    job = EmbeddingBackfillJob(store, provider, limit=3, batch_size=50)

    report = await job.run()

    assert report.total == 3
    assert set(store.embeddings) == {"m0", "m1", "m2"}


@pytest.mark.asyncio
async def test_partial_failures_are_counted():
    store = FakeStore(_memories(4), fail_update_ids={"m3"})
    provider = ScriptedProvider([[_vectors(1)[0], None], RuntimeError("model crashed")])
    job = EmbeddingBackfillJob(store, provider, batch_size=2)

    report = await job.run()

    # m0 stored, m1 had no vector, m2/m3 lost with their batch
    assert report.total == 4
    assert report.embedded == 1
    assert report.failed == 3
    assert set(store.embeddings) == {"m0"}


@pytest.mark.asyncio
async def test_persist_failure_is_isolated():
    store = FakeStore(_memories(2), fail_update_ids={"m0"})
    provider = ScriptedProvider([_vectors(2)])
    job = EmbeddingBackfillJob(store, provider)

    report = await job.run()

    assert report.embedded == 1
    assert report.failed == 1
    assert set(store.embeddings) == {"m1"}


@pytest.mark.asyncio
async def test_model_unavailable():
    store = FakeStore(_memories(2))
    provider = ScriptedProvider([[None, None]])
    job = EmbeddingBackfillJob(store, provider)

    report = await job.run()

    assert report.embedded == 0
    assert report.failed == 2
    assert store.embeddings == {}


@pytest.mark.asyncio
async def test_nothing_to_do():
    provider = ScriptedProvider([])
    report = await EmbeddingBackfillJob(FakeStore([]), provider).run()

    assert report.total == 0
    assert provider.batches == []


@pytest.mark.asyncio
async def test_listing_failure_never_raises():
    report = await EmbeddingBackfillJob(FakeStore([], fail_list=True), ScriptedProvider([])).run()

    assert report.total == 0
    assert report.embedded == 0


class InterleavingProvider:
    """Embeds with the hashing model, running ``during_embed`` before returning.

    Stands in for a slow model call while another writer changes the memory.
    """

    dimension = DIM

    def __init__(self, during_embed):
        self.during_embed = during_embed
        self.model = HashingEmbeddings()

    def vector(self, text):
        return np.asarray(self.model.embed_query(text), dtype=np.float32)

    async def embed_batch(self, texts):
        vectors = [self.vector(text) for text in texts]
        await self.during_embed()
        return vectors


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteMemoryStore(tmp_path / "backfill.sqlite")


@pytest.mark.asyncio
async def test_update_during_embed_keeps_fresh_vector(sqlite_store, make_memory):
    memory = make_memory("k", "alpha alpha")
    await sqlite_store.create_memory(memory)

    async def rewrite_and_embed():
        updated = await sqlite_store.update_memory(memory.memory_id, content="omega zulu")
        await sqlite_store.update_embedding(
            memory.memory_id,
            serialize(provider.vector(updated.embedding_text())),
            source_text=updated.embedding_text(),
        )

    provider = InterleavingProvider(rewrite_and_embed)

    report = await EmbeddingBackfillJob(sqlite_store, provider).run()

    stored = await sqlite_store.get_memory(memory.memory_id)
    current = provider.vector(stored.embedding_text())
    assert report.embedded == 0
    assert cosine_similarity(deserialize(stored.embedding), current) > 0.99
    await sqlite_store.close()


@pytest.mark.asyncio
async def test_update_during_embed_leaves_memory_for_next_run(sqlite_store, make_memory):
    memory = make_memory("k", "alpha alpha")
    await sqlite_store.create_memory(memory)

    async def rewrite():
        await sqlite_store.update_memory(memory.memory_id, content="omega zulu")

    report = await EmbeddingBackfillJob(sqlite_store, InterleavingProvider(rewrite)).run()

    assert report.embedded == 0
    assert (await sqlite_store.get_memory(memory.memory_id)).embedding is None
    missing = await sqlite_store.list_missing_embeddings(10)
    assert [m.memory_id for m in missing] == [memory.memory_id]
    await sqlite_store.close()
