"""
Example: hybrid search over a handful of project memories.

Demonstrates:
1. Wiring a store, keyword index and embedding model with build_engine
2. Embedding on write through the background queue
3. Hybrid search with intent classification
4. Finding similar memories
5. Running the embedding backfill by hand

Requires the local model extra: pip install "mnemosearch[local]"
"""

import asyncio
import tempfile
from pathlib import Path

from mnemosearch import Memory, SearchConfig, build_engine

MEMORIES = [
    ("agent/context/testing", "Run pytest with -x; integration tests need docker", ["testing"]),
    ("agent/context/architecture/api-design", "REST handlers live in app/api and stay thin", ["architecture"]),
    ("agent/context/deployment", "Deploys go through the staging cluster first", ["deployment"]),
    ("agent/context/coding_style", "Prefer dataclasses over dicts for internal records", ["coding_style"]),
]


async def main():
    with tempfile.TemporaryDirectory() as tmp:
        config = SearchConfig(db_path=str(Path(tmp) / "demo.sqlite"))
        engine = build_engine(config)
        await engine.start()

        created = []
        for key, content, tags in MEMORIES:
            memory = Memory(project_id="demo", key=key, content=content, tags=tags)
            created.append(await engine.store.create_memory(memory))
        await engine.queue.join()

        for query in ("agent/context/testing", "how do we deploy", "api handlers"):
            response = await engine.hybrid_search("demo", query, limit=3)
            print(f"\n{query!r} -> {response.classification.intent.value}")
            for memory_id in response.memory_ids:
                memory = await engine.store.get_memory(memory_id)
                print(f"  {memory.key}")

        similar = await engine.similar(created[0].memory_id, limit=2)
        print(f"\nsimilar to {created[0].key}: {similar}")

        report = await engine.run_embedding_backfill()
        print(f"\nbackfill: {report.embedded}/{report.total} embedded")

        await engine.close()


if __name__ == "__main__":
    asyncio.run(main())
