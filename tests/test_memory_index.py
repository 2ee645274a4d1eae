"""Tests for the file backed vector index and the index selection order."""

import json

from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.memory.RAGClientMemory import RAGClientMemory, cosine_similarity
from shared.models.chunk import DocumentChunk
from shared.models.settings import Settings


def _chunk(chunk_id: str, embedding: list[float], text: str = "") -> DocumentChunk:
    return DocumentChunk(id=chunk_id, text=text or chunk_id, metadata={"source": f"{chunk_id}.txt"}, embedding=embedding)


def test_cosine_similarity_edge_cases():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == 1.0
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


async def test_top_k_orders_by_similarity(helper_config, tmp_path):
    index = RAGClientMemory(helper_config, tmp_path / "vector-store.json")
    await index.upsert_all([
        _chunk("far", [0.0, 1.0]),
        _chunk("near", [1.0, 0.1]),
        _chunk("middle", [1.0, 1.0]),
    ])

    hits = await index.top_k([1.0, 0.0], 2)

    assert [h.chunk.id for h in hits] == ["near", "middle"]
    assert hits[0].score > hits[1].score


async def test_ties_keep_insertion_order(helper_config, tmp_path):
    index = RAGClientMemory(helper_config, tmp_path / "vector-store.json")
    await index.upsert_all([_chunk(name, [1.0, 1.0]) for name in ("a", "b", "c")])

    hits = await index.top_k([1.0, 1.0], 3)

    assert [h.chunk.id for h in hits] == ["a", "b", "c"]


async def test_non_positive_k_returns_nothing(helper_config, tmp_path):
    index = RAGClientMemory(helper_config, tmp_path / "vector-store.json")
    await index.upsert_all([_chunk("a", [1.0])])
    assert await index.top_k([1.0], 0) == []
    assert await index.top_k([1.0], -3) == []


async def test_snapshot_survives_a_new_instance(helper_config, tmp_path):
    path = tmp_path / "vector-store.json"
    await RAGClientMemory(helper_config, path).upsert_all([_chunk("a", [0.5, 0.5], text="alpha")])

    reloaded = RAGClientMemory(helper_config, path)

    assert await reloaded.count() == 1
    hits = await reloaded.top_k([1.0, 1.0], 1)
    assert hits[0].chunk.text == "alpha"
    assert list(tmp_path.iterdir()) == [path]


async def test_corrupt_snapshot_reads_as_empty(helper_config, tmp_path):
    path = tmp_path / "vector-store.json"
    path.write_text("{not json", encoding="utf-8")

    index = RAGClientMemory(helper_config, path)

    assert await index.count() == 0
    assert await index.top_k([1.0], 4) == []


async def test_clear_removes_snapshot(helper_config, tmp_path):
    path = tmp_path / "vector-store.json"
    index = RAGClientMemory(helper_config, path)
    await index.upsert_all([_chunk("a", [1.0])])

    await index.clear()

    assert not path.exists()
    assert await index.count() == 0


async def test_open_for_query_prefers_conversation_snapshot(helper_config):
    manager = RAGClientManager(helper_config)
    await manager.get_memory_client().upsert_all([_chunk("global", [1.0])])
    await manager.get_memory_client("conv1").upsert_all([_chunk("local", [1.0])])

    index = await manager.open_for_query(Settings(), "conv1")
    hits = await index.top_k([1.0], 1)

    assert hits[0].chunk.id == "local"


async def test_open_for_query_falls_back_to_global_snapshot(helper_config):
    manager = RAGClientManager(helper_config)
    await manager.get_memory_client().upsert_all([_chunk("global", [1.0])])

    index = await manager.open_for_query(Settings(), "conv-without-index")

    assert index is not None
    assert (await index.top_k([1.0], 1))[0].chunk.id == "global"


async def test_open_for_query_without_any_index(helper_config):
    manager = RAGClientManager(helper_config)
    assert await manager.open_for_query(Settings(), "conv1") is None


async def test_open_for_query_skips_unreachable_qdrant(helper_config, transport):
    manager = RAGClientManager(helper_config, transport=transport)
    await manager.get_memory_client().upsert_all([_chunk("global", [1.0])])
    settings = Settings(vector_store="qdrant", vector_store_url="http://localhost:6333")

    index = await manager.open_for_query(settings, "conv1")

    assert index.get_backend_name() == "memory"


def test_snapshot_layout(helper_config, files_root):
    manager = RAGClientManager(helper_config)
    assert manager.get_snapshot_path() == files_root.resolve() / "vector-store.json"
    assert manager.get_snapshot_path("abc") == files_root.resolve() / "abc" / "vector-store.json"
    assert manager.get_collection_name("abc") == "conv_abc"
    assert manager.get_collection_name() == "documents"


async def test_snapshot_file_format(helper_config, tmp_path):
    path = tmp_path / "vector-store.json"
    await RAGClientMemory(helper_config, path).upsert_all([_chunk("a", [1.0, 2.0])])

    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["chunks"][0]["id"] == "a"
    assert data["chunks"][0]["embedding"] == [1.0, 2.0]
