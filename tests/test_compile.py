"""Tests for CompileService: extraction, chunking, embedding and index replacement."""

import json

import pytest

from services.rag_compile.CompileService import CompileService, make_chunk_id
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors import ConfigurationError, NotFoundError, ProviderError, ValidationError
from shared.models.group import UploadItem
from shared.stores.FileStore import FileStore


@pytest.fixture
def file_store(helper_config):
    return FileStore(helper_config)


@pytest.fixture
def rag_manager(helper_config, transport):
    return RAGClientManager(helper_config, transport=transport)


@pytest.fixture
def compile_service(helper_config, helper_settings, file_store, rag_manager, transport):
    return CompileService(
        helper_config=helper_config,
        helper_settings=helper_settings,
        file_store=file_store,
        embed_manager=EmbedClientManager(helper_config, transport=transport),
        rag_manager=rag_manager,
    )


@pytest.fixture
def openai_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")


def _snapshot(files_root, conversation_id: str | None = None) -> dict:
    folder = files_root / conversation_id if conversation_id else files_root
    return json.loads((folder / "vector-store.json").read_text(encoding="utf-8"))


async def test_long_document_becomes_three_chunks(compile_service, file_store, files_root, openai_key, vectorize):
    text = "".join(chr(ord("a") + i % 26) for i in range(2500))
    file_store.save_uploads("g1", None, [UploadItem(name="long.txt", content=text.encode())])

    result = await compile_service.compile()

    assert result.document_count == 1
    assert result.chunk_count == 3
    assert result.vector_store == "memory"
    chunks = _snapshot(files_root)["chunks"]
    assert [c["id"] for c in chunks] == [make_chunk_id("groups/g1/long.txt", i) for i in range(3)]
    assert chunks[0]["metadata"] == {"source": "long.txt", "group": "g1", "path": "groups/g1/long.txt", "type": ".txt"}
    assert chunks[1]["embedding"] == vectorize(chunks[1]["text"])


async def test_recompile_is_deterministic(compile_service, file_store, files_root, openai_key):
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha " * 400)])

    await compile_service.compile()
    first = _snapshot(files_root)
    await compile_service.compile()

    assert _snapshot(files_root) == first


async def test_missing_embedding_key_touches_nothing(compile_service, file_store, files_root, providers):
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha")])

    with pytest.raises(ConfigurationError):
        await compile_service.compile()

    assert not (files_root / "vector-store.json").exists()
    assert providers.requests == []


async def test_request_key_overrides_env(compile_service, file_store, providers, openai_key):
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha")])

    await compile_service.compile(api_key="sk-request")

    assert providers.calls_to("/embeddings")[0].headers["authorization"] == "Bearer sk-request"


async def test_empty_corpus_leaves_index_untouched(compile_service, rag_manager, files_root, openai_key, providers):
    await rag_manager.get_memory_client().upsert_all([])
    before = (files_root / "vector-store.json").read_text(encoding="utf-8")

    result = await compile_service.compile()

    assert result.document_count == 0
    assert result.chunk_count == 0
    assert (files_root / "vector-store.json").read_text(encoding="utf-8") == before
    assert providers.requests == []


async def test_embedding_failure_keeps_previous_index(compile_service, file_store, files_root, providers, openai_key):
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha")])
    await compile_service.compile()
    previous = _snapshot(files_root)

    file_store.save_uploads("g1", None, [UploadItem(name="b.txt", content=b"beta")])
    providers.embed_status = 500
    with pytest.raises(ProviderError):
        await compile_service.compile()

    assert _snapshot(files_root) == previous


async def test_broken_file_is_indexed_as_placeholder(compile_service, file_store, files_root, openai_key):
    file_store.save_uploads("g1", None, [
        UploadItem(name="broken.pdf", content=b"not a pdf"),
        UploadItem(name="ok.txt", content=b"readable text"),
    ])

    result = await compile_service.compile()

    assert result.document_count == 2
    texts = [c["text"] for c in _snapshot(files_root)["chunks"]]
    assert "File: broken.pdf (Content not extracted - extraction failed)" in texts
    assert "readable text" in texts


async def test_unreachable_qdrant_falls_back_to_memory(compile_service, helper_settings, file_store, files_root, openai_key):
    helper_settings.update({"vector_store": "qdrant", "vector_store_url": "http://localhost:6333"})
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha")])

    result = await compile_service.compile()

    assert result.vector_store == "memory"
    assert len(_snapshot(files_root)["chunks"]) == 1


async def test_conversation_compile_uses_its_own_files(compile_service, file_store, files_root, openai_key):
    file_store.save_uploads("g1", None, [UploadItem(name="global.txt", content=b"global")])
    file_store.save_uploads(None, "conv1", [UploadItem(name="loose.txt", content=b"loose")])
    file_store.save_uploads("g2", "conv1", [UploadItem(name="grouped.txt", content=b"grouped")])

    result = await compile_service.compile_conversation("conv1")

    assert result.document_count == 2
    groups = {c["metadata"]["source"]: c["metadata"]["group"] for c in _snapshot(files_root, "conv1")["chunks"]}
    assert groups == {"loose.txt": "conversation", "grouped.txt": "g2"}
    assert not (files_root / "vector-store.json").exists()


async def test_conversation_compile_validation(compile_service, openai_key):
    with pytest.raises(ValidationError):
        await compile_service.compile_conversation("../x")
    with pytest.raises(NotFoundError):
        await compile_service.compile_conversation("conv-without-files")


async def test_truncate_and_stats(compile_service, file_store, files_root, openai_key):
    file_store.save_uploads("g1", None, [UploadItem(name="a.txt", content=b"alpha " * 400)])
    await compile_service.compile()

    stats = await compile_service.stats()
    assert stats.total_documents == 1
    assert stats.total_chunks == 3
    assert stats.last_compiled != "Never"
    assert stats.vector_store_type == "In-Memory"

    await compile_service.truncate()

    stats = await compile_service.stats()
    assert not (files_root / "vector-store.json").exists()
    assert stats.total_chunks == 0
    assert stats.last_compiled == "Never"
    assert file_store.list_group_documents("g1")
