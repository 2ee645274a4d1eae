"""Tests for AskService: retrieval, direct answers and conversation recording."""

import httpx
import pytest

from server.core.AskService import HTML_FORMAT_INSTRUCTION, AskService
from server.models.requests import AskRequest
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors import ConfigurationError, ProviderError, ValidationError
from shared.models.chunk import DocumentChunk
from shared.stores.DebugStore import DebugStore
from shared.stores.MessageStore import MessageStore


@pytest.fixture
def message_store(helper_config):
    return MessageStore(helper_config)


@pytest.fixture
def debug_store(helper_config):
    return DebugStore(helper_config)


@pytest.fixture
def rag_manager(helper_config, transport):
    return RAGClientManager(helper_config, transport=transport)


def build_ask_service(helper_config, helper_settings, message_store, debug_store, rag_manager, transport) -> AskService:
    return AskService(
        helper_config=helper_config,
        helper_settings=helper_settings,
        message_store=message_store,
        debug_store=debug_store,
        embed_manager=EmbedClientManager(helper_config, transport=transport),
        llm_manager=LLMClientManager(helper_config, transport=transport),
        rag_manager=rag_manager,
    )


@pytest.fixture
def ask_service(helper_config, helper_settings, message_store, debug_store, rag_manager, transport):
    return build_ask_service(helper_config, helper_settings, message_store, debug_store, rag_manager, transport)


@pytest.fixture
def openai_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")


@pytest.fixture
async def global_index(rag_manager, vectorize):
    texts = ["Zebras have black and white stripes.", "The invoice total is 42 euros."]
    chunks = [
        DocumentChunk(
            id=f"chunk-{i}",
            text=text,
            metadata={"source": f"doc{i}.txt", "group": "g1", "path": f"groups/g1/doc{i}.txt", "type": ".txt"},
            embedding=vectorize(text),
        )
        for i, text in enumerate(texts)
    ]
    await rag_manager.get_memory_client().upsert_all(chunks)
    return chunks


async def test_answer_uses_retrieved_context(ask_service, message_store, debug_store, providers, openai_key, global_index):
    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="What stripes do zebras have?", top_k=1))

    assert result.used_rag is True
    assert result.answer == providers.answer
    assert [s.source for s in result.sources] == ["doc0.txt"]

    chat = providers.json_of(providers.calls_to("/chat/completions")[0])
    user_turn = chat["messages"][1]["content"]
    assert "Zebras have black and white stripes." in user_turn
    assert "What stripes do zebras have?" in user_turn
    assert chat["messages"][0]["content"].endswith(HTML_FORMAT_INSTRUCTION)

    messages = message_store.read_all("conv1")
    assert [(m.role, m.used_rag) for m in messages] == [("user", None), ("assistant", True)]
    assert messages[0].content == "What stripes do zebras have?"
    assert messages[1].id == result.message_id
    assert [e.type for e in debug_store.read_all("conv1")] == ["request", "response"]


async def test_without_index_the_answer_is_direct(ask_service, message_store, providers, openai_key):
    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="Hello?"))

    assert result.used_rag is False
    assert result.sources == []
    chat = providers.json_of(providers.calls_to("/chat/completions")[0])
    assert chat["messages"][1]["content"] == "Hello?"
    assert message_store.read_all("conv1")[1].used_rag is False


async def test_web_search_skips_retrieval(ask_service, message_store, providers, openai_key, global_index):
    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="Zebras?", web_search=True))

    assert result.used_rag is False
    assert providers.calls_to("/embeddings") == []
    assert all(m.source_type == "web" for m in message_store.read_all("conv1"))


async def test_missing_credential_writes_nothing(ask_service, message_store, debug_store, files_root, providers):
    with pytest.raises(ConfigurationError):
        await ask_service.ask(AskRequest(conversation_id="conv1", message="Hello?"))

    assert message_store.read_all("conv1") == []
    assert debug_store.read_all("conv1") == []
    assert not (files_root / "conversations").exists()
    assert providers.requests == []


async def test_unknown_provider_writes_nothing(ask_service, message_store, openai_key):
    with pytest.raises(ConfigurationError):
        await ask_service.ask(AskRequest(conversation_id="conv1", message="Hello?", provider="mistral"))
    assert message_store.read_all("conv1") == []


@pytest.mark.parametrize("conversation_id, message", [("", "Hello?"), ("conv1", "   "), ("../x", "Hello?")])
async def test_invalid_request_is_rejected(ask_service, message_store, conversation_id, message):
    with pytest.raises(ValidationError):
        await ask_service.ask(AskRequest(conversation_id=conversation_id, message=message))


async def test_provider_failure_is_recorded(ask_service, message_store, debug_store, providers, openai_key):
    providers.chat_status = 500

    with pytest.raises(ProviderError):
        await ask_service.ask(AskRequest(conversation_id="conv1", message="Hello?"))

    messages = message_store.read_all("conv1")
    assert [m.role for m in messages] == ["user", "system"]
    assert messages[1].content.startswith("Error: ")
    traces = debug_store.read_all("conv1")
    assert traces[-1].content["error"]["type"] == "ProviderError"


async def test_embedding_failure_degrades_to_direct(ask_service, providers, openai_key, global_index):
    providers.embed_status = 429

    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="Zebras?"))

    assert result.used_rag is False
    assert result.answer == providers.answer


async def test_anthropic_without_embedding_key_answers_directly(ask_service, helper_settings, providers, monkeypatch, global_index):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ak-env")
    helper_settings.save({"llm_provider": "anthropic", "llm_model": "claude-3-5-haiku-latest"})

    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="Zebras?"))

    assert result.used_rag is False
    assert providers.calls_to("/embeddings") == []
    body = providers.json_of(providers.calls_to("/messages")[0])
    assert body["model"] == "claude-3-5-haiku-latest"


async def test_request_overrides_provider_and_prompt(ask_service, providers, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ak-env")

    await ask_service.ask(AskRequest(conversation_id="conv1", message="Hi", provider="anthropic", system_prompt="Talk like a pirate."))

    body = providers.json_of(providers.calls_to("/messages")[0])
    # the stored model belongs to openai and is not sent to anthropic
    assert body["model"] == "claude-3-5-sonnet-latest"
    assert body["system"].startswith("Talk like a pirate.")


async def test_conversation_index_wins_over_global(ask_service, rag_manager, providers, openai_key, global_index, vectorize):
    local = DocumentChunk(
        id="local-0",
        text="Conversation specific note about zebras.",
        metadata={"source": "note.txt", "group": "conversation", "path": "conv1/note.txt", "type": ".txt"},
        embedding=vectorize("Conversation specific note about zebras."),
    )
    await rag_manager.get_memory_client("conv1").upsert_all([local])

    result = await ask_service.ask(AskRequest(conversation_id="conv1", message="Zebras?"))

    assert [s.path for s in result.sources] == ["conv1/note.txt"]


async def test_failing_qdrant_search_falls_back_to_snapshot(helper_config, helper_settings, message_store, debug_store, providers, openai_key, global_index):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host != "qdrant.test":
            return providers.handler(request)
        if request.url.path.endswith("/points/count"):
            return httpx.Response(200, json={"result": {"count": 5}})
        return httpx.Response(500, json={"status": {"error": "search failed"}})

    transport = httpx.MockTransport(handler)
    helper_settings.update({"vector_store": "qdrant", "vector_store_url": "http://qdrant.test:6334"})
    service = build_ask_service(
        helper_config, helper_settings, message_store, debug_store, RAGClientManager(helper_config, transport=transport), transport
    )

    result = await service.ask(AskRequest(conversation_id="conv1", message="What stripes do zebras have?", top_k=1))

    assert result.used_rag is True
    assert [s.source for s in result.sources] == ["doc0.txt"]
