"""Tests for the embedding and LLM HTTP clients against mocked provider APIs."""

import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.errors import AuthenticationError, ConfigurationError, ProviderError
from shared.models.settings import LLMParameters


def _status_transport(status: int, body: dict | None = None) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, json=body or {"error": {"message": "nope"}}))


##########################################
################ EMBED ###################
##########################################

async def test_embeddings_are_returned_in_input_order(helper_config, transport, providers, vectorize):
    client = EmbedClientManager(helper_config, transport=transport).create_client(api_key="sk-test")
    await client.boot()
    try:
        vectors = await client.embed_batch(["alpha", "beta", "gamma"])
    finally:
        await client.close()

    assert vectors == [vectorize("alpha"), vectorize("beta"), vectorize("gamma")]
    request = providers.calls_to("/embeddings")[0]
    assert request.headers["authorization"] == "Bearer sk-test"
    assert providers.json_of(request)["model"] == "text-embedding-3-small"


async def test_embed_batches_respect_batch_size(helper_config, transport, providers, monkeypatch):
    monkeypatch.setenv("EMBED_BATCH_SIZE", "2")
    client = EmbedClientManager(helper_config, transport=transport).create_client(api_key="sk-test")
    await client.boot()
    try:
        vectors = await client.embed_batch(["a", "b", "c", "d", "e"])
    finally:
        await client.close()

    assert len(vectors) == 5
    assert [len(providers.json_of(r)["input"]) for r in providers.calls_to("/embeddings")] == [2, 2, 1]


def test_embed_client_requires_key(helper_config):
    with pytest.raises(AuthenticationError):
        EmbedClientManager(helper_config).create_client(api_key=None)


def test_unknown_embed_engine(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINE", "nonexistent")
    with pytest.raises(ConfigurationError):
        EmbedClientManager(helper_config).create_client(api_key="sk-test")


@pytest.mark.parametrize("status, reason", [(401, "auth"), (403, "auth"), (429, "rate_limit"), (500, "http")])
async def test_embed_errors_are_classified(helper_config, status, reason):
    client = EmbedClientManager(helper_config, transport=_status_transport(status)).create_client(api_key="sk-test")
    await client.boot()
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.embed("hello")
    finally:
        await client.close()
    assert exc_info.value.reason == reason


async def test_embed_count_mismatch_is_a_bad_response(helper_config):
    transport = _status_transport(200, {"data": [{"index": 0, "embedding": [1.0]}]})
    client = EmbedClientManager(helper_config, transport=transport).create_client(api_key="sk-test")
    await client.boot()
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.do_embed(["one", "two"])
    finally:
        await client.close()
    assert exc_info.value.reason == "bad_response"


async def test_network_failure_is_classified(helper_config):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    client = EmbedClientManager(helper_config, transport=httpx.MockTransport(refuse)).create_client(api_key="sk-test")
    await client.boot()
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.embed("hello")
    finally:
        await client.close()
    assert exc_info.value.reason == "network"


async def test_request_before_boot_fails(helper_config):
    client = EmbedClientManager(helper_config).create_client(api_key="sk-test")
    with pytest.raises(RuntimeError):
        await client.embed("hello")


##########################################
################# LLM ####################
##########################################

async def test_openai_chat_payload_and_answer(helper_config, transport, providers):
    client = LLMClientManager(helper_config, transport=transport).create_client("openai", api_key="sk-test", model="gpt-4o-mini")
    params = LLMParameters(temperature=0.3, max_tokens=512, presence_penalty=0.1)
    await client.boot()
    try:
        answer = await client.do_chat("Be brief.", "What is RAG?", params)
    finally:
        await client.close()

    assert answer == providers.answer
    body = providers.json_of(providers.calls_to("/chat/completions")[0])
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "What is RAG?"},
    ]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 512
    assert body["presence_penalty"] == 0.1


async def test_anthropic_chat_payload_and_headers(helper_config, transport, providers):
    client = LLMClientManager(helper_config, transport=transport).create_client("Anthropic", api_key="ak-test")
    await client.boot()
    try:
        answer = await client.do_chat("Be brief.", "What is RAG?", LLMParameters())
    finally:
        await client.close()

    assert answer == providers.answer
    request = providers.calls_to("/messages")[0]
    assert request.headers["x-api-key"] == "ak-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["model"] == "claude-3-5-sonnet-latest"
    assert body["system"] == "Be brief."
    assert body["messages"] == [{"role": "user", "content": "What is RAG?"}]
    assert "top_p" not in body


def test_model_falls_back_to_env(helper_config, monkeypatch):
    monkeypatch.setenv("LLM_OPENAI_MODEL", "gpt-4.1")
    client = LLMClientManager(helper_config).create_client("openai", api_key="sk-test")
    assert client.chat_model == "gpt-4.1"


def test_unknown_provider(helper_config):
    with pytest.raises(ConfigurationError):
        LLMClientManager(helper_config).create_client("mistral", api_key="key")


def test_llm_client_requires_key(helper_config):
    with pytest.raises(AuthenticationError):
        LLMClientManager(helper_config).create_client("anthropic", api_key=None)


async def test_chat_without_content_is_a_bad_response(helper_config):
    transport = _status_transport(200, {"choices": []})
    client = LLMClientManager(helper_config, transport=transport).create_client("openai", api_key="sk-test")
    await client.boot()
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.do_chat("sys", "user", LLMParameters())
    finally:
        await client.close()
    assert exc_info.value.reason == "bad_response"


async def test_content_policy_rejection(helper_config):
    transport = _status_transport(400, {"error": {"code": "content_policy_violation"}})
    client = LLMClientManager(helper_config, transport=transport).create_client("openai", api_key="sk-test")
    await client.boot()
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.do_chat("sys", "user", LLMParameters())
    finally:
        await client.close()
    assert exc_info.value.reason == "content_policy"
