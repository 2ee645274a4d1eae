"""Shared fixtures: an isolated files root, a test logger and fake provider backends."""

import json
import logging
import math

import httpx
import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperSettings import HelperSettings
from shared.logging.logging_setup import ColorLogger

pytest_plugins = ["pytest_asyncio"]

_ENV_KEYS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "EMBED_ENGINE",
    "EMBED_BATCH_SIZE",
    "LLM_PROVIDERS",
    "LLM_OPENAI_MODEL",
    "LLM_ANTHROPIC_MODEL",
    "RAG_QDRANT_COLLECTION",
    "RAG_QDRANT_API_KEY",
)


def fake_vector(text: str) -> list[float]:
    """Letter histogram plus a constant component, so every pair of texts has a positive similarity."""
    vec = [0.0] * 27
    for ch in text.lower():
        if "a" <= ch <= "z":
            vec[ord(ch) - ord("a")] += 1.0
    vec[26] = 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec]


class FakeProviders:
    """Routes requests to fake OpenAI / Anthropic endpoints and records every call."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.answer = "<p>Fake answer</p>"
        self.chat_status = 200
        self.embed_status = 200

    def calls_to(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def json_of(self, request: httpx.Request) -> dict:
        return json.loads(request.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/embeddings"):
            if self.embed_status != 200:
                return httpx.Response(self.embed_status, json={"error": {"message": "embedding failed"}})
            inputs = json.loads(request.content)["input"]
            data = [{"object": "embedding", "index": i, "embedding": fake_vector(t)} for i, t in enumerate(inputs)]
            # the API does not promise ordered results
            return httpx.Response(200, json={"object": "list", "data": list(reversed(data))})

        if path.endswith("/chat/completions"):
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": {"message": "upstream failure"}})
            return httpx.Response(200, json={"choices": [{"index": 0, "message": {"role": "assistant", "content": self.answer}}]})

        if path.endswith("/messages"):
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": {"message": "upstream failure"}})
            return httpx.Response(200, json={"content": [{"type": "text", "text": self.answer}]})

        if request.url.port == 6333:
            raise httpx.ConnectError("connection refused", request=request)

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def logger() -> ColorLogger:
    return ColorLogger(logging.getLogger("docchat-test"))


@pytest.fixture
def files_root(tmp_path, monkeypatch):
    root = tmp_path / "files"
    monkeypatch.setenv("FILES_ROOT", str(root))
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return root


@pytest.fixture
def helper_config(files_root, logger) -> HelperConfig:
    return HelperConfig(logger=logger)


@pytest.fixture
def helper_settings(helper_config) -> HelperSettings:
    return HelperSettings(helper_config=helper_config)


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def transport(providers) -> httpx.MockTransport:
    return httpx.MockTransport(providers.handler)


@pytest.fixture
def vectorize():
    """The embedding function the fake OpenAI backend uses."""
    return fake_vector
