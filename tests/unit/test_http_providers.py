"""Unit tests for the Ollama and Gemini providers against a mocked HTTP transport."""

import json

import httpx
import pytest

from hybridsearch.config.schema import EmbeddingConfig
from hybridsearch.providers.base import ProviderError
from hybridsearch.providers.gemini import GeminiEmbeddingProvider
from hybridsearch.providers.ollama import OllamaEmbeddingProvider


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


@pytest.mark.asyncio
class TestOllamaEmbeddingProvider:
    def make_provider(self, handler, **config) -> OllamaEmbeddingProvider:
        config.setdefault("model_name", "nomic-embed-text")
        return OllamaEmbeddingProvider(
            EmbeddingConfig(provider="ollama", **config),
            transport=httpx.MockTransport(handler),
        )

    async def test_dimension_lookup(self):
        provider = self.make_provider(Recorder(), model_name="mxbai-embed-large:latest")

        assert provider.get_dimension() == 1024
        assert provider.base_url == "http://localhost:11434"
        await provider.close()

    async def test_embed_text(self):
        handler = Recorder(httpx.Response(200, json={"embeddings": [[0.1, 0.2, 0.3]]}))
        provider = self.make_provider(handler)

        embedding = await provider.embed_text("hello")

        assert embedding == [0.1, 0.2, 0.3]
        assert handler.requests[0].url.path == "/api/embed"
        assert handler.body() == {"model": "nomic-embed-text", "input": "hello"}
        await provider.close()

    async def test_embed_batch(self):
        handler = Recorder(httpx.Response(200, json={"embeddings": [[1.0], [2.0]]}))
        provider = self.make_provider(handler, base_url="http://gpu-box:11434/")

        embeddings = await provider.embed_batch(["a", "b"])

        assert embeddings == [[1.0], [2.0]]
        assert handler.body()["input"] == ["a", "b"]
        assert handler.requests[0].url.host == "gpu-box"
        await provider.close()

    async def test_count_mismatch(self):
        provider = self.make_provider(Recorder(httpx.Response(200, json={"embeddings": [[1.0]]})))

        with pytest.raises(ProviderError, match="1 embeddings for 2 inputs"):
            await provider.embed_batch(["a", "b"])
        await provider.close()

    async def test_http_error(self):
        provider = self.make_provider(Recorder(httpx.Response(404, text="model not found")))

        with pytest.raises(ProviderError, match="404") as exc_info:
            await provider.embed_text("hello")

        assert isinstance(exc_info.value.original_error, httpx.HTTPStatusError)
        await provider.close()

    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = self.make_provider(handler)

        with pytest.raises(ProviderError, match="Network error"):
            await provider.embed_text("hello")
        await provider.close()

    async def test_empty_response(self):
        provider = self.make_provider(Recorder(httpx.Response(200, json={"embeddings": []})))

        with pytest.raises(ProviderError, match="No embedding"):
            await provider.embed_text("hello")
        await provider.close()

    async def test_empty_input(self):
        handler = Recorder()
        provider = self.make_provider(handler)

        assert await provider.embed_batch([]) == []
        with pytest.raises(ProviderError):
            await provider.embed_text("")
        assert handler.requests == []
        await provider.close()


@pytest.mark.asyncio
class TestGeminiEmbeddingProvider:
    def make_provider(self, handler, **config) -> GeminiEmbeddingProvider:
        config.setdefault("model_name", "text-embedding-004")
        config.setdefault("api_key", "g-key")
        return GeminiEmbeddingProvider(
            EmbeddingConfig(provider="gemini", **config),
            transport=httpx.MockTransport(handler),
        )

    async def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        with pytest.raises(ProviderError, match="API key"):
            GeminiEmbeddingProvider(EmbeddingConfig(provider="gemini", model_name="text-embedding-004"))

    async def test_embed_text(self):
        handler = Recorder(httpx.Response(200, json={"embedding": {"values": [0.5, 0.25]}}))
        provider = self.make_provider(handler)

        embedding = await provider.embed_text("hello")

        request = handler.requests[0]
        assert embedding == [0.5, 0.25]
        assert request.url.path == "/v1beta/models/text-embedding-004:embedContent"
        assert request.headers["x-goog-api-key"] == "g-key"
        assert handler.body() == {"content": {"parts": [{"text": "hello"}]}}
        assert provider.get_dimension() == 768
        await provider.close()

    async def test_embed_batch(self):
        handler = Recorder(
            httpx.Response(200, json={"embeddings": [{"values": [1.0]}, {"values": [2.0]}]})
        )
        provider = self.make_provider(handler)

        embeddings = await provider.embed_batch(["a", "b"])

        assert embeddings == [[1.0], [2.0]]
        assert handler.requests[0].url.path.endswith(":batchEmbedContents")
        assert handler.body()["requests"][1] == {
            "model": "models/text-embedding-004",
            "content": {"parts": [{"text": "b"}]},
        }
        await provider.close()

    async def test_embed_batch_splits_requests(self):
        handler = Recorder(
            httpx.Response(200, json={"embeddings": [{"values": [1.0]}] * 100}),
            httpx.Response(200, json={"embeddings": [{"values": [2.0]}] * 5}),
        )
        provider = self.make_provider(handler)

        embeddings = await provider.embed_batch([f"t{i}" for i in range(105)])

        assert len(embeddings) == 105
        assert len(handler.requests) == 2
        await provider.close()

    async def test_http_error(self):
        provider = self.make_provider(Recorder(httpx.Response(403, text="forbidden")))

        with pytest.raises(ProviderError, match="403"):
            await provider.embed_text("hello")
        await provider.close()

    async def test_missing_values(self):
        provider = self.make_provider(Recorder(httpx.Response(200, json={})))

        with pytest.raises(ProviderError, match="No embedding"):
            await provider.embed_text("hello")
        await provider.close()
