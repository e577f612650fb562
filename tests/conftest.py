"""Shared test fixtures."""

import hashlib
import math
import re

import pytest

from hybridsearch.config.schema import EmbeddingConfig, StorageConfig
from hybridsearch.providers.base import EmbeddingProvider, ProviderError
from hybridsearch.storage.memory import InMemoryStorage

_WORD = re.compile(r"\w+")


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic bag-of-words embeddings for tests.

    Each lowercased word is hashed into one of ``dimension`` buckets, so
    texts sharing words have positive cosine similarity.
    """

    provider_name = "fake"

    def __init__(self, dimension: int = 32) -> None:
        super().__init__(EmbeddingConfig(provider="local", model_name="fake-embedding"))
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.closed = False

    def vector(self, text: str) -> list[float]:
        values = [0.0] * self.dimension
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension
            values[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in values)) or 1.0
        return [v / norm for v in values]

    async def embed_text(self, text: str) -> list[float]:
        if not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider=self.provider_name)
        self.calls.append([text])
        return self.vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self._check_texts(texts)
        self.calls.append(list(texts))
        return [self.vector(text) for text in texts]

    def get_dimension(self) -> int:
        return self.dimension

    def get_max_tokens(self) -> int:
        return 8192

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
async def memory_storage():
    storage = InMemoryStorage(StorageConfig(store_type="memory"))
    await storage.initialize()
    yield storage
    await storage.close()
