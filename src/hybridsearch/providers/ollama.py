"""Ollama embedding provider for locally served models.

Talks to a running Ollama server over HTTP (``POST /api/embed``), which
accepts a single string or a list of strings as ``input`` and returns one
vector per input under ``embeddings``.
"""

from typing import Any, Optional

import httpx
import structlog

from hybridsearch.config.schema import EmbeddingConfig
from hybridsearch.providers.base import EmbeddingProvider, ProviderError

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"

MODEL_DIMENSIONS = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "multilingual-e5-large": 1024,
    "bge-large": 1024,
    "bge-base": 768,
    "bge-small": 512,
    "snowflake-arctic-embed": 768,
}

DEFAULT_DIMENSION = 768


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embedding provider backed by an Ollama server.

    Example:
        config = EmbeddingConfig(provider="ollama", model_name="nomic-embed-text")
        async with OllamaEmbeddingProvider(config) as provider:
            vector = await provider.embed_text("Hello world")
    """

    provider_name = "ollama"

    def __init__(
        self,
        config: EmbeddingConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(config)
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        # Ollama tags (":latest") do not change the dimension
        base_model = self.model_name.split(":", 1)[0]
        self._dimension = int(
            config.extra_params.get("dimension", MODEL_DIMENSIONS.get(base_model, DEFAULT_DIMENSION))
        )
        self._max_tokens = int(config.extra_params.get("max_tokens", 8192))
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=float(config.extra_params.get("timeout", 60.0)),
            transport=transport,
        )

        logger.info(
            "embedding_provider_initialized",
            provider=self.provider_name,
            model_name=self.model_name,
            base_url=self.base_url,
            dimension=self._dimension,
        )

    async def _embed(self, payload_input: Any) -> list[list[float]]:
        try:
            response = await self.client.post(
                "/api/embed", json={"model": self.model_name, "input": payload_input}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                message=f"Ollama API error ({e.response.status_code}): {e.response.text}",
                provider=self.provider_name,
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                message=f"Network error connecting to Ollama at {self.base_url}: {e}",
                provider=self.provider_name,
                original_error=e,
            )

        embeddings = response.json().get("embeddings") or []
        if not embeddings:
            raise ProviderError(message="No embedding returned from Ollama", provider=self.provider_name)
        return embeddings

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider=self.provider_name)
        embeddings = await self._embed(text)
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        self._check_texts(texts)

        embeddings = await self._embed(texts)
        if len(embeddings) != len(texts):
            raise ProviderError(
                message=f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs",
                provider=self.provider_name,
            )

        logger.debug("batch_embeddings_generated", provider=self.provider_name, total_texts=len(texts))
        return embeddings

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        await self.client.aclose()
