"""Google Gemini embedding provider.

Uses the Generative Language REST API directly over httpx:
- ``models/{model}:embedContent`` for a single text
- ``models/{model}:batchEmbedContents`` for batches (up to 100 per request)
"""

import os
from typing import Any, Optional

import httpx
import structlog

from hybridsearch.config.schema import EmbeddingConfig
from hybridsearch.providers.base import EmbeddingProvider, ProviderError

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_MODEL = "text-embedding-004"

MAX_BATCH_SIZE = 100

MODEL_METADATA = {
    "text-embedding-004": {"dimension": 768, "max_tokens": 2048},
    "embedding-001": {"dimension": 768, "max_tokens": 2048},
    "gemini-embedding-001": {"dimension": 3072, "max_tokens": 2048},
}


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Embedding provider for Google's Gemini embedding models."""

    provider_name = "gemini"

    def __init__(
        self,
        config: EmbeddingConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the Gemini provider.

        Raises:
            ProviderError: If no API key is configured
        """
        super().__init__(config)

        api_key = config.api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ProviderError(
                message="API key is required (set api_key or GEMINI_API_KEY)",
                provider=self.provider_name,
            )

        self.model_name = config.model_name or DEFAULT_MODEL
        metadata = MODEL_METADATA.get(self.model_name, {"dimension": 768, "max_tokens": 2048})
        self._dimension = int(config.extra_params.get("dimension", metadata["dimension"]))
        self._max_tokens = metadata["max_tokens"]

        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"x-goog-api-key": api_key},
            timeout=float(config.extra_params.get("timeout", 60.0)),
            transport=transport,
        )

        logger.info(
            "embedding_provider_initialized",
            provider=self.provider_name,
            model_name=self.model_name,
            dimension=self._dimension,
        )

    @property
    def _model_path(self) -> str:
        return f"models/{self.model_name}"

    def _content(self, text: str) -> dict[str, Any]:
        return {"parts": [{"text": text}]}

    async def _post(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(f"/{self._model_path}:{action}", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                message=f"Gemini API error ({e.response.status_code}): {e.response.text}",
                provider=self.provider_name,
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                message=f"Network error connecting to Gemini: {e}",
                provider=self.provider_name,
                original_error=e,
            )
        return response.json()

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider=self.provider_name)

        data = await self._post("embedContent", {"content": self._content(text)})
        values = (data.get("embedding") or {}).get("values")
        if not values:
            raise ProviderError(message="No embedding returned from Gemini", provider=self.provider_name)
        return values

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        self._check_texts(texts)

        results: list[list[float]] = []
        for i in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[i : i + MAX_BATCH_SIZE]
            data = await self._post(
                "batchEmbedContents",
                {
                    "requests": [
                        {"model": self._model_path, "content": self._content(text)}
                        for text in batch
                    ]
                },
            )
            embeddings = data.get("embeddings") or []
            if len(embeddings) != len(batch):
                raise ProviderError(
                    message=f"Gemini returned {len(embeddings)} embeddings for {len(batch)} inputs",
                    provider=self.provider_name,
                )
            results.extend(item["values"] for item in embeddings)

        logger.debug("batch_embeddings_generated", provider=self.provider_name, total_texts=len(texts))
        return results

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        await self.client.aclose()
