"""Local embedding provider using sentence-transformers.

Runs embedding models on the local machine without API calls.

Trade-offs:
- Requires local compute resources (CPU/GPU)
- Model download required on first use
- Works offline and keeps documents private
"""

import asyncio
from typing import Any, Optional

import structlog

from hybridsearch.config.schema import EmbeddingConfig
from hybridsearch.providers.base import EmbeddingProvider, ProviderError

logger = structlog.get_logger(__name__)


# Model metadata: dimension and max tokens for common models
MODEL_METADATA = {
    "all-MiniLM-L6-v2": {"dimension": 384, "max_tokens": 256},
    "all-mpnet-base-v2": {"dimension": 768, "max_tokens": 384},
    "all-MiniLM-L12-v2": {"dimension": 384, "max_tokens": 256},
    "paraphrase-multilingual-MiniLM-L12-v2": {"dimension": 384, "max_tokens": 128},
    "BAAI/bge-small-en-v1.5": {"dimension": 384, "max_tokens": 512},
}


class LocalEmbeddingProvider(EmbeddingProvider):
    """Local embedding provider using sentence-transformers.

    The model is loaded once at construction; inference runs in a worker
    thread so the event loop is never blocked.

    Example:
        config = EmbeddingConfig(provider="local", model_name="all-MiniLM-L6-v2")
        provider = LocalEmbeddingProvider(config)
        embedding = await provider.embed_text("Hello world")
    """

    provider_name = "local"

    def __init__(self, config: EmbeddingConfig) -> None:
        """Load the model.

        Raises:
            ImportError: If sentence-transformers is not installed
            ProviderError: If model loading fails
        """
        super().__init__(config)
        self._model: Optional[Any] = None

        from sentence_transformers import SentenceTransformer

        logger.info("loading_local_embedding_model", model_name=self.model_name)

        try:
            self._model = SentenceTransformer(self.model_name, **config.extra_params)
        except Exception as e:
            raise ProviderError(
                message=f"Failed to load model '{self.model_name}': {str(e)}",
                provider=self.provider_name,
                original_error=e,
            )

        metadata = MODEL_METADATA.get(self.model_name)
        if metadata:
            self._dimension = metadata["dimension"]
            self._max_tokens = metadata["max_tokens"]
        else:
            self._dimension = self._model.get_sentence_embedding_dimension()
            self._max_tokens = getattr(self._model, "max_seq_length", None) or 512
            logger.warning(
                "model_metadata_not_found",
                model_name=self.model_name,
                inferred_dimension=self._dimension,
                max_tokens=self._max_tokens,
            )

        logger.info(
            "local_embedding_model_loaded",
            model_name=self.model_name,
            dimension=self._dimension,
        )

    def _require_model(self) -> Any:
        if self._model is None:
            raise ProviderError(message="Model not loaded", provider=self.provider_name)
        return self._model

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider=self.provider_name)

        model = self._require_model()
        try:
            embedding = await asyncio.to_thread(model.encode, text, convert_to_numpy=True)
        except Exception as e:
            raise ProviderError(
                message=f"Failed to generate embedding: {str(e)}",
                provider=self.provider_name,
                original_error=e,
            )
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        self._check_texts(texts)

        model = self._require_model()
        try:
            embeddings = await asyncio.to_thread(
                model.encode,
                texts,
                batch_size=self.config.batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise ProviderError(
                message=f"Failed to generate batch embeddings: {str(e)}",
                provider=self.provider_name,
                original_error=e,
            )

        logger.debug("batch_embeddings_generated", provider=self.provider_name, total_texts=len(texts))
        return embeddings.tolist()

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        """Drop the model reference."""
        if self._model is not None:
            logger.debug("closing_local_embedding_provider", model_name=self.model_name)
            self._model = None
