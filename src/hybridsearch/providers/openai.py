"""OpenAI embedding provider using the official API.

Also serves any OpenAI-compatible embeddings endpoint through ``base_url``.
Requires an API key and network access.

Trade-offs:
- API costs per token
- Data sent to a third-party service
- Rate limits apply
"""

import os
from typing import Any

import structlog

from hybridsearch.config.schema import EmbeddingConfig
from hybridsearch.providers.base import EmbeddingProvider, ProviderError

logger = structlog.get_logger(__name__)


# Model metadata for OpenAI embedding models
MODEL_METADATA = {
    "text-embedding-ada-002": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-small": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-large": {"dimension": 3072, "max_tokens": 8191},
}

DEFAULT_MODEL = "text-embedding-3-small"

# Maximum number of inputs per embeddings request
MAX_BATCH_SIZE = 2048


def classify_error(provider: str, action: str, error: Exception) -> ProviderError:
    """Map an API client exception onto a ProviderError with a readable message."""
    message = str(error)
    lowered = message.lower()

    if "authentication" in lowered or "api_key" in lowered or "401" in lowered:
        text = f"{provider} authentication failed: {message}"
    elif "rate_limit" in lowered or "rate limit" in lowered or "429" in lowered:
        text = f"{provider} rate limit exceeded: {message}"
    elif "connection" in lowered or "network" in lowered or "timeout" in lowered:
        text = f"Network error connecting to {provider}: {message}"
    else:
        text = f"Failed to {action}: {message}"

    return ProviderError(message=text, provider=provider.lower(), original_error=error)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding provider.

    Example:
        config = EmbeddingConfig(
            provider="openai",
            model_name="text-embedding-3-small",
            api_key="sk-...",
        )
        provider = OpenAIEmbeddingProvider(config)
        embedding = await provider.embed_text("Hello world")
    """

    provider_name = "openai"
    display_name = "OpenAI"
    default_base_url: str | None = None
    max_batch_size = MAX_BATCH_SIZE
    model_metadata: dict[str, dict[str, int]] = MODEL_METADATA
    default_dimension = 1536
    default_max_tokens = 8191
    api_key_env = "OPENAI_API_KEY"

    def __init__(self, config: EmbeddingConfig) -> None:
        """Initialize the provider and its async client.

        The API key comes from the config or, failing that, from the
        provider's environment variable.

        Raises:
            ProviderError: If the API key is missing or the client cannot be built
        """
        super().__init__(config)

        api_key = config.api_key or os.getenv(self.api_key_env)
        if not api_key:
            raise ProviderError(
                message=f"API key is required (set api_key or {self.api_key_env})",
                provider=self.provider_name,
            )

        self.model_name = config.model_name or DEFAULT_MODEL

        metadata = self.model_metadata.get(self.model_name)
        if metadata:
            self._dimension = metadata["dimension"]
            self._max_tokens = metadata["max_tokens"]
        else:
            logger.warning(
                "unknown_embedding_model",
                provider=self.provider_name,
                model_name=self.model_name,
                known_models=list(self.model_metadata),
            )
            self._dimension = int(config.extra_params.get("dimension", self.default_dimension))
            self._max_tokens = self.default_max_tokens

        try:
            from openai import AsyncOpenAI

            client_kwargs: dict[str, Any] = {"api_key": api_key}
            base_url = config.base_url or self.default_base_url
            if base_url:
                client_kwargs["base_url"] = base_url
            client_kwargs.update(
                {k: v for k, v in config.extra_params.items() if k in ("timeout", "max_retries")}
            )

            self.client = AsyncOpenAI(**client_kwargs)

            logger.info(
                "embedding_provider_initialized",
                provider=self.provider_name,
                model_name=self.model_name,
                dimension=self._dimension,
                base_url=base_url,
            )

        except Exception as e:
            raise ProviderError(
                message=f"Failed to initialize {self.display_name} client: {str(e)}",
                provider=self.provider_name,
                original_error=e,
            )

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            ProviderError: If text is empty or the API call fails
        """
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider=self.provider_name)

        try:
            response = await self.client.embeddings.create(input=text, model=self.model_name)
        except Exception as e:
            raise classify_error(self.display_name, "generate embedding", e)

        if getattr(response, "usage", None):
            logger.debug(
                "embedding_generated",
                provider=self.provider_name,
                tokens_used=response.usage.total_tokens,
            )

        return list(response.data[0].embedding)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Large inputs are split into requests of at most ``max_batch_size``
        texts. Results are returned in input order.

        Raises:
            ProviderError: If any text is empty or an API call fails
        """
        if not texts:
            return []

        self._check_texts(texts)

        all_embeddings: list[list[float]] = []
        total_tokens = 0
        num_calls = 0

        for i in range(0, len(texts), self.max_batch_size):
            batch = texts[i : i + self.max_batch_size]
            try:
                response = await self.client.embeddings.create(input=batch, model=self.model_name)
            except Exception as e:
                raise classify_error(self.display_name, "generate batch embeddings", e)

            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(list(item.embedding) for item in ordered)
            num_calls += 1
            if getattr(response, "usage", None):
                total_tokens += response.usage.total_tokens

        logger.info(
            "batch_embeddings_generated",
            provider=self.provider_name,
            total_texts=len(texts),
            total_tokens=total_tokens,
            num_api_calls=num_calls,
        )

        return all_embeddings

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        """Close the HTTP client."""
        logger.debug("closing_embedding_provider", provider=self.provider_name)
        await self.client.close()
