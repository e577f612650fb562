"""Abstract base class for embedding providers.

Why this exists:
- Allows swapping between embedding backends (OpenAI, SiliconFlow, Ollama,
  Gemini, local sentence-transformers)
- Enables testing with fake providers
- Keeps the search engine independent of any particular model's output

How to extend:
1. Subclass EmbeddingProvider
2. Implement all abstract methods
3. Add the type to EmbeddingProviderType and to create_embedding_provider()
4. Add optional dependencies to pyproject.toml
"""

from abc import ABC, abstractmethod
from typing import Optional

from hybridsearch.config.schema import EmbeddingConfig


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers.

    Implementations must handle:
    - Single text embedding
    - Batch text embedding (order preserved)
    - Model metadata (dimension, max tokens)
    """

    provider_name: str = "unknown"

    def __init__(self, config: EmbeddingConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config
        self.model_name = config.model_name

    @abstractmethod
    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector

        Raises:
            ProviderError: If embedding generation fails
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of input texts

        Returns:
            List of embedding vectors, one per input, in input order

        Raises:
            ProviderError: If embedding generation fails
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the embedding dimension for this model."""
        pass

    @abstractmethod
    def get_max_tokens(self) -> int:
        """Return the maximum token length for this model."""
        pass

    async def close(self) -> None:
        """Release clients and other resources."""
        pass

    def _check_texts(self, texts: list[str]) -> None:
        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(
                    message=f"Cannot embed empty text at index {i}",
                    provider=self.provider_name,
                )

    async def __aenter__(self) -> "EmbeddingProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)
