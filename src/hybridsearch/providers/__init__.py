"""Embedding provider abstractions and backends."""

from hybridsearch.config.schema import EmbeddingConfig, EmbeddingProviderType
from hybridsearch.providers.base import EmbeddingProvider, ProviderError


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Factory function to create embedding providers based on configuration.

    This function dynamically imports and instantiates the appropriate provider
    based on the provider type in the configuration.

    Args:
        config: Embedding configuration with provider

    Returns:
        Initialized embedding provider

    Raises:
        ValueError: If the provider type is unknown
        ProviderError: If provider initialization fails or dependencies are missing

    Example:
        config = EmbeddingConfig(provider="ollama", model_name="nomic-embed-text")
        provider = create_embedding_provider(config)
    """
    provider_type = getattr(config.provider, "value", config.provider).lower()

    if provider_type == EmbeddingProviderType.LOCAL.value:
        try:
            from hybridsearch.providers.local import LocalEmbeddingProvider

            return LocalEmbeddingProvider(config)
        except ImportError as e:
            raise ProviderError(
                message=(
                    "Local embedding provider requires sentence-transformers. "
                    "Install with: pip install 'hybridsearch[local]'"
                ),
                provider="local",
                original_error=e,
            )

    elif provider_type == EmbeddingProviderType.OPENAI.value:
        from hybridsearch.providers.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(config)

    elif provider_type == EmbeddingProviderType.SILICONFLOW.value:
        from hybridsearch.providers.siliconflow import SiliconFlowEmbeddingProvider

        return SiliconFlowEmbeddingProvider(config)

    elif provider_type == EmbeddingProviderType.OLLAMA.value:
        from hybridsearch.providers.ollama import OllamaEmbeddingProvider

        return OllamaEmbeddingProvider(config)

    elif provider_type == EmbeddingProviderType.GEMINI.value:
        from hybridsearch.providers.gemini import GeminiEmbeddingProvider

        return GeminiEmbeddingProvider(config)

    else:
        raise ValueError(
            f"Unknown embedding provider type: '{provider_type}'. "
            f"Supported types: {', '.join(t.value for t in EmbeddingProviderType)}"
        )


__all__ = [
    "EmbeddingProvider",
    "ProviderError",
    "create_embedding_provider",
]
