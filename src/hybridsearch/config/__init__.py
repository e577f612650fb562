"""Configuration: schema and loading."""

from hybridsearch.config.schema import (
    AppConfig,
    ChunkingConfig,
    EmbeddingConfig,
    EmbeddingProviderType,
    HybridConfig,
    LoggingConfig,
    LogLevel,
    MergeStrategy,
    SearchOptions,
    StorageConfig,
    StorageType,
)

__all__ = [
    "AppConfig",
    "ChunkingConfig",
    "EmbeddingConfig",
    "EmbeddingProviderType",
    "HybridConfig",
    "LoggingConfig",
    "LogLevel",
    "MergeStrategy",
    "SearchOptions",
    "StorageConfig",
    "StorageType",
]
