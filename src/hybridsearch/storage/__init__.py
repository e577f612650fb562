"""Storage layer: chunk persistence with vector and keyword search."""

from hybridsearch.config.schema import StorageConfig, StorageType
from hybridsearch.storage.base import (
    KeywordSearchOptions,
    StorageBackend,
    StorageError,
    StorageStats,
    VectorSearchOptions,
)


def create_storage(config: StorageConfig) -> StorageBackend:
    """Factory function to create storage backends based on configuration.

    This function dynamically imports and instantiates the appropriate backend
    based on the store_type in the configuration. The backend still has to be
    initialized before use.

    Args:
        config: Storage configuration with store_type

    Returns:
        Storage backend

    Raises:
        ValueError: If store_type is unknown
        StorageError: If backend dependencies are missing

    Example:
        config = StorageConfig(
            store_type="sqlite",
            connection_string="sqlite:///~/.hybridsearch/index.db",
        )
        storage = create_storage(config)
        await storage.initialize()
    """
    store_type = getattr(config.store_type, "value", config.store_type).lower()

    if store_type == StorageType.MEMORY.value:
        from hybridsearch.storage.memory import InMemoryStorage

        return InMemoryStorage(config)

    elif store_type == StorageType.SQLITE.value:
        from hybridsearch.storage.sqlite import SQLiteStorage

        return SQLiteStorage(config)

    elif store_type == StorageType.POSTGRESQL.value:
        try:
            import asyncpg  # noqa: F401
            import pgvector.asyncpg  # noqa: F401
        except ImportError as e:
            raise StorageError(
                message=(
                    "PostgreSQL storage requires asyncpg and pgvector. "
                    "Install with: pip install 'hybridsearch[postgres]'"
                ),
                storage_type="postgresql",
                original_error=e,
            )

        from hybridsearch.storage.postgres import PostgreSQLStorage

        return PostgreSQLStorage(config)

    else:
        raise ValueError(
            f"Unsupported storage type: '{store_type}'. "
            f"Supported types: {', '.join(t.value for t in StorageType)}"
        )


__all__ = [
    "KeywordSearchOptions",
    "StorageBackend",
    "StorageError",
    "StorageStats",
    "VectorSearchOptions",
    "create_storage",
]
