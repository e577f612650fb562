"""Abstract base class for storage backends.

Why this exists:
- Allows swapping between SQLite, PostgreSQL and in-memory storage
- Keeps vector and keyword search behind one chunk-oriented interface
- Enables testing with the in-memory implementation

How to extend:
1. Subclass StorageBackend
2. Implement all abstract methods
3. Add the type to StorageType and to create_storage()
4. Add optional dependencies to pyproject.toml
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

from pydantic import BaseModel, Field

from hybridsearch.config.schema import StorageConfig
from hybridsearch.entities import Chunk, ScoredChunk


class VectorSearchOptions(BaseModel):
    """Bounds for a vector sub-query."""

    limit: int = Field(default=10, ge=0)
    min_score: float = 0.0


class KeywordSearchOptions(BaseModel):
    """Bounds for a keyword sub-query."""

    limit: int = Field(default=10, ge=0)


class StorageStats(BaseModel):
    """Document and chunk counts."""

    files: int = 0
    chunks: int = 0


class StorageBackend(ABC):
    """Abstract interface for chunk storage backends.

    Implementations must handle:
    - Persisting chunks (with optional embeddings) keyed by chunk id
    - Vector similarity search over stored embeddings
    - Full-text keyword search over chunk content
    - Per-path bookkeeping for incremental indexing
    """

    storage_type: str = "unknown"

    def __init__(self, config: StorageConfig) -> None:
        """Initialize storage with configuration."""
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create tables/indices."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        pass

    @abstractmethod
    async def add_chunk(self, chunk: Chunk) -> None:
        """Insert or replace a chunk by id."""
        pass

    async def add_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Insert or replace several chunks."""
        for chunk in chunks:
            await self.add_chunk(chunk)

    async def update_chunk(self, chunk: Chunk) -> None:
        """Replace a stored chunk."""
        await self.add_chunk(chunk)

    @abstractmethod
    async def delete_chunk(self, chunk_id: str) -> bool:
        """Delete a chunk.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def delete_chunks_by_path(self, path: str) -> int:
        """Delete every chunk of a document.

        Returns:
            Number of chunks deleted
        """
        pass

    @abstractmethod
    async def search_by_vector(
        self, query_vector: list[float], options: VectorSearchOptions
    ) -> list[ScoredChunk]:
        """Find chunks whose embeddings are closest to the query vector.

        Args:
            query_vector: Query embedding
            options: Result limit and minimum similarity

        Returns:
            Chunks ordered best first, each with its similarity score
        """
        pass

    @abstractmethod
    async def search_by_keyword(
        self, query: str, options: KeywordSearchOptions
    ) -> list[ScoredChunk]:
        """Full-text search over chunk content.

        Args:
            query: Raw query text
            options: Result limit

        Returns:
            Chunks ordered best first, each with the backend's text rank
        """
        pass

    @abstractmethod
    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        """Retrieve a chunk by id."""
        pass

    @abstractmethod
    async def get_chunks_by_path(self, path: str) -> list[Chunk]:
        """Retrieve the chunks of a document ordered by start line."""
        pass

    @abstractmethod
    async def list_paths(self) -> list[str]:
        """Return every document path that has stored chunks."""
        pass

    @abstractmethod
    async def get_stats(self) -> StorageStats:
        """Return distinct document and chunk counts."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete all stored chunks."""
        pass


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(vec1) != len(vec2):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = math.sqrt(sum(a * a for a in vec1))
    magnitude2 = math.sqrt(sum(b * b for b in vec2))

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return dot_product / (magnitude1 * magnitude2)


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, storage_type: str, original_error: Exception | None = None):
        self.message = message
        self.storage_type = storage_type
        self.original_error = original_error
        super().__init__(self.message)
