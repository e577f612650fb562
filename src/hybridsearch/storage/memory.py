"""In-memory storage implementation for testing and development.

This implementation stores all data in memory and is useful for:
- Testing without external dependencies
- Development and prototyping
- Small, throwaway indexes
"""

import re
from typing import Optional

from hybridsearch.config.schema import StorageConfig
from hybridsearch.entities import Chunk, ScoredChunk
from hybridsearch.storage.base import (
    KeywordSearchOptions,
    StorageBackend,
    StorageStats,
    VectorSearchOptions,
    cosine_similarity,
)

_TERM_PATTERN = re.compile(r"\w+")


def _terms(text: str) -> list[str]:
    return [term.lower() for term in _TERM_PATTERN.findall(text)]


class InMemoryStorage(StorageBackend):
    """In-memory chunk store.

    Vector search is brute-force cosine similarity. Keyword search scores a
    chunk by how often the query terms occur in it; chunks without any query
    term are not returned.
    """

    storage_type = "memory"

    def __init__(self, config: StorageConfig) -> None:
        """Initialize in-memory storage."""
        super().__init__(config)
        self.chunks: dict[str, Chunk] = {}

    async def initialize(self) -> None:
        """Initialize the store."""
        pass

    async def close(self) -> None:
        """Close connections and cleanup resources."""
        self.chunks.clear()

    async def add_chunk(self, chunk: Chunk) -> None:
        """Store a chunk, replacing any chunk with the same id."""
        self.chunks[chunk.id] = chunk

    async def delete_chunk(self, chunk_id: str) -> bool:
        """Delete a chunk by id."""
        return self.chunks.pop(chunk_id, None) is not None

    async def delete_chunks_by_path(self, path: str) -> int:
        """Delete all chunks for a document."""
        chunk_ids = [chunk_id for chunk_id, chunk in self.chunks.items() if chunk.path == path]
        for chunk_id in chunk_ids:
            del self.chunks[chunk_id]
        return len(chunk_ids)

    async def search_by_vector(
        self, query_vector: list[float], options: VectorSearchOptions
    ) -> list[ScoredChunk]:
        """Rank stored embeddings by cosine similarity."""
        results = []
        for chunk in self.chunks.values():
            if chunk.embedding is None:
                continue
            score = cosine_similarity(query_vector, chunk.embedding)
            if score >= options.min_score:
                results.append(ScoredChunk(chunk=chunk, score=score))

        results.sort(key=lambda result: result.score, reverse=True)
        return results[: options.limit]

    async def search_by_keyword(
        self, query: str, options: KeywordSearchOptions
    ) -> list[ScoredChunk]:
        """Rank chunks by query term frequency."""
        query_terms = set(_terms(query))
        if not query_terms:
            return []

        results = []
        for chunk in self.chunks.values():
            content_terms = _terms(chunk.content)
            score = sum(1 for term in content_terms if term in query_terms)
            if score > 0:
                results.append(ScoredChunk(chunk=chunk, score=float(score)))

        results.sort(key=lambda result: result.score, reverse=True)
        return results[: options.limit]

    async def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        """Retrieve a chunk by id."""
        return self.chunks.get(chunk_id)

    async def get_chunks_by_path(self, path: str) -> list[Chunk]:
        """Retrieve all chunks for a document ordered by start line."""
        chunks = [chunk for chunk in self.chunks.values() if chunk.path == path]
        return sorted(chunks, key=lambda chunk: chunk.start_line)

    async def list_paths(self) -> list[str]:
        """Return stored document paths."""
        return sorted({chunk.path for chunk in self.chunks.values()})

    async def get_stats(self) -> StorageStats:
        """Return document and chunk counts."""
        return StorageStats(
            files=len({chunk.path for chunk in self.chunks.values()}),
            chunks=len(self.chunks),
        )

    async def clear(self) -> None:
        """Delete all chunks."""
        self.chunks.clear()
