"""Vector search adapter: storage similarity hits -> unscored SearchResults."""

from hybridsearch.entities import ScoredChunk, SearchResult, extract_snippet
from hybridsearch.storage.base import StorageBackend, VectorSearchOptions


def to_search_result(hit: ScoredChunk) -> SearchResult:
    """Convert a storage hit into a result placeholder.

    The storage score is dropped: only the position of the hit in its list
    matters to the merger, which assigns the real scores.
    """
    chunk = hit.chunk
    return SearchResult(
        path=chunk.path,
        start_line=chunk.start_line,
        end_line=chunk.end_line,
        snippet=extract_snippet(chunk.content),
    )


class VectorSearch:
    """Runs a vector similarity query against a storage backend."""

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    async def search(
        self, query_vector: list[float], options: VectorSearchOptions
    ) -> list[SearchResult]:
        """Return hits best first, in the order storage ranked them."""
        hits = await self.storage.search_by_vector(query_vector, options)
        return [to_search_result(hit) for hit in hits]
