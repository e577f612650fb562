"""Keyword search adapter over the storage full-text index."""

from hybridsearch.entities import SearchResult
from hybridsearch.search.vector import to_search_result
from hybridsearch.storage.base import KeywordSearchOptions, StorageBackend


class KeywordSearch:
    """Runs a full-text query against a storage backend.

    The query text is passed through unchanged; tokenization and ranking
    belong to the backend.
    """

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    async def search(self, query: str, options: KeywordSearchOptions) -> list[SearchResult]:
        hits = await self.storage.search_by_keyword(query, options)
        return [to_search_result(hit) for hit in hits]
