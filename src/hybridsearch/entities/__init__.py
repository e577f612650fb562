"""Entities - Domain models for the hybrid search system.

This module contains pure domain entities without business logic:
- Chunk: A line span of a document suitable for embedding
- ScoredChunk: A chunk returned by storage with its native score
- SearchResult: A fused, ranked document hit
- IndexStatus: Counts and collaborator identity for an index
- ReadResult: A slice of an indexed document
"""

from hybridsearch.entities.chunk import Chunk, ScoredChunk, make_chunk_id
from hybridsearch.entities.search_result import SearchResult, extract_snippet
from hybridsearch.entities.status import IndexStatus, ReadResult

__all__ = [
    "Chunk",
    "IndexStatus",
    "ReadResult",
    "ScoredChunk",
    "SearchResult",
    "extract_snippet",
    "make_chunk_id",
]
