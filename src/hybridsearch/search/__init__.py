"""Search adapters and hybrid score merging."""

from hybridsearch.search.hybrid import ScoreMerger, normalize_score, rrf_score
from hybridsearch.search.keyword import KeywordSearch
from hybridsearch.search.vector import VectorSearch

__all__ = [
    "KeywordSearch",
    "ScoreMerger",
    "VectorSearch",
    "normalize_score",
    "rrf_score",
]
