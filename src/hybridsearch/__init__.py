"""hybridsearch: hybrid vector + keyword search over Markdown documents."""

from hybridsearch.config.schema import AppConfig, HybridConfig, MergeStrategy, SearchOptions
from hybridsearch.entities import Chunk, IndexStatus, ReadResult, SearchResult
from hybridsearch.pipelines.search import EngineState, HybridSearch, SearchError

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "Chunk",
    "EngineState",
    "HybridConfig",
    "HybridSearch",
    "IndexStatus",
    "MergeStrategy",
    "ReadResult",
    "SearchError",
    "SearchOptions",
    "SearchResult",
]
