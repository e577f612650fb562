"""Tests for domain entities and config models."""

import pytest
from pydantic import ValidationError

from hybridsearch.config.schema import ChunkingConfig, HybridConfig, SearchOptions
from hybridsearch.entities import Chunk, IndexStatus, SearchResult, make_chunk_id


def test_chunk_id_format():
    assert make_chunk_id("docs/a.md", 12) == "docs/a.md:12"


def test_chunk_creation():
    """Test creating a valid chunk."""
    chunk = Chunk(
        id="a.md:1",
        path="a.md",
        content="# Intro\ntext",
        start_line=1,
        end_line=2,
        metadata={"title": "Intro", "headers": ["# Intro"]},
    )

    assert chunk.title == "Intro"
    assert chunk.headers == ["# Intro"]
    assert chunk.embedding is None


def test_chunk_without_metadata():
    chunk = Chunk(id="a.md:1", path="a.md", start_line=1, end_line=1)

    assert chunk.title is None
    assert chunk.headers is None
    assert chunk.content == ""


def test_chunk_invalid_range_fails():
    """Test that an end line before the start line raises validation error."""
    with pytest.raises(ValidationError, match="end_line must not be before start_line"):
        Chunk(id="a.md:5", path="a.md", start_line=5, end_line=4)


def test_chunk_lines_are_one_based():
    with pytest.raises(ValidationError):
        Chunk(id="a.md:0", path="a.md", start_line=0, end_line=1)


def test_search_result_defaults():
    result = SearchResult(path="a.md", start_line=1, end_line=3)

    assert result.score == 0.0
    assert result.snippet == ""
    assert result.vector_score is None
    assert result.text_score is None


def test_search_result_rejects_negative_score():
    with pytest.raises(ValidationError):
        SearchResult(path="a.md", start_line=1, end_line=1, score=-0.1)


def test_index_status_counts_non_negative():
    with pytest.raises(ValidationError):
        IndexStatus(files=-1, chunks=0, provider="openai", model="m", storage_type="sqlite")


class TestConfigModels:
    def test_chunking_defaults(self):
        config = ChunkingConfig()

        assert (config.tokens_per_chunk, config.overlap_tokens) == (512, 50)

    def test_chunking_rejects_zero_budget(self):
        with pytest.raises(ValidationError):
            ChunkingConfig(tokens_per_chunk=0)

    def test_hybrid_defaults(self):
        config = HybridConfig()

        assert (config.vector_weight, config.text_weight) == (0.7, 0.3)
        assert config.rrf_k == 60

    def test_hybrid_rejects_negative_weight(self):
        with pytest.raises(ValidationError):
            HybridConfig(vector_weight=-1.0)

    def test_search_options(self):
        assert SearchOptions() == SearchOptions(max_results=10, min_score=0.0)
        with pytest.raises(ValidationError):
            SearchOptions(max_results=-1)

    def test_frozen(self):
        options = SearchOptions()
        with pytest.raises(ValidationError):
            options.max_results = 5
