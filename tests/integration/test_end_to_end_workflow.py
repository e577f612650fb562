"""End-to-end tests for the index, search and read workflow on SQLite."""

import pytest

from hybridsearch import HybridSearch, MergeStrategy, SearchOptions
from hybridsearch.config.schema import AppConfig, ChunkingConfig, StorageConfig

DOCS = {
    "databases/pooling.md": """# Connection pooling

A connection pool keeps database connections open between requests.
Size the pool to match the number of worker threads.

## Timeouts

Idle connections are closed after a timeout so the database can reclaim them.
""",
    "databases/indexes.md": """# Indexes

A B-tree index speeds up range queries on sorted columns.
Covering indexes avoid reading the table heap.
""",
    "frontend/caching.md": """# Browser caching

Static assets are cached with long max-age headers.
Fingerprinted file names make cache invalidation trivial.
""",
}


@pytest.mark.asyncio
class TestEndToEndWorkflow:
    """Test complete end-to-end workflows."""

    @pytest.fixture
    def docs_dir(self, tmp_path):
        root = tmp_path / "docs"
        for path, text in DOCS.items():
            file_path = root / path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(text, encoding="utf-8")
        return root

    @pytest.fixture
    def config(self, tmp_path, docs_dir):
        return AppConfig(
            docs_dir=docs_dir,
            storage=StorageConfig(
                store_type="sqlite",
                connection_string=str(tmp_path / "index" / "search.db"),
            ),
            chunking=ChunkingConfig(tokens_per_chunk=24, overlap_tokens=6),
        )

    @pytest.fixture
    async def engine(self, config, fake_provider):
        engine = await HybridSearch.create(config, embedding_provider=fake_provider)
        yield engine
        await engine.close()

    async def test_sync_and_search(self, engine):
        results = await engine.sync()

        assert sorted(r.path for r in results) == sorted(DOCS)
        status = await engine.status()
        assert status.files == 3
        assert status.chunks > 3

        hits = await engine.search("database connection pool", SearchOptions(max_results=3))

        assert hits[0].path == "databases/pooling.md"
        assert len({hit.path for hit in hits}) == len(hits)
        assert all(0.0 <= hit.score <= 1.0 for hit in hits)

    async def test_result_points_at_lines(self, engine):
        await engine.sync()

        hits = await engine.search("fingerprinted file names", SearchOptions(max_results=3))
        hit = next(hit for hit in hits if hit.path == "frontend/caching.md")
        excerpt = await engine.read_file(
            hit.path, from_line=hit.start_line, lines=hit.end_line - hit.start_line + 1
        )

        assert "Fingerprinted" in excerpt.text
        assert excerpt.text.startswith(hit.snippet.split(" ")[0])

    async def test_rrf_and_weighted_agree_on_clear_winner(self, engine):
        await engine.sync()

        weighted = await engine.search("B-tree index range queries")
        rrf = await engine.search("B-tree index range queries", strategy=MergeStrategy.RRF)

        assert weighted[0].path == rrf[0].path == "databases/indexes.md"
        assert rrf[0].score < weighted[0].score

    async def test_incremental_sync(self, engine, docs_dir, fake_provider):
        await engine.sync()
        calls = len(fake_provider.calls)

        results = await engine.sync()
        assert all(r.reason == "content_unchanged" for r in results)
        assert len(fake_provider.calls) == calls

        (docs_dir / "frontend" / "caching.md").write_text(
            "# Service workers\n\nOffline support through a service worker cache.\n",
            encoding="utf-8",
        )
        (docs_dir / "databases" / "indexes.md").unlink()

        results = {r.path: r.reason for r in await engine.sync()}

        assert results == {
            "databases/pooling.md": "content_unchanged",
            "frontend/caching.md": "content_changed",
            "databases/indexes.md": "removed",
        }
        assert (await engine.status()).files == 2
        assert await engine.search_keyword("fingerprinted") == []
        hits = await engine.search_keyword("offline")
        assert [hit.path for hit in hits] == ["frontend/caching.md"]

    async def test_index_survives_restart(self, config, fake_provider):
        async with HybridSearch(config, embedding_provider=fake_provider) as first:
            await first.sync()
            before = await first.search("browser caching headers")

        async with HybridSearch(config, embedding_provider=fake_provider) as second:
            after = await second.search("browser caching headers")
            status = await second.status()

        assert status.files == 3
        assert [(r.path, r.score) for r in after] == [(r.path, r.score) for r in before]

    async def test_clear(self, engine):
        await engine.sync()
        await engine.clear()

        assert (await engine.status()).chunks == 0
        assert await engine.search("connection pool") == []
